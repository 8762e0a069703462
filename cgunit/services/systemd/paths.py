"""Unit naming and unified cgroup path resolution."""
from pathlib import Path
from typing import Dict, Optional

from cgunit.core.config import get_config
from cgunit.core.errors import (
    ConfigurationAmbiguousError,
    InvalidSliceError,
    PathInconsistencyError,
)
from cgunit.models.cgroup import Cgroup, Controller

SLICE_SUFFIX = ".slice"


def expand_slice(slice_name: str) -> str:
    """Expand a slice name into its path below the cgroup root.

    ``a-b-c.slice`` lives at ``/a.slice/a-b.slice/a-b-c.slice`` and the root
    slice ``-.slice`` at ``/``.

    Raises:
        InvalidSliceError: If the name is not a valid slice name
    """
    if not slice_name.endswith(SLICE_SUFFIX) or "/" in slice_name:
        raise InvalidSliceError(slice_name)

    base = slice_name[:-len(SLICE_SUFFIX)]
    if base == "-":
        return "/"

    path = ""
    prefix = ""
    for component in base.split("-"):
        # test--a.slice and -test.slice are both rejected by systemd
        if not component:
            raise InvalidSliceError(slice_name)
        path += f"/{prefix}{component}{SLICE_SUFFIX}"
        prefix += f"{component}-"
    return path


def parent_slice(cgroup: Cgroup) -> str:
    """Return the slice a unit is placed under."""
    return cgroup.parent or get_config().default_slice


def unit_name(cgroup: Cgroup) -> str:
    """Return the systemd unit name for a cgroup.

    A scope is created unless the name already asks for a slice.
    """
    if cgroup.name.endswith(SLICE_SUFFIX):
        return cgroup.name
    prefix = cgroup.scope_prefix or get_config().scope_prefix
    return f"{prefix}-{cgroup.name}.scope"


def compute_path(cgroup: Cgroup, mountpoint: Optional[str] = None) -> str:
    """Return the cgroup v2 path systemd allocates for the unit."""
    root = mountpoint or get_config().unified_mountpoint
    slice_path = expand_slice(parent_slice(cgroup))
    return str(Path(root) / slice_path.lstrip("/") / unit_name(cgroup))


def unified_paths(path: str) -> Dict[str, str]:
    """Build a per-controller path set in which every controller shares ``path``."""
    return {controller.value: path for controller in Controller}


def reconcile(paths: Dict[str, str]) -> str:
    """Collapse a per-controller path set into the single unified path.

    Raises:
        ConfigurationAmbiguousError: If the path set is empty
        PathInconsistencyError: If any controller points elsewhere
    """
    unified = ""
    for controller, path in paths.items():
        if not unified:
            unified = path
        elif path != unified:
            raise PathInconsistencyError(controller, unified, path)

    if not unified:
        raise ConfigurationAmbiguousError("cannot detect unified path")
    return unified
