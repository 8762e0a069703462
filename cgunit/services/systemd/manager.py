"""systemd-driven cgroup v2 manager."""
import threading
from typing import Callable, Dict, List, Optional

from cgunit.core.config import get_config
from cgunit.core.logger import get_logger
from cgunit.models.cgroup import Cgroup, FreezerState, Resources, Stats
from cgunit.services.cgroupfs import procs
from cgunit.services.cgroupfs.fs2 import FsManager
from cgunit.services.systemd.client import SystemdClient
from cgunit.services.systemd.delegation import prepare_tree
from cgunit.services.systemd.launcher import UnitLauncher
from cgunit.services.systemd.paths import (
    compute_path,
    parent_slice,
    reconcile,
    unified_paths,
    unit_name,
)
from cgunit.services.systemd.properties import compose_properties

logger = get_logger(__name__)

FsManagerFactory = Callable[[Cgroup, str, bool], FsManager]


class UnifiedManager:
    """Manages a container cgroup through a systemd transient unit.

    systemd owns the unit and allocates its cgroup; this class delegates the
    controllers down to that cgroup and then drives limits, stats and the
    freezer through the filesystem. Every controller maps to the same path.
    """

    def __init__(
        self,
        cgroup: Cgroup,
        client: Optional[SystemdClient] = None,
        paths: Optional[Dict[str, str]] = None,
        fs_manager_factory: Optional[FsManagerFactory] = None,
        mountpoint: Optional[str] = None,
    ):
        """Initialize manager.

        Args:
            cgroup: Resource spec for the container
            client: Open systemd client; required unless cgroup.paths is set
            paths: Path set recorded by an earlier apply, to re-attach
            fs_manager_factory: Builds the filesystem manager for a path
            mountpoint: cgroup2 mount point (default: config unified_mountpoint)
        """
        self.cgroup = cgroup
        self.client = client
        self.fs_manager_factory = fs_manager_factory or FsManager
        self.mountpoint = mountpoint or get_config().unified_mountpoint
        self._lock = threading.Lock()
        self._paths: Dict[str, str] = dict(paths or {})

    # ==================== Lifecycle ====================

    def apply(self, pid: int) -> None:
        """Create the unit and cgroup for the container and place ``pid`` in it.

        Args:
            pid: Process to add, -1 to only create the unit

        Raises:
            CgroupError: If the unit or its cgroup could not be set up. A
                unit created before the failure is left for destroy()
        """
        c = self.cgroup

        if c.paths is not None:
            paths = dict(c.paths)
            with self._lock:
                self._paths = paths
            procs.enter_pid(paths, pid)
            return

        if self.client is None:
            raise ValueError("A systemd client is required to create units")

        name = unit_name(c)
        properties = compose_properties(c, name, parent_slice(c), pid)
        UnitLauncher(self.client).ensure_unit(name, properties)

        path = compute_path(c, self.mountpoint)
        prepare_tree(path, self.mountpoint)

        with self._lock:
            self._paths = unified_paths(path)
        logger.debug(f"Unit {name} bound to {path}")

    def destroy(self) -> None:
        """Stop the unit and remove its cgroup.

        Nothing is done for cgroups provisioned elsewhere. If removal fails the
        recorded paths are kept so destroy() can be retried.

        Raises:
            RemovePathsError: If the cgroup directories could not be removed
        """
        if self.cgroup.paths is not None:
            return

        with self._lock:
            if self.client is not None:
                UnitLauncher(self.client).stop_unit(unit_name(self.cgroup))
            procs.remove_paths(self._paths)
            self._paths = {}

    # ==================== Paths ====================

    def get_paths(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._paths)

    def get_unified_path(self) -> str:
        """Return the single path all controllers share.

        Raises:
            ConfigurationAmbiguousError: If no path is recorded
            PathInconsistencyError: If controllers point at different paths
        """
        with self._lock:
            return reconcile(self._paths)

    def get_cgroups(self) -> Cgroup:
        return self.cgroup

    # ==================== Enforcement and inspection ====================

    def _fs_manager(self) -> FsManager:
        return self.fs_manager_factory(self.cgroup, self.get_unified_path(), False)

    def freeze(self, state: FreezerState) -> None:
        self._fs_manager().freeze(state)

    def get_pids(self) -> List[int]:
        return procs.get_pids(self.get_unified_path())

    def get_all_pids(self) -> List[int]:
        return procs.get_all_pids(self.get_unified_path())

    def get_stats(self) -> Stats:
        return self._fs_manager().get_stats()

    def set(self, resources: Resources) -> None:
        self._fs_manager().set(resources)
