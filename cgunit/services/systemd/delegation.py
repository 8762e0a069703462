"""Controller delegation along a cgroup v2 path."""
from pathlib import Path
from typing import List, Optional

from cgunit.core.config import get_config
from cgunit.core.errors import DelegationError, FilesystemError
from cgunit.core.logger import get_logger

logger = get_logger(__name__)

CONTROLLERS_FILE = "cgroup.controllers"
SUBTREE_CONTROL_FILE = "cgroup.subtree_control"


def read_controllers(mountpoint: str) -> List[str]:
    """Return the controllers available at the root of the hierarchy."""
    controllers_file = Path(mountpoint) / CONTROLLERS_FILE
    try:
        return controllers_file.read_text(encoding="utf-8").split()
    except OSError as e:
        raise FilesystemError(f"Cannot read {controllers_file}: {e}") from e


def subtree_control_line(controllers: List[str]) -> str:
    """Format controllers as a cgroup.subtree_control enable line."""
    return " ".join(f"+{name}" for name in controllers)


def enable_controllers(directory: Path, line: str) -> None:
    """Write an enable line to the cgroup.subtree_control of ``directory``."""
    (directory / SUBTREE_CONTROL_FILE).write_text(line)


def prepare_tree(path: str, mountpoint: Optional[str] = None) -> None:
    """Create ``path`` and delegate every root controller down to it.

    Each directory between the mount root and ``path`` is created if missing.
    The mount root and every intermediate directory get all controllers
    enabled in cgroup.subtree_control; the leaf is left alone so processes can
    live in it. Directories created here are removed again if any step fails.

    Raises:
        FilesystemError: If the root controller list cannot be read
        DelegationError: If a directory or subtree_control write fails
    """
    root = Path(mountpoint or get_config().unified_mountpoint)
    target = Path(path)

    if target == root:
        return
    try:
        relative = target.relative_to(root)
    except ValueError:
        raise DelegationError(f"{target} is not below cgroup mount {root}") from None
    if ".." in relative.parts:
        raise DelegationError(f"{target} is not below cgroup mount {root}")

    enable_line = subtree_control_line(read_controllers(str(root)))

    levels = [root]
    for part in relative.parts:
        levels.append(levels[-1] / part)

    created: List[Path] = []
    try:
        for index, current in enumerate(levels):
            if index > 0:
                try:
                    current.mkdir(mode=0o755)
                    created.append(current)
                except FileExistsError:
                    pass
            if index < len(levels) - 1 and enable_line:
                enable_controllers(current, enable_line)
    except OSError as e:
        _rollback(created)
        raise DelegationError(f"Failed to prepare cgroup {target}: {e}") from e

    logger.debug(f"Delegated '{enable_line}' down to {target}")


def _rollback(created: List[Path]) -> None:
    for directory in reversed(created):
        try:
            directory.rmdir()
        except OSError as e:
            logger.warning(f"Could not remove {directory} during rollback: {e}")
