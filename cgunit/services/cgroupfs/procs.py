"""Process membership and removal helpers for cgroup v2 directories."""
from pathlib import Path
from typing import Dict, List, Union

from cgunit.core.config import get_config
from cgunit.core.errors import FilesystemError, RemovePathsError
from cgunit.core.logger import get_logger
from cgunit.core.retry import retry

logger = get_logger(__name__)

PROCS_FILE = "cgroup.procs"


def write_cgroup_proc(path: Union[str, Path], pid: int) -> None:
    """Move ``pid`` into the cgroup at ``path``. A pid of -1 is ignored."""
    if pid == -1:
        return
    procs_file = Path(path) / PROCS_FILE
    try:
        with procs_file.open("a") as f:
            f.write(str(pid))
    except OSError as e:
        raise FilesystemError(f"Failed to write {pid} to {procs_file}: {e}") from e


def enter_pid(paths: Dict[str, str], pid: int) -> None:
    """Add ``pid`` to every existing cgroup in ``paths``."""
    for path in paths.values():
        if Path(path).is_dir():
            write_cgroup_proc(path, pid)


def get_pids(path: Union[str, Path]) -> List[int]:
    """Return the processes directly in the cgroup at ``path``."""
    procs_file = Path(path) / PROCS_FILE
    try:
        return [int(line) for line in procs_file.read_text(encoding="utf-8").split()]
    except OSError as e:
        raise FilesystemError(f"Failed to read {procs_file}: {e}") from e


def get_all_pids(path: Union[str, Path]) -> List[int]:
    """Return the processes in the cgroup at ``path`` and all its descendants.

    Raises:
        FilesystemError: If the cgroup or one of its children cannot be read
    """
    root = Path(path)
    pids = get_pids(root)
    for child in sorted(root.rglob("*")):
        if child.is_dir():
            pids.extend(get_pids(child))
    return pids


def _remove_cgroup(path: Path) -> None:
    """rmdir a cgroup and its children, deepest first."""
    if not path.exists():
        return
    children = [p for p in path.rglob("*") if p.is_dir()]
    for child in sorted(children, key=lambda p: len(p.parts), reverse=True):
        try:
            child.rmdir()
        except FileNotFoundError:
            pass
    try:
        path.rmdir()
    except FileNotFoundError:
        pass


@retry(
    max_attempts=lambda: get_config().remove_attempts,
    delay=lambda: get_config().remove_delay,
    exceptions=(RemovePathsError,),
)
def _remove_pass(remaining: Dict[str, str]) -> None:
    for controller, path in list(remaining.items()):
        cgroup_dir = Path(path)
        try:
            _remove_cgroup(cgroup_dir)
        except OSError as e:
            logger.debug(f"Removing {cgroup_dir} failed: {e}")
        # rmdir errors are unreliable here; existence is what counts
        if not cgroup_dir.exists():
            del remaining[controller]
    if remaining:
        raise RemovePathsError(dict(remaining))


def remove_paths(paths: Dict[str, str]) -> None:
    """Remove every cgroup in ``paths``, retrying while they are busy.

    Raises:
        RemovePathsError: If any path still exists after the last attempt
    """
    remaining = dict(paths)
    if not remaining:
        return
    _remove_pass(remaining)
