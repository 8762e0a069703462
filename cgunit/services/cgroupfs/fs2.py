"""Filesystem-backed cgroup v2 manager for a single unified path."""
import time
from pathlib import Path
from typing import Dict, List, Optional

from cgunit.core.errors import FilesystemError, InvalidFreezerStateError
from cgunit.core.logger import get_logger
from cgunit.models.cgroup import (
    Cgroup,
    CpuStats,
    FreezerState,
    MemoryStats,
    PidsStats,
    Resources,
    Stats,
)
from cgunit.services.cgroupfs import procs

logger = get_logger(__name__)


class FsManager:
    """Reads and writes controller files of one cgroup v2 directory."""

    freeze_poll_attempts = 100
    freeze_poll_interval = 0.01

    def __init__(self, cgroup: Cgroup, path: str, rootless: bool = False):
        """Initialize manager.

        Args:
            cgroup: Resource spec the cgroup belongs to
            path: Absolute path of the cgroup directory
            rootless: If True, permission errors on writes are skipped
        """
        self.cgroup = cgroup
        self.path = Path(path)
        self.rootless = rootless

    # ==================== Freezer ====================

    def freeze(self, state: FreezerState) -> None:
        if state == FreezerState.FROZEN:
            value = "1"
        elif state == FreezerState.THAWED:
            value = "0"
        else:
            raise InvalidFreezerStateError(state)

        self._write("cgroup.freeze", value)
        self._wait_frozen(value)

    def get_freezer_state(self) -> FreezerState:
        value = self._read("cgroup.freeze")
        if value is None:
            return FreezerState.UNDEFINED
        return FreezerState.FROZEN if value.strip() == "1" else FreezerState.THAWED

    def _wait_frozen(self, expected: str) -> None:
        """Poll cgroup.events until the kernel reports the requested state."""
        for _ in range(self.freeze_poll_attempts):
            events = self._read_flat_keyed("cgroup.events")
            if not events or "frozen" not in events:
                return
            if str(events["frozen"]) == expected:
                return
            time.sleep(self.freeze_poll_interval)
        raise FilesystemError(f"Timed out waiting for {self.path} to reach frozen={expected}")

    # ==================== Stats ====================

    def get_stats(self) -> Stats:
        stats = Stats()

        cpu = self._read_flat_keyed("cpu.stat")
        if cpu:
            stats.cpu = CpuStats(
                usage_usec=cpu.get("usage_usec", 0),
                user_usec=cpu.get("user_usec", 0),
                system_usec=cpu.get("system_usec", 0),
                nr_periods=cpu.get("nr_periods", 0),
                nr_throttled=cpu.get("nr_throttled", 0),
                throttled_usec=cpu.get("throttled_usec", 0),
            )

        stats.memory = MemoryStats(
            usage=self._read_int("memory.current") or 0,
            limit=self._read_int("memory.max"),
            events=self._read_flat_keyed("memory.events"),
        )
        stats.pids = PidsStats(
            current=self._read_int("pids.current") or 0,
            limit=self._read_int("pids.max"),
        )
        return stats

    # ==================== Limits ====================

    def set(self, resources: Resources) -> None:
        if resources.memory != 0:
            self._write("memory.max", "max" if resources.memory < 0 else str(resources.memory))

        if resources.cpu_weight != 0:
            self._write("cpu.weight", str(resources.cpu_weight))

        if resources.cpu_quota != 0 or resources.cpu_period != 0:
            quota = "max" if resources.cpu_quota <= 0 else str(resources.cpu_quota)
            if resources.cpu_period != 0:
                quota = f"{quota} {resources.cpu_period}"
            self._write("cpu.max", quota)

        if resources.pids_limit != 0:
            self._write("pids.max", "max" if resources.pids_limit < 0 else str(resources.pids_limit))

        if resources.cpuset_cpus:
            self._write("cpuset.cpus", resources.cpuset_cpus)
        if resources.cpuset_mems:
            self._write("cpuset.mems", resources.cpuset_mems)

        if resources.freezer != FreezerState.UNDEFINED:
            self.freeze(resources.freezer)

    # ==================== Processes ====================

    def get_pids(self) -> List[int]:
        return procs.get_pids(self.path)

    def get_all_pids(self) -> List[int]:
        return procs.get_all_pids(self.path)

    # ==================== File access ====================

    def _write(self, name: str, value: str) -> None:
        target = self.path / name
        try:
            target.write_text(value)
        except PermissionError as e:
            if self.rootless:
                logger.debug(f"Skipping {target} in rootless mode: {e}")
                return
            raise FilesystemError(f"Failed to write '{value}' to {target}: {e}") from e
        except OSError as e:
            raise FilesystemError(f"Failed to write '{value}' to {target}: {e}") from e

    def _read(self, name: str) -> Optional[str]:
        """Return file contents, or None when the controller is not enabled."""
        target = self.path / name
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FilesystemError(f"Failed to read {target}: {e}") from e

    def _read_int(self, name: str) -> Optional[int]:
        value = self._read(name)
        if value is None:
            return None
        value = value.strip()
        if value == "max":
            return None
        try:
            return int(value)
        except ValueError as e:
            raise FilesystemError(f"Unexpected content in {name}: {value!r}") from e

    def _read_flat_keyed(self, name: str) -> Dict[str, int]:
        value = self._read(name)
        if value is None:
            return {}
        result = {}
        for line in value.splitlines():
            parts = line.split()
            if len(parts) != 2:
                continue
            try:
                result[parts[0]] = int(parts[1])
            except ValueError:
                continue
        return result
