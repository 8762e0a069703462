"""Cgroup resource and unit models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Controller(str, Enum):
    """Controllers tracked in a resolved path set."""
    PIDS = "pids"
    MEMORY = "memory"
    IO = "io"
    CPU = "cpu"
    DEVICES = "devices"
    CPUSET = "cpuset"
    FREEZER = "freezer"


class FreezerState(str, Enum):
    """Desired or observed freezer state of a cgroup."""
    UNDEFINED = ""
    FROZEN = "FROZEN"
    THAWED = "THAWED"


@dataclass
class Property:
    """A systemd unit property with its D-Bus type signature."""
    name: str
    value: Any
    signature: str  # s, b, t, as, au


@dataclass
class Resources:
    """Resource limits for a container cgroup."""
    memory: int = 0  # bytes, 0 = unset
    kernel_memory: int = 0  # accepted but never forwarded to systemd
    cpu_weight: int = 0  # 0 = unset
    cpu_quota: int = 0  # microseconds per period, <= 0 = unlimited
    cpu_period: int = 0  # microseconds, 0 = unset
    pids_limit: int = 0  # <= 0 = unset
    cpuset_cpus: str = ""
    cpuset_mems: str = ""
    freezer: FreezerState = FreezerState.UNDEFINED


@dataclass
class Cgroup:
    """Resource spec for one container's cgroup and systemd unit.

    When ``paths`` is set the cgroup was provisioned elsewhere; the manager
    joins those paths and never talks to systemd.
    """
    name: str
    parent: str = ""
    scope_prefix: str = ""
    resources: Resources = field(default_factory=Resources)
    paths: Optional[Dict[str, str]] = None
    systemd_props: List[Property] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Cgroup must have a name")


@dataclass
class CpuStats:
    usage_usec: int = 0
    user_usec: int = 0
    system_usec: int = 0
    nr_periods: int = 0
    nr_throttled: int = 0
    throttled_usec: int = 0


@dataclass
class MemoryStats:
    usage: int = 0
    limit: Optional[int] = None  # None = max
    events: Dict[str, int] = field(default_factory=dict)


@dataclass
class PidsStats:
    current: int = 0
    limit: Optional[int] = None  # None = max


@dataclass
class Stats:
    """Point-in-time usage read from a cgroup."""
    cpu: CpuStats = field(default_factory=CpuStats)
    memory: MemoryStats = field(default_factory=MemoryStats)
    pids: PidsStats = field(default_factory=PidsStats)
