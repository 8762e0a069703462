"""Translate a cgroup resource spec into systemd transient unit properties."""
from typing import List

from cgunit.models.cgroup import Cgroup, Property

# USEC_INFINITY / CGROUP_LIMIT_MAX in systemd
INFINITY = 2 ** 64 - 1
CPU_QUOTA_UNLIMITED = INFINITY

# systemd stores CPUQuota as a whole percent, i.e. 10ms per CPU second
CPU_QUOTA_GRANULARITY = 10000


def prop_description(text: str) -> Property:
    return Property("Description", text, "s")


def prop_slice(slice_name: str) -> Property:
    return Property("Slice", slice_name, "s")


def prop_wants(*units: str) -> Property:
    return Property("Wants", list(units), "as")


def prop_pids(*pids: int) -> Property:
    return Property("PIDs", [int(pid) for pid in pids], "au")


def prop_bool(name: str, value: bool) -> Property:
    return Property(name, bool(value), "b")


def prop_uint64(name: str, value: int) -> Property:
    return Property(name, int(value), "t")


def cpu_quota_per_sec_usec(quota: int, period: int) -> int:
    """Convert a CFS quota/period pair into systemd's CPUQuotaPerSecUSec.

    A quota of zero or less yields the unlimited sentinel, which also clears
    a quota set by an earlier apply. Otherwise the per-second value is
    rounded up to the next 10ms so the kernel never enforces less CPU than
    requested.
    """
    if quota <= 0:
        return CPU_QUOTA_UNLIMITED

    per_sec = quota * 1000000 // period
    if per_sec % CPU_QUOTA_GRANULARITY != 0:
        per_sec = (per_sec // CPU_QUOTA_GRANULARITY + 1) * CPU_QUOTA_GRANULARITY
    return per_sec


def compose_properties(cgroup: Cgroup, unit_name: str, slice_name: str, pid: int = -1) -> List[Property]:
    """Build the property list for StartTransientUnit.

    Args:
        cgroup: Resource spec to translate
        unit_name: Name of the unit being started (.slice or .scope)
        slice_name: Parent slice of the unit
        pid: Process to place in the unit, -1 for none

    Returns:
        Ordered list of properties, extra systemd_props last
    """
    is_slice = unit_name.endswith(".slice")
    resources = cgroup.resources
    properties = [prop_description(f"cgunit container {cgroup.name}")]

    # A slice hangs off its parent with Wants=, a scope is placed with Slice=
    if is_slice:
        properties.append(prop_wants(slice_name))
    else:
        properties.append(prop_slice(slice_name))

    if pid != -1:
        properties.append(prop_pids(pid))

    # Slices are always delegated
    if not is_slice:
        properties.append(prop_bool("Delegate", True))

    # Joining the memory controller late is unreliable, so accounting is
    # always on from the start
    properties.extend([
        prop_bool("MemoryAccounting", True),
        prop_bool("CPUAccounting", True),
        prop_bool("IOAccounting", True),
    ])

    properties.append(prop_bool("DefaultDependencies", False))

    if resources.memory != 0:
        memory_max = resources.memory if resources.memory > 0 else INFINITY
        properties.append(prop_uint64("MemoryMax", memory_max))

    if resources.cpu_weight != 0:
        properties.append(prop_uint64("CPUWeight", resources.cpu_weight))

    if resources.cpu_quota != 0 and resources.cpu_period != 0:
        properties.append(prop_uint64(
            "CPUQuotaPerSecUSec",
            cpu_quota_per_sec_usec(resources.cpu_quota, resources.cpu_period),
        ))

    if resources.pids_limit > 0:
        properties.extend([
            prop_bool("TasksAccounting", True),
            prop_uint64("TasksMax", resources.pids_limit),
        ])

    # resources.kernel_memory is deliberately not forwarded

    properties.extend(cgroup.systemd_props)
    return properties
