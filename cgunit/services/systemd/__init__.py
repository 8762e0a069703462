"""systemd integration for cgroup v2.

This package splits unit handling into focused pieces:
- properties: Resource spec to transient unit properties
- paths: Unit names, slice expansion and unified path resolution
- delegation: Controller delegation down the cgroup tree
- client / launcher: D-Bus access and unit start/stop
- UnifiedManager: Facade tying the pieces together
"""
from .client import DbusSystemdClient, SystemdClient
from .launcher import UnitLauncher
from .manager import UnifiedManager

__all__ = [
    'DbusSystemdClient',
    'SystemdClient',
    'UnitLauncher',
    'UnifiedManager',
]
