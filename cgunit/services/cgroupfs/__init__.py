"""cgroup v2 filesystem access.

- procs: pid membership, subtree scans and removal of cgroup directories
- FsManager: per-path limits, stats and freezer
"""
from . import procs
from .fs2 import FsManager

__all__ = ['procs', 'FsManager']
