"""Data models for cgunit."""
from .cgroup import (
    Cgroup,
    Controller,
    CpuStats,
    FreezerState,
    MemoryStats,
    PidsStats,
    Property,
    Resources,
    Stats,
)

__all__ = [
    'Cgroup',
    'Controller',
    'CpuStats',
    'FreezerState',
    'MemoryStats',
    'PidsStats',
    'Property',
    'Resources',
    'Stats',
]
