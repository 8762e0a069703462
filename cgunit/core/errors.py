"""Exception hierarchy for cgroup and systemd unit management."""
from typing import Dict, Optional


class CgroupError(Exception):
    """Base class for all cgunit failures."""
    pass


class TransportError(CgroupError):
    """Raised when a request to systemd over D-Bus fails."""

    def __init__(self, message: str, dbus_name: Optional[str] = None):
        super().__init__(message)
        self.dbus_name = dbus_name


class UnitExistsError(TransportError):
    """Raised when systemd refuses to start a unit that is already loaded."""
    pass


class FilesystemError(CgroupError):
    """Raised when the cgroup filesystem cannot be read or modified."""
    pass


class DelegationError(FilesystemError):
    """Raised when controller delegation along a cgroup path fails."""
    pass


class RemovePathsError(FilesystemError):
    """Raised when cgroup directories survive every removal attempt."""

    def __init__(self, remaining: Dict[str, str]):
        super().__init__(f"Failed to remove paths: {remaining}")
        self.remaining = remaining


class PathInconsistencyError(CgroupError):
    """Raised when controllers disagree on the unified cgroup path."""

    def __init__(self, controller: str, expected: str, actual: str):
        super().__init__(
            f"expected {controller!r} path to be unified path {expected!r}, got {actual!r}"
        )
        self.controller = controller
        self.expected = expected
        self.actual = actual


class ConfigurationAmbiguousError(CgroupError):
    """Raised when no cgroup path is known but one is required."""
    pass


class InvalidSliceError(CgroupError, ValueError):
    """Raised for slice names systemd would not accept."""

    def __init__(self, slice_name: str):
        super().__init__(f"invalid slice name: {slice_name}")
        self.slice_name = slice_name


class InvalidFreezerStateError(CgroupError, ValueError):
    """Raised when a freeze is requested for a state other than frozen or thawed."""

    def __init__(self, state):
        super().__init__(f"invalid freezer state: {state!r}")
        self.state = state
