"""cgunit runtime configuration and settings."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class CgunitConfig:
    """Runtime configuration for cgroup and unit operations.

    Attributes:
        unified_mountpoint: Mount point of the cgroup v2 hierarchy (default: /sys/fs/cgroup)
        unit_start_timeout: Seconds to wait for the unit start job to finish (default: 1.0)
        remove_attempts: Attempts made to remove a cgroup directory (default: 5)
        remove_delay: Initial delay between removal attempts, doubled each time (default: 0.01)
        default_slice: Parent slice used when the spec names none (default: system.slice)
        scope_prefix: Prefix of generated scope unit names (default: cgunit)
        log_file: File written by setup_file_logging() (default: /var/log/cgunit/cgunit.log)
    """

    unified_mountpoint: str = "/sys/fs/cgroup"

    # systemd job completion
    unit_start_timeout: float = 1.0

    # Teardown retries; rmdir fails with EBUSY until the last task has left
    remove_attempts: int = 5
    remove_delay: float = 0.01

    # Unit naming
    default_slice: str = "system.slice"
    scope_prefix: str = "cgunit"

    # Logging
    log_file: str = "/var/log/cgunit/cgunit.log"

    @classmethod
    def from_env(cls) -> "CgunitConfig":
        """Create config from environment variables.

        Environment variables:
            CGUNIT_UNIFIED_MOUNTPOINT: cgroup2 mount point
            CGUNIT_UNIT_START_TIMEOUT: Unit start wait in seconds
            CGUNIT_REMOVE_ATTEMPTS: Number of cgroup removal attempts
            CGUNIT_REMOVE_DELAY: Initial removal retry delay in seconds
            CGUNIT_DEFAULT_SLICE: Parent slice for units without one
            CGUNIT_SCOPE_PREFIX: Prefix for generated scope names
            CGUNIT_LOG_FILE: Log file used with --log-file unset

        Returns:
            CgunitConfig instance with values from environment or defaults
        """
        return cls(
            unified_mountpoint=os.getenv(
                "CGUNIT_UNIFIED_MOUNTPOINT", cls.unified_mountpoint
            ),
            unit_start_timeout=float(
                os.getenv("CGUNIT_UNIT_START_TIMEOUT", cls.unit_start_timeout)
            ),
            remove_attempts=int(
                os.getenv("CGUNIT_REMOVE_ATTEMPTS", cls.remove_attempts)
            ),
            remove_delay=float(
                os.getenv("CGUNIT_REMOVE_DELAY", cls.remove_delay)
            ),
            default_slice=os.getenv("CGUNIT_DEFAULT_SLICE", cls.default_slice),
            scope_prefix=os.getenv("CGUNIT_SCOPE_PREFIX", cls.scope_prefix),
            log_file=os.getenv("CGUNIT_LOG_FILE", cls.log_file),
        )


# Global config instance (can be overridden)
_config: Optional[CgunitConfig] = None


def get_config() -> CgunitConfig:
    """Get the global cgunit configuration.

    Returns:
        CgunitConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = CgunitConfig.from_env()
    return _config


def set_config(config: Optional[CgunitConfig]):
    """Set the global cgunit configuration.

    Args:
        config: CgunitConfig instance to use globally, or None to reload
            from the environment on next access
    """
    global _config
    _config = config
