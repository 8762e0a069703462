"""Start and stop systemd transient units."""
import queue
from typing import List, Optional

from cgunit.core.config import get_config
from cgunit.core.errors import TransportError, UnitExistsError
from cgunit.core.logger import get_logger
from cgunit.models.cgroup import Property
from cgunit.services.systemd.client import SystemdClient

logger = get_logger(__name__)


class UnitLauncher:
    """Creates transient units and tears them down again."""

    def __init__(self, client: SystemdClient, timeout: Optional[float] = None):
        """Initialize launcher.

        Args:
            client: Open systemd client
            timeout: Seconds to wait for the start job (default: config unit_start_timeout)
        """
        self.client = client
        self.timeout = timeout if timeout is not None else get_config().unit_start_timeout

    def ensure_unit(self, name: str, properties: List[Property]) -> None:
        """Start a transient unit, accepting one that already exists.

        A start job that has not reported back within the timeout is assumed
        to still be running; a unit that never appears surfaces later when its
        cgroup path is prepared.

        Raises:
            TransportError: If systemd rejects the request for any reason
                other than the unit already existing
        """
        completion: "queue.Queue[str]" = queue.Queue(maxsize=1)
        try:
            self.client.start_transient_unit(name, "replace", properties, completion)
        except UnitExistsError:
            logger.debug(f"Unit {name} already exists, keeping its current properties")
            return

        try:
            result = completion.get(timeout=self.timeout)
        except queue.Empty:
            logger.warning(
                f"Timed out while waiting for StartTransientUnit({name}) completion signal from dbus. Continuing..."
            )
            return

        if result != "done":
            logger.warning(f"Start job for {name} finished with result '{result}'")
        else:
            logger.debug(f"Started transient unit {name}")

    def stop_unit(self, name: str) -> None:
        """Stop a unit, ignoring failures."""
        try:
            self.client.stop_unit(name, "replace", None)
        except TransportError as e:
            logger.debug(f"Ignoring failure to stop {name}: {e}")
