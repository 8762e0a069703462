"""Clients for the systemd manager D-Bus API."""
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from cgunit.core.errors import TransportError, UnitExistsError
from cgunit.core.logger import get_logger
from cgunit.models.cgroup import Property

logger = get_logger(__name__)

SYSTEMD_BUS_NAME = "org.freedesktop.systemd1"
SYSTEMD_OBJECT_PATH = "/org/freedesktop/systemd1"
MANAGER_INTERFACE = "org.freedesktop.systemd1.Manager"
JOB_INTERFACE = "org.freedesktop.systemd1.Job"
UNIT_INTERFACE = "org.freedesktop.systemd1.Unit"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
UNIT_EXISTS_ERROR = "org.freedesktop.systemd1.UnitExists"


class SystemdClient(ABC):
    """Abstract interface to the systemd manager."""

    @abstractmethod
    def open(self) -> None:
        """Connect to the system bus."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Drop the bus connection."""
        pass

    @abstractmethod
    def start_transient_unit(
        self,
        name: str,
        mode: str,
        properties: List[Property],
        completion: Optional["queue.Queue[str]"] = None,
    ) -> None:
        """Ask systemd to start a transient unit.

        Args:
            name: Unit name (.scope or .slice)
            mode: Job mode, e.g. "replace"
            properties: Unit properties
            completion: Receives the job result ("done", "failed", ...) once
                the start job has finished

        Raises:
            UnitExistsError: If the unit is already loaded
            TransportError: For any other bus failure
        """
        pass

    @abstractmethod
    def stop_unit(
        self,
        name: str,
        mode: str,
        completion: Optional["queue.Queue[str]"] = None,
    ) -> None:
        """Ask systemd to stop a unit.

        Raises:
            TransportError: If the request fails
        """
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class DbusSystemdClient(SystemdClient):
    """systemd manager client over dbus-python."""

    def __init__(self, mock: bool = False, poll_interval: float = 0.02, poll_timeout: float = 30.0):
        """Initialize client.

        Args:
            mock: If True, log requests instead of sending them
            poll_interval: Seconds between job state checks
            poll_timeout: Seconds after which job tracking gives up
        """
        self.mock = mock
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._dbus = None
        self._bus = None
        self._manager = None

    def open(self) -> None:
        if self.mock or self._bus is not None:
            return

        try:
            import dbus
        except ImportError as e:
            raise TransportError(
                "dbus-python is not installed; install cgunit[systemd] or run with --mock"
            ) from e

        self._dbus = dbus
        try:
            self._bus = dbus.SystemBus(private=True)
            self._manager = self._manager_interface(self._bus)
        except dbus.exceptions.DBusException as e:
            self._bus = None
            raise TransportError(f"Cannot connect to systemd: {e}", e.get_dbus_name()) from e
        logger.debug("Connected to systemd on the system bus")

    def close(self) -> None:
        if self._bus is None:
            return
        try:
            self._bus.close()
        finally:
            self._bus = None
            self._manager = None

    def start_transient_unit(self, name, mode, properties, completion=None):
        if self.mock:
            logger.info(f"MOCK: Would start transient unit {name} ({len(properties)} properties)")
            _report(completion, "done")
            return

        manager = self._require_manager()
        dbus = self._dbus
        payload = dbus.Array(
            [self._marshal(prop) for prop in properties], signature="(sv)"
        )
        aux = dbus.Array([], signature="(sa(sv))")
        try:
            job_path = manager.StartTransientUnit(name, mode, payload, aux)
        except dbus.exceptions.DBusException as e:
            raise _translate(e, f"StartTransientUnit({name})") from e

        if completion is not None:
            self._track_job(str(job_path), name, completion)

    def stop_unit(self, name, mode, completion=None):
        if self.mock:
            logger.info(f"MOCK: Would stop unit {name}")
            _report(completion, "done")
            return

        manager = self._require_manager()
        try:
            job_path = manager.StopUnit(name, mode)
        except self._dbus.exceptions.DBusException as e:
            raise _translate(e, f"StopUnit({name})") from e

        if completion is not None:
            self._track_job(str(job_path), name, completion)

    def _require_manager(self):
        if self._manager is None:
            raise TransportError("systemd client is not connected")
        return self._manager

    def _manager_interface(self, bus):
        obj = bus.get_object(SYSTEMD_BUS_NAME, SYSTEMD_OBJECT_PATH)
        return self._dbus.Interface(obj, MANAGER_INTERFACE)

    def _marshal(self, prop: Property):
        dbus = self._dbus
        converters = {
            "s": dbus.String,
            "b": dbus.Boolean,
            "u": dbus.UInt32,
            "t": dbus.UInt64,
            "i": dbus.Int32,
            "x": dbus.Int64,
            "as": lambda v: dbus.Array([dbus.String(i) for i in v], signature="s"),
            "au": lambda v: dbus.Array([dbus.UInt32(i) for i in v], signature="u"),
        }
        convert = converters.get(prop.signature)
        if convert is None:
            raise TransportError(
                f"Unsupported signature '{prop.signature}' for property {prop.name}"
            )
        return dbus.Struct((prop.name, convert(prop.value)), signature="sv")

    def _track_job(self, job_path: str, unit: str, completion: "queue.Queue[str]") -> None:
        """Report the job result on ``completion`` from a background thread.

        dbus-python cannot deliver JobRemoved without a main loop, so the job
        object is polled on a private connection until it disappears.
        """
        thread = threading.Thread(
            target=self._poll_job,
            args=(job_path, unit, completion),
            name=f"cgunit-job-{unit}",
            daemon=True,
        )
        thread.start()

    def _poll_job(self, job_path: str, unit: str, completion: "queue.Queue[str]") -> None:
        dbus = self._dbus
        bus = dbus.SystemBus(private=True)
        try:
            deadline = time.monotonic() + self.poll_timeout
            while time.monotonic() < deadline:
                try:
                    job = bus.get_object(SYSTEMD_BUS_NAME, job_path)
                    dbus.Interface(job, PROPERTIES_INTERFACE).Get(JOB_INTERFACE, "State")
                except dbus.exceptions.DBusException:
                    # Job object is gone once the job has finished
                    _report(completion, self._unit_result(bus, unit))
                    return
                time.sleep(self.poll_interval)
            logger.debug(f"Gave up tracking job {job_path} for {unit}")
        finally:
            bus.close()

    def _unit_result(self, bus, unit: str) -> str:
        dbus = self._dbus
        try:
            unit_path = self._manager_interface(bus).GetUnit(unit)
            props = dbus.Interface(bus.get_object(SYSTEMD_BUS_NAME, unit_path), PROPERTIES_INTERFACE)
            state = str(props.Get(UNIT_INTERFACE, "ActiveState"))
        except dbus.exceptions.DBusException:
            return "done"
        return "failed" if state == "failed" else "done"


def _report(completion: Optional["queue.Queue[str]"], result: str) -> None:
    if completion is None:
        return
    try:
        completion.put_nowait(result)
    except queue.Full:
        pass


def _translate(error, request: str) -> TransportError:
    name = error.get_dbus_name()
    if name == UNIT_EXISTS_ERROR:
        return UnitExistsError(f"{request}: {error}", name)
    return TransportError(f"{request} failed: {error}", name)
