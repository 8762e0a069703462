"""Shared test fixtures for cgunit tests."""
import pytest

from cgunit.core.config import CgunitConfig, set_config
from cgunit.core.errors import TransportError
from cgunit.models.cgroup import Cgroup, Resources
from cgunit.services.systemd.client import SystemdClient


class FakeSystemdClient(SystemdClient):
    """In-memory stand-in for the systemd D-Bus API."""

    def __init__(self, start_error=None, stop_error=None, complete=True, result="done"):
        self.start_error = start_error
        self.stop_error = stop_error
        self.complete = complete
        self.result = result
        self.started = []
        self.stopped = []
        self.opened = 0
        self.closed = 0
        self.on_stop = None

    def open(self):
        self.opened += 1

    def close(self):
        self.closed += 1

    def start_transient_unit(self, name, mode, properties, completion=None):
        self.started.append((name, mode, list(properties)))
        if self.start_error is not None:
            raise self.start_error
        if self.complete and completion is not None:
            completion.put_nowait(self.result)

    def stop_unit(self, name, mode, completion=None):
        self.stopped.append((name, mode))
        if self.on_stop is not None:
            self.on_stop()
        if self.stop_error is not None:
            raise self.stop_error

    def properties_of(self, index=0):
        """Return the properties of a start request as a name -> value dict."""
        return {prop.name: prop.value for prop in self.started[index][2]}


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached global config around every test."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def fake_client():
    """Connected fake systemd client."""
    return FakeSystemdClient()


@pytest.fixture
def cgroup_root(tmp_path):
    """Temporary cgroup2 mount with cpu, memory and io available."""
    root = tmp_path / "cgroup"
    root.mkdir()
    (root / "cgroup.controllers").write_text("cpu memory io\n")
    set_config(CgunitConfig(unified_mountpoint=str(root), remove_delay=0))
    return root


@pytest.fixture
def basic_cgroup():
    """Scope for container 'web' under system.slice."""
    return Cgroup(name="web", scope_prefix="cgunit")


@pytest.fixture
def limited_cgroup():
    """Scope with memory and CPU weight limits but no CPU quota period."""
    return Cgroup(
        name="web",
        scope_prefix="cgunit",
        resources=Resources(
            memory=100 * 1024 * 1024,
            cpu_weight=512,
            cpu_quota=50000,
            cpu_period=0,
        ),
    )


@pytest.fixture
def transport_error():
    return TransportError("Connection refused", "org.freedesktop.DBus.Error.NoReply")
