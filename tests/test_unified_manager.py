"""Tests for the systemd-driven cgroup v2 manager."""
import threading

import pytest

from cgunit.core.config import CgunitConfig, set_config
from cgunit.core.errors import (
    ConfigurationAmbiguousError,
    DelegationError,
    FilesystemError,
    PathInconsistencyError,
    RemovePathsError,
    TransportError,
    UnitExistsError,
)
from cgunit.models.cgroup import Cgroup, Controller, FreezerState, Resources, Stats
from cgunit.services.systemd import manager as manager_module
from cgunit.services.systemd.manager import UnifiedManager
from cgunit.services.systemd.paths import unified_paths

from conftest import FakeSystemdClient


class RecordingFsManager:
    """Filesystem manager double that records every call."""

    instances = []

    def __init__(self, cgroup, path, rootless):
        self.cgroup = cgroup
        self.path = path
        self.rootless = rootless
        self.calls = []
        RecordingFsManager.instances.append(self)

    def freeze(self, state):
        self.calls.append(("freeze", state))

    def get_stats(self):
        self.calls.append(("get_stats",))
        return Stats()

    def set(self, resources):
        self.calls.append(("set", resources))


@pytest.fixture
def recording_fs():
    RecordingFsManager.instances = []
    return RecordingFsManager


def scope_path(root):
    return root / "system.slice" / "cgunit-web.scope"


class TestApply:

    def test_end_to_end(self, cgroup_root, fake_client, limited_cgroup):
        manager = UnifiedManager(limited_cgroup, client=fake_client)

        manager.apply(4242)

        name, mode, _ = fake_client.started[0]
        assert (name, mode) == ("cgunit-web.scope", "replace")
        props = fake_client.properties_of()
        assert props["MemoryMax"] == 104857600
        assert props["CPUWeight"] == 512
        assert props["PIDs"] == [4242]
        assert "CPUQuotaPerSecUSec" not in props

        leaf = scope_path(cgroup_root)
        assert leaf.is_dir()
        assert (cgroup_root / "cgroup.subtree_control").read_text() == "+cpu +memory +io"
        assert (cgroup_root / "system.slice" / "cgroup.subtree_control").read_text() == "+cpu +memory +io"
        assert not (leaf / "cgroup.subtree_control").exists()

        paths = manager.get_paths()
        assert set(paths) == {c.value for c in Controller}
        assert set(paths.values()) == {str(leaf)}
        assert manager.get_unified_path() == str(leaf)

    def test_reapply_existing_unit(self, cgroup_root, basic_cgroup):
        client = FakeSystemdClient(start_error=UnitExistsError("exists", "org.freedesktop.systemd1.UnitExists"))
        manager = UnifiedManager(basic_cgroup, client=client)

        manager.apply(-1)

        assert manager.get_unified_path() == str(scope_path(cgroup_root))

    def test_transport_error_aborts(self, cgroup_root, basic_cgroup, transport_error):
        client = FakeSystemdClient(start_error=transport_error)
        manager = UnifiedManager(basic_cgroup, client=client)

        with pytest.raises(TransportError):
            manager.apply(-1)

        assert manager.get_paths() == {}
        assert not (cgroup_root / "system.slice").exists()

    def test_tree_failure_leaves_manager_unbound(self, cgroup_root, fake_client, basic_cgroup):
        (cgroup_root / "cgroup.controllers").unlink()
        manager = UnifiedManager(basic_cgroup, client=fake_client)

        with pytest.raises(FilesystemError):
            manager.apply(-1)

        assert len(fake_client.started) == 1
        assert manager.get_paths() == {}

        # the orphaned unit can still be stopped
        manager.destroy()
        assert fake_client.stopped == [("cgunit-web.scope", "replace")]

    def test_requires_client(self, cgroup_root, basic_cgroup):
        with pytest.raises(ValueError):
            UnifiedManager(basic_cgroup).apply(-1)


class TestPreProvisioned:

    @pytest.fixture
    def provisioned(self, tmp_path):
        path = tmp_path / "provisioned"
        path.mkdir()
        (path / "cgroup.procs").write_text("")
        return Cgroup(name="web", paths=unified_paths(str(path))), path

    def test_apply_joins_paths_without_systemd(self, provisioned, fake_client, monkeypatch):
        cgroup, path = provisioned

        def fail(*args, **kwargs):
            raise AssertionError("delegation writer must not run")

        monkeypatch.setattr(manager_module, "prepare_tree", fail)
        manager = UnifiedManager(cgroup, client=fake_client)

        manager.apply(1234)

        assert fake_client.started == []
        assert fake_client.opened == 0
        assert "1234" in (path / "cgroup.procs").read_text()
        assert manager.get_paths() == cgroup.paths

    def test_apply_copies_paths(self, provisioned):
        cgroup, _ = provisioned
        manager = UnifiedManager(cgroup)

        manager.apply(-1)
        cgroup.paths["memory"] = "/elsewhere"

        assert manager.get_paths()["memory"] != "/elsewhere"

    def test_destroy_is_a_no_op(self, provisioned, fake_client):
        cgroup, path = provisioned
        manager = UnifiedManager(cgroup, client=fake_client)
        manager.apply(-1)

        manager.destroy()

        assert path.is_dir()
        assert fake_client.stopped == []
        assert manager.get_paths() == cgroup.paths


class TestDestroy:

    def test_destroy_after_apply(self, cgroup_root, fake_client, basic_cgroup):
        manager = UnifiedManager(basic_cgroup, client=fake_client)
        manager.apply(-1)

        manager.destroy()

        assert fake_client.stopped == [("cgunit-web.scope", "replace")]
        assert not scope_path(cgroup_root).exists()
        assert (cgroup_root / "system.slice").is_dir()
        assert manager.get_paths() == {}

    def test_destroy_unbound_removes_nothing(self, cgroup_root, fake_client, basic_cgroup, monkeypatch):
        removed = []
        monkeypatch.setattr(manager_module.procs, "remove_paths", lambda paths: removed.append(dict(paths)))
        manager = UnifiedManager(basic_cgroup, client=fake_client)

        manager.destroy()

        assert removed == [{}]
        assert manager.get_paths() == {}

    def test_destroy_ignores_stop_errors(self, cgroup_root, basic_cgroup, transport_error):
        client = FakeSystemdClient(stop_error=transport_error)
        manager = UnifiedManager(basic_cgroup, client=client)
        manager.apply(-1)

        manager.destroy()

        assert manager.get_paths() == {}

    def test_removal_failure_keeps_paths(self, cgroup_root, fake_client, basic_cgroup):
        set_config(CgunitConfig(unified_mountpoint=str(cgroup_root), remove_attempts=2, remove_delay=0))
        manager = UnifiedManager(basic_cgroup, client=fake_client)
        manager.apply(-1)
        leaf = scope_path(cgroup_root)
        # a regular file keeps rmdir from succeeding
        (leaf / "pinned").write_text("")

        with pytest.raises(RemovePathsError):
            manager.destroy()

        assert manager.get_unified_path() == str(leaf)

        (leaf / "pinned").unlink()
        manager.destroy()
        assert manager.get_paths() == {}

    def test_get_paths_during_destroy_is_atomic(self, cgroup_root, fake_client, basic_cgroup):
        manager = UnifiedManager(basic_cgroup, client=fake_client)
        manager.apply(-1)
        before = manager.get_paths()

        stopping = threading.Event()
        release = threading.Event()

        def block():
            stopping.set()
            release.wait(5)

        fake_client.on_stop = block
        destroyer = threading.Thread(target=manager.destroy)
        destroyer.start()
        assert stopping.wait(5)

        seen = []
        reader = threading.Thread(target=lambda: seen.append(manager.get_paths()))
        reader.start()
        reader.join(0.1)
        assert reader.is_alive()

        release.set()
        destroyer.join(5)
        reader.join(5)

        assert len(before) == len(Controller)
        assert seen == [{}]


class TestDelegatedCalls:

    def test_fresh_fs_manager_per_call(self, recording_fs, basic_cgroup):
        manager = UnifiedManager(
            basic_cgroup,
            paths=unified_paths("/sys/fs/cgroup/system.slice/cgunit-web.scope"),
            fs_manager_factory=recording_fs,
        )
        resources = Resources(memory=1 << 20)

        manager.freeze(FreezerState.FROZEN)
        stats = manager.get_stats()
        manager.set(resources)

        assert isinstance(stats, Stats)
        assert len(recording_fs.instances) == 3
        for instance in recording_fs.instances:
            assert instance.cgroup is basic_cgroup
            assert instance.path == "/sys/fs/cgroup/system.slice/cgunit-web.scope"
            assert instance.rootless is False
        assert recording_fs.instances[0].calls == [("freeze", FreezerState.FROZEN)]
        assert recording_fs.instances[1].calls == [("get_stats",)]
        assert recording_fs.instances[2].calls == [("set", resources)]

    def test_unbound_manager_refuses(self, recording_fs, basic_cgroup):
        manager = UnifiedManager(basic_cgroup, fs_manager_factory=recording_fs)

        with pytest.raises(ConfigurationAmbiguousError):
            manager.freeze(FreezerState.FROZEN)
        with pytest.raises(ConfigurationAmbiguousError):
            manager.get_pids()
        assert recording_fs.instances == []

    def test_inconsistent_paths_refused(self, recording_fs, basic_cgroup):
        paths = unified_paths("/a")
        paths["cpu"] = "/b"
        manager = UnifiedManager(basic_cgroup, paths=paths, fs_manager_factory=recording_fs)

        with pytest.raises(PathInconsistencyError):
            manager.get_stats()
        with pytest.raises(PathInconsistencyError):
            manager.get_all_pids()

    def test_pids(self, tmp_path, basic_cgroup):
        leaf = tmp_path / "cg"
        child = leaf / "child"
        child.mkdir(parents=True)
        (leaf / "cgroup.procs").write_text("10\n11\n")
        (child / "cgroup.procs").write_text("12\n")
        manager = UnifiedManager(basic_cgroup, paths=unified_paths(str(leaf)))

        assert manager.get_pids() == [10, 11]
        assert sorted(manager.get_all_pids()) == [10, 11, 12]

    def test_pids_of_missing_cgroup(self, tmp_path, basic_cgroup):
        manager = UnifiedManager(basic_cgroup, paths=unified_paths(str(tmp_path / "gone")))

        with pytest.raises(FilesystemError):
            manager.get_pids()
        with pytest.raises(FilesystemError):
            manager.get_all_pids()

    def test_get_cgroups(self, basic_cgroup):
        assert UnifiedManager(basic_cgroup).get_cgroups() is basic_cgroup

    def test_get_paths_returns_copy(self, basic_cgroup):
        manager = UnifiedManager(basic_cgroup, paths=unified_paths("/a"))
        manager.get_paths()["cpu"] = "/b"
        assert manager.get_unified_path() == "/a"


def test_delegation_error_type(cgroup_root, fake_client, basic_cgroup, monkeypatch):
    def fail(path, mountpoint=None):
        raise DelegationError("boom")

    monkeypatch.setattr(manager_module, "prepare_tree", fail)
    manager = UnifiedManager(basic_cgroup, client=fake_client)

    with pytest.raises(DelegationError):
        manager.apply(-1)
    assert manager.get_paths() == {}
