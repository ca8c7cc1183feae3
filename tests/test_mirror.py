import subprocess
import threading
from unittest.mock import patch

import pytest

from conftest import SERIAL
from droiddesk.adb_utils import AdbError
from droiddesk.config import ToolPaths
from droiddesk.mirror import EventBus, MirrorManager
from droiddesk.models import MirrorEvent


class FakeProcess:
    """Stands in for a running scrcpy until terminate() or exit() is called."""

    def __init__(self, pid):
        self.pid = pid
        self._exited = threading.Event()
        self.terminated = False

    def wait(self, timeout=None):
        if not self._exited.wait(timeout):
            raise subprocess.TimeoutExpired("scrcpy", timeout)
        return 0

    def terminate(self):
        self.terminated = True
        self._exited.set()

    def kill(self):
        self._exited.set()

    def exit(self):
        self._exited.set()


class Spawner:
    def __init__(self):
        self.processes = []
        self.calls = []

    def __call__(self, argv, cwd=None):
        self.calls.append((argv, cwd))
        process = FakeProcess(4242 + len(self.processes))
        self.processes.append(process)
        return process


@pytest.fixture
def bus_events():
    bus = EventBus()
    events = []
    bus.subscribe(events.append)
    return bus, events


def wait_for_watchers(manager, sessions):
    for session in sessions:
        session.watcher.join(timeout=5)
    assert not manager.active_sessions()


class TestEventBus:
    def test_fan_out_and_unsubscribe(self):
        bus = EventBus()
        first, second = [], []
        bus.subscribe(first.append)
        unsubscribe = bus.subscribe(second.append)

        event = MirrorEvent(serial=SERIAL, pid=1, message="Session ended (PID: 1)")
        bus.emit(event)
        unsubscribe()
        bus.emit(event)

        assert first == [event, event]
        assert second == [event]

    def test_failing_listener_does_not_block_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise ValueError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.emit(MirrorEvent(serial=SERIAL, pid=1, message="x"))
        assert len(received) == 1


class TestMirrorManager:
    def test_start_and_natural_exit(self, bus_events):
        bus, events = bus_events
        spawn = Spawner()
        manager = MirrorManager(ToolPaths(scrcpy="scrcpy"), bus, spawn=spawn)

        assert manager.start(SERIAL) == "Mirroring Active (PID: 4242)"
        assert spawn.calls == [(["scrcpy", "-s", SERIAL], None)]
        sessions = manager.active_sessions()
        assert len(sessions) == 1

        spawn.processes[0].exit()
        wait_for_watchers(manager, sessions)

        assert events == [MirrorEvent(serial=SERIAL, pid=4242, message="Session ended (PID: 4242)")]

    def test_stop_reports_cancellation_once(self, bus_events):
        bus, events = bus_events
        spawn = Spawner()
        manager = MirrorManager(ToolPaths(scrcpy="scrcpy"), bus, spawn=spawn)
        manager.start(SERIAL)
        manager.start("R58N123")
        sessions = manager.active_sessions()

        assert manager.stop(SERIAL) == 1
        assert spawn.processes[0].terminated
        assert not spawn.processes[1].terminated

        next(s for s in sessions if s.serial == SERIAL).watcher.join(timeout=5)
        assert manager.stop_all() == 1
        wait_for_watchers(manager, sessions)

        assert sorted((e.serial, e.message) for e in events) == [
            ("R58N123", "Session stopped (PID: 4243)"),
            (SERIAL, "Session stopped (PID: 4242)"),
        ]

    def test_stop_unknown_serial(self, bus_events):
        bus, _ = bus_events
        manager = MirrorManager(ToolPaths(), bus, spawn=Spawner())
        assert manager.stop(SERIAL) == 0

    def test_bundled_binary_runs_from_its_directory(self, bus_events, tmp_path):
        bus, _ = bus_events
        spawn = Spawner()
        binary = tmp_path / "scrcpy"
        manager = MirrorManager(ToolPaths(scrcpy=str(binary)), bus, spawn=spawn)

        manager.start(SERIAL)
        assert spawn.calls[0][1] == str(tmp_path)
        manager.stop_all()

    def test_spawn_failure(self, bus_events):
        bus, events = bus_events

        def missing(argv, cwd=None):
            raise FileNotFoundError("scrcpy")

        manager = MirrorManager(ToolPaths(), bus, spawn=missing)
        with pytest.raises(AdbError, match="Failed to start scrcpy"):
            manager.start(SERIAL)
        assert events == []
        assert manager.active_sessions() == []

    def test_check_scrcpy(self, bus_events):
        bus, _ = bus_events
        manager = MirrorManager(ToolPaths(), bus)
        ok = subprocess.CompletedProcess([], 0, b"scrcpy 2.4", b"")
        with patch("droiddesk.mirror.subprocess.run", return_value=ok):
            assert manager.check_scrcpy()
        with patch("droiddesk.mirror.subprocess.run", side_effect=FileNotFoundError("scrcpy")):
            assert not manager.check_scrcpy()

    def test_install_unsupported_on_linux(self, bus_events):
        bus, _ = bus_events
        manager = MirrorManager(ToolPaths(), bus)
        with patch("droiddesk.mirror.sys.platform", "linux"):
            with pytest.raises(AdbError, match="not supported on Linux"):
                manager.install_scrcpy()
