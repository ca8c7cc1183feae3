"""
scrcpy screen-mirroring sessions.

Each session gets one watcher thread that blocks until scrcpy exits and then
emits a single `scrcpy-response` event on the EventBus.
"""
import logging
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List

from droiddesk.adb_utils import AdbError
from droiddesk.config import ToolPaths
from droiddesk.models import MirrorEvent

logger = logging.getLogger(__name__)

Listener = Callable[[MirrorEvent], None]


class EventBus:
    """Thread-safe fan-out of mirror events to registered listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: MirrorEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed: {e}")


@dataclass
class MirrorSession:
    serial: str
    process: subprocess.Popen
    cancelled: threading.Event = field(default_factory=threading.Event)
    watcher: threading.Thread = None

    @property
    def pid(self) -> int:
        return self.process.pid


class MirrorManager:
    def __init__(self, tools: ToolPaths, bus: EventBus, timeout: float = 30.0, spawn=subprocess.Popen):
        self.tools = tools
        self.bus = bus
        self.timeout = timeout
        self._spawn = spawn
        self._lock = threading.Lock()
        self._sessions: Dict[str, MirrorSession] = {}

    # ============ TOOL CHECKS ============
    def check_scrcpy(self) -> bool:
        try:
            result = subprocess.run(
                [self.tools.scrcpy, "--version"], capture_output=True, timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def install_scrcpy(self) -> str:
        if sys.platform == "darwin":
            argv = ["brew", "install", "scrcpy"]
            failure = "Homebrew not found. Please install Homebrew or install scrcpy manually."
        elif sys.platform.startswith("win"):
            argv = ["winget", "install", "Genymobile.Scrcpy"]
            failure = ("Installation failed. Please install 'Genymobile.Scrcpy' manually "
                       "via Winget or download from GitHub.")
        else:
            raise AdbError(
                "Automatic installation not supported on Linux. Please install 'scrcpy' "
                "via your package manager (apt, dnf, pacman)."
            )

        try:
            result = subprocess.run(argv, capture_output=True, text=True)
        except OSError as e:
            logger.error(f"Failed to execute installation command: {e}")
            raise AdbError(failure)
        if result.returncode != 0:
            raise AdbError(f"Installation failed: {result.stderr.strip()}" if result.stderr.strip() else failure)
        return "scrcpy installed successfully"

    # ============ SESSIONS ============
    def start(self, serial: str) -> str:
        binary = Path(self.tools.scrcpy)
        # scrcpy loads its server jar and libraries from its own directory
        cwd = str(binary.parent) if binary.is_absolute() else None

        try:
            process = self._spawn([self.tools.scrcpy, "-s", serial], cwd=cwd)
        except OSError as e:
            raise AdbError(f"Failed to start scrcpy at {self.tools.scrcpy}: {e}")

        session = MirrorSession(serial=serial, process=process)
        session.watcher = threading.Thread(
            target=self._watch, args=(session,), name=f"scrcpy-watch-{process.pid}", daemon=True
        )
        with self._lock:
            self._sessions[f"{serial}:{process.pid}"] = session
        session.watcher.start()

        logger.info(f"Mirroring started for {serial} (PID: {process.pid})")
        return f"Mirroring Active (PID: {process.pid})"

    def _watch(self, session: MirrorSession) -> None:
        session.process.wait()
        with self._lock:
            self._sessions.pop(f"{session.serial}:{session.pid}", None)

        if session.cancelled.is_set():
            message = f"Session stopped (PID: {session.pid})"
        else:
            message = f"Session ended (PID: {session.pid})"
        logger.info(message)
        self.bus.emit(MirrorEvent(serial=session.serial, pid=session.pid, message=message))

    def _terminate(self, session: MirrorSession) -> None:
        session.cancelled.set()
        session.process.terminate()
        try:
            session.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            session.process.kill()

    def active_sessions(self) -> List[MirrorSession]:
        with self._lock:
            return list(self._sessions.values())

    def stop(self, serial: str) -> int:
        """Terminate every session mirroring `serial`; returns how many were stopped."""
        sessions = [s for s in self.active_sessions() if s.serial == serial]
        for session in sessions:
            self._terminate(session)
        return len(sessions)

    def stop_all(self) -> int:
        sessions = self.active_sessions()
        for session in sessions:
            self._terminate(session)
        return len(sessions)
