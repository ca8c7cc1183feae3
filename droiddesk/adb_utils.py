import subprocess
import logging
from dataclasses import dataclass
from typing import List, Optional

from droiddesk.config import ToolPaths
from droiddesk.parsers import normalize_value

logger = logging.getLogger(__name__)

MULTI_MARKER = "__ADB_MULTI__"


class AdbError(RuntimeError):
    """A tool invocation failed; the message is shown to the user as-is."""


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def error_message(self, default: str = "Command failed") -> str:
        stderr = self.stderr.strip()
        return stderr or default


class AdbRunner:
    """
    Invokes adb with fixed argument lists and captures its output.

    Hard-path helpers (`checked`, `shell_action`) raise AdbError; the
    soft-path `shell` returns None on any failure so builders can degrade a
    single field instead of the whole record.
    """

    def __init__(self, tools: ToolPaths, timeout: float = 30.0):
        self.tools = tools
        self.timeout = timeout

    def _exec(self, argv: List[str]) -> ProcessResult:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=self.timeout,
        )
        return ProcessResult(result.returncode, result.stdout or "", result.stderr or "")

    def _exec_bytes(self, argv: List[str]) -> subprocess.CompletedProcess:
        return subprocess.run(argv, capture_output=True, timeout=self.timeout)

    def run(self, args: List[str]) -> ProcessResult:
        """
        Run adb with args and return its result whatever the exit status.
        Raises AdbError if adb cannot be spawned or times out.
        """
        argv = [self.tools.adb] + list(args)
        try:
            result = self._exec(argv)
        except subprocess.TimeoutExpired:
            logger.error(f"ADB command timeout: {' '.join(args)}")
            raise AdbError("Command timed out")
        except OSError as e:
            logger.error(f"Failed to execute adb: {e}")
            raise AdbError(f"Failed to execute adb: {e}")
        logger.info(f"ADB command executed: {' '.join(args)[:50]}...")
        return result

    def checked(self, args: List[str]) -> str:
        """Run adb and return stdout; a non-zero exit raises AdbError with stderr."""
        result = self.run(args)
        if not result.ok:
            logger.error(f"ADB command failed: {' '.join(args)} - {result.stderr.strip()}")
            raise AdbError(result.error_message())
        return result.stdout

    def read_bytes(self, args: List[str]) -> bytes:
        argv = [self.tools.adb] + list(args)
        try:
            result = self._exec_bytes(argv)
        except subprocess.TimeoutExpired:
            logger.error(f"ADB command timeout: {' '.join(args)}")
            raise AdbError("Command timed out")
        except OSError as e:
            raise AdbError(f"Failed to execute adb: {e}")
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise AdbError(stderr or "Command failed")
        return result.stdout

    def shell(self, serial: str, cmd: str) -> Optional[str]:
        """
        Run an adb shell command and return trimmed stdout.
        Returns None on failure or when the output is empty/"null"/"unknown".
        """
        try:
            result = self.run(["-s", serial, "shell", cmd])
        except AdbError:
            return None
        if not result.ok:
            return None
        return normalize_value(result.stdout)

    def shell_action(self, serial: str, cmd: str) -> None:
        """Run a shell command for its side effect; raises AdbError on failure."""
        result = self.run(["-s", serial, "shell", cmd])
        if not result.ok:
            raise AdbError(result.error_message())

    def shell_multi(self, serial: str, cmds: List[str]) -> List[Optional[str]]:
        """
        Run multiple adb shell commands in a single call.

        Uses a marker line to split outputs safely, and returns a list of outputs
        aligned with the input commands.
        """
        if not cmds:
            return []

        combined = ""
        for i, cmd in enumerate(cmds):
            combined += f"echo {MULTI_MARKER}{i}; {cmd}; "

        # exit status only reflects the last command, so the output is read either way
        try:
            output = self.run(["-s", serial, "shell", combined]).stdout
        except AdbError:
            return [None] * len(cmds)

        results: List[Optional[str]] = [None] * len(cmds)
        current = -1
        buffer = []

        for line in output.splitlines():
            if line.startswith(MULTI_MARKER):
                if 0 <= current < len(cmds):
                    results[current] = normalize_value("\n".join(buffer))
                buffer = []
                try:
                    current = int(line[len(MULTI_MARKER):])
                except ValueError:
                    current += 1
            else:
                if current >= 0:
                    buffer.append(line)

        if 0 <= current < len(cmds):
            results[current] = normalize_value("\n".join(buffer))

        return results

    def settings_get(self, serial: str, namespace: str, key: str) -> Optional[str]:
        return self.shell(serial, f"settings get {namespace} {key}")

    def getprop(self, serial: str, prop: str) -> Optional[str]:
        return self.shell(serial, f"getprop {prop}")
