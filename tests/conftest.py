"""Shared fixtures: a scripted AdbRunner that never spawns a process."""
import re
import subprocess

import pytest

from droiddesk.adb_utils import MULTI_MARKER, AdbRunner, ProcessResult
from droiddesk.config import ToolPaths

SERIAL = "emulator-5554"


class FakeRunner(AdbRunner):
    """
    AdbRunner with canned output.

    `shell` maps a single `adb -s <serial> shell <cmd>` string to its stdout;
    `commands` maps any other argument tuple (without the adb binary) to
    stdout. Values may also be a ProcessResult or an exception to raise.
    Anything unscripted exits 1.
    """

    def __init__(self, shell=None, commands=None, files=None):
        super().__init__(ToolPaths(adb="adb", scrcpy="scrcpy"), timeout=5)
        self.shell_outputs = shell or {}
        self.commands = commands or {}
        self.files = files or {}
        self.calls = []

    def _exec(self, argv):
        args = tuple(argv[1:])
        self.calls.append(args)
        if len(args) == 4 and args[0] == "-s" and args[2] == "shell":
            cmd = args[3]
            if MULTI_MARKER in cmd:
                return ProcessResult(0, self._multi(cmd), "")
            return self._result(self.shell_outputs.get(cmd))
        return self._result(self.commands.get(args))

    def _exec_bytes(self, argv):
        path = argv[-1]
        if path in self.files:
            return subprocess.CompletedProcess(argv, 0, self.files[path], b"")
        return subprocess.CompletedProcess(argv, 1, b"", b"cat: No such file or directory")

    def _multi(self, combined):
        lines = []
        for marker, cmd in re.findall(rf"echo ({MULTI_MARKER}\d+); (.*?); ", combined):
            lines.append(marker)
            value = self.shell_outputs.get(cmd)
            if isinstance(value, str):
                lines.append(value)
        return "\n".join(lines)

    @staticmethod
    def _result(value):
        if value is None:
            return ProcessResult(1, "", "not scripted")
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, ProcessResult):
            return value
        return ProcessResult(0, value, "")

    def shell_calls(self):
        return [c[3] for c in self.calls if len(c) == 4 and c[2] == "shell"]


@pytest.fixture
def make_runner():
    return FakeRunner
