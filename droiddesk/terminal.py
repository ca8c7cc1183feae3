"""Shell passthrough and logcat retrieval."""
from droiddesk.adb_utils import AdbRunner


def run_adb_command(runner: AdbRunner, serial: str, command: str) -> str:
    return runner.checked(["-s", serial, "shell", command])


def get_adb_logs(runner: AdbRunner, serial: str, lines: int = 500) -> str:
    """Dump the last `lines` logcat lines and exit (-d)."""
    return runner.checked(["-s", serial, "logcat", "-d", "-t", str(lines)])
