import logging
import shlex
from typing import List

from droiddesk.adb_utils import AdbRunner
from droiddesk.models import FileEntry
from droiddesk.parsers import parse_ls_output

logger = logging.getLogger(__name__)


def list_files(runner: AdbRunner, serial: str, path: str) -> List[FileEntry]:
    """List a remote directory with `ls -l`; unparsable lines are dropped."""
    out = runner.checked(["-s", serial, "shell", "ls", "-l", shlex.quote(path)])
    return [FileEntry(**e) for e in parse_ls_output(out, path)]


def download_file(runner: AdbRunner, serial: str, path: str, destination: str) -> str:
    runner.checked(["-s", serial, "pull", path, destination])
    return "Download successful"


def upload_file(runner: AdbRunner, serial: str, local_path: str, remote_path: str) -> str:
    runner.checked(["-s", serial, "push", local_path, remote_path])
    return "Upload successful"


def read_file_content(runner: AdbRunner, serial: str, path: str) -> bytes:
    """Raw bytes of a remote file; callers check the size beforehand."""
    return runner.read_bytes(["-s", serial, "exec-out", "cat", path])


def delete_file(runner: AdbRunner, serial: str, path: str) -> str:
    runner.checked(["-s", serial, "shell", "rm", "-f", "-r", shlex.quote(path)])
    logger.info(f"Deleted {path} on {serial}")
    return "Delete successful"


def create_folder(runner: AdbRunner, serial: str, path: str) -> str:
    runner.checked(["-s", serial, "shell", "mkdir", "-p", shlex.quote(path)])
    return "Folder created"


def move_file(runner: AdbRunner, serial: str, source: str, destination: str) -> str:
    runner.checked(["-s", serial, "shell", "mv", shlex.quote(source), shlex.quote(destination)])
    return "Move successful"


def rename_file(runner: AdbRunner, serial: str, path: str, new_name: str) -> str:
    parent = path.rstrip("/").rsplit("/", 1)[0]
    move_file(runner, serial, path, f"{parent}/{new_name}")
    return "Rename successful"


def copy_file(runner: AdbRunner, serial: str, source: str, destination: str) -> str:
    runner.checked(["-s", serial, "shell", "cp", "-r", shlex.quote(source), shlex.quote(destination)])
    return "Copy successful"
