import logging
from typing import List

from droiddesk.adb_utils import AdbError, AdbRunner
from droiddesk.models import AppPackage, PackageDetails
from droiddesk.parsers import (
    parse_disabled_packages, parse_du_size, parse_package_dump, parse_package_list,
)

logger = logging.getLogger(__name__)


def _pm(serial: str, *args: str) -> List[str]:
    return ["-s", serial, "shell", "pm"] + list(args)


def list_packages(runner: AdbRunner, serial: str, include_system: bool = False) -> List[AppPackage]:
    """Third-party (and optionally system) packages sorted by package id."""
    try:
        disabled = parse_disabled_packages(runner.run(_pm(serial, "list", "packages", "-d")).stdout)
    except AdbError as e:
        logger.warning(f"Could not read disabled packages: {e}")
        disabled = set()

    packages = parse_package_list(
        runner.run(_pm(serial, "list", "packages", "-f", "-3")).stdout, disabled, is_system=False
    )
    if include_system:
        packages += parse_package_list(
            runner.run(_pm(serial, "list", "packages", "-f", "-s")).stdout, disabled, is_system=True
        )

    packages.sort(key=lambda p: p["package_id"])
    return [AppPackage(**p) for p in packages]


def get_package_details(runner: AdbRunner, serial: str, package: str) -> PackageDetails:
    out = runner.checked(["-s", serial, "shell", "dumpsys", "package", package])
    details = parse_package_dump(out)

    size = "Unknown"
    if details["path"]:
        try:
            size = parse_du_size(runner.run(["-s", serial, "shell", "du", "-h", details["path"]]).stdout)
        except AdbError as e:
            logger.warning(f"Could not size {details['path']}: {e}")

    return PackageDetails(package_id=package, size=size, **details)


def install_package(runner: AdbRunner, serial: str, path: str) -> str:
    result = runner.run(["-s", serial, "install", "-r", path])
    if "Success" in result.stdout:
        return "Installed successfully"
    raise AdbError(result.error_message("Install failed"))


def uninstall_package(runner: AdbRunner, serial: str, package: str) -> str:
    result = runner.run(_pm(serial, "uninstall", package))
    if "Success" in result.stdout:
        return "Uninstalled successfully"
    raise AdbError(result.stdout.strip() or "Uninstall failed")


def _pm_action(runner: AdbRunner, serial: str, *args: str) -> None:
    # pm reports some failures on stderr with a zero exit status
    result = runner.run(_pm(serial, *args))
    if not result.ok or "Error" in result.stderr or "Failure" in result.stderr:
        raise AdbError(result.error_message())


def enable_package(runner: AdbRunner, serial: str, package: str) -> None:
    _pm_action(runner, serial, "enable", package)


def disable_package(runner: AdbRunner, serial: str, package: str) -> None:
    _pm_action(runner, serial, "disable-user", "--user", "0", package)


def clear_package_data(runner: AdbRunner, serial: str, package: str) -> None:
    _pm_action(runner, serial, "clear", package)


def force_stop_package(runner: AdbRunner, serial: str, package: str) -> None:
    runner.checked(["-s", serial, "shell", "am", "force-stop", package])


def launch_package(runner: AdbRunner, serial: str, package: str) -> None:
    runner.checked([
        "-s", serial, "shell", "monkey", "-p", package,
        "-c", "android.intent.category.LAUNCHER", "1",
    ])
