"""Device discovery, connection and the device-information record."""
import logging
from typing import List, Optional

from droiddesk.adb_utils import AdbError, AdbRunner
from droiddesk.models import AdbDevice, DeviceProperties
from droiddesk.parsers import (
    decode_battery_health, decode_battery_status, format_kb, format_temperature,
    parse_devices_output, parse_df_output, parse_dumpsys_value, parse_key_value_block,
    parse_meminfo,
)

logger = logging.getLogger(__name__)

# field name -> getprop key, fetched in one shell round trip
PROPERTY_KEYS = {
    "android_version": "ro.build.version.release",
    "sdk_version": "ro.build.version.sdk",
    "security_patch": "ro.build.version.security_patch",
    "build_id": "ro.build.display.id",
    "build_fingerprint": "ro.build.fingerprint",
    "manufacturer": "ro.product.manufacturer",
    "brand": "ro.product.brand",
    "model": "ro.product.model",
    "device": "ro.product.device",
    "hardware": "ro.hardware",
    "board": "ro.product.board",
    "platform": "ro.board.platform",
    "cpu_abi": "ro.product.cpu.abi",
    "bootloader": "ro.bootloader",
    "baseband": "gsm.version.baseband",
    "build_type": "ro.build.type",
    "build_tags": "ro.build.tags",
}

# first source that yields a value wins
BLUETOOTH_MAC_SOURCES = (
    "cat /sys/class/bluetooth/hci0/address",
    "settings get secure bluetooth_address",
    "getprop persist.service.bdroid.bdaddr",
)

SERIAL_SOURCES = (
    "getprop ro.serialno",
    "getprop ro.boot.serialno",
)


def first_available(runner: AdbRunner, serial: str, commands) -> Optional[str]:
    for cmd in commands:
        value = runner.shell(serial, cmd)
        if value is not None:
            return value
    return None


# ============ DISCOVERY & CONNECTION ============
def get_adb_devices(runner: AdbRunner) -> List[AdbDevice]:
    out = runner.checked(["devices", "-l"])
    return [AdbDevice(**d) for d in parse_devices_output(out)]


def adb_connect(runner: AdbRunner, ip: str) -> str:
    return runner.checked(["connect", ip])


def adb_pair(runner: AdbRunner, addr: str, code: str) -> str:
    return runner.checked(["pair", addr, code])


def restart_adb_server(runner: AdbRunner) -> None:
    # kill-server exits non-zero when no server is running
    runner.run(["kill-server"])
    runner.checked(["start-server"])


# ============ DEVICE INFO ============
def _battery_fields(dump: Optional[str]) -> dict:
    if not dump:
        return {}
    data = parse_key_value_block(dump)
    status = data.get("status")
    health = data.get("health")
    return {
        "battery_level": data.get("level"),
        "battery_status": decode_battery_status(status, keep_raw=True) if status else None,
        "battery_health": decode_battery_health(health, keep_raw=True) if health else None,
        "battery_temperature": format_temperature(data.get("temperature")),
    }


def _storage_fields(df_out: Optional[str]) -> dict:
    if not df_out:
        return {}
    mounts = parse_df_output(df_out)
    if not mounts:
        return {}
    data = mounts[-1]
    return {
        "internal_storage": format_kb(data["size_kb"]),
        "available_storage": format_kb(data["available_kb"]),
    }


def _memory_fields(meminfo: Optional[str]) -> dict:
    if not meminfo:
        return {}
    data = parse_meminfo(meminfo)
    return {
        "total_ram": format_kb(data.get("MemTotal")),
        "available_ram": format_kb(data.get("MemAvailable")),
    }


def get_device_info(runner: AdbRunner, serial: str) -> DeviceProperties:
    """
    Build the device-information record.

    Every field is fetched independently; anything that cannot be read is
    left as None.
    """
    fields = dict(zip(PROPERTY_KEYS, runner.shell_multi(
        serial, [f"getprop {prop}" for prop in PROPERTY_KEYS.values()]
    )))

    fields["screen_resolution"] = parse_dumpsys_value(runner.shell(serial, "wm size") or "", "Physical size")
    fields["screen_density"] = parse_dumpsys_value(runner.shell(serial, "wm density") or "", "Physical density")
    fields["wifi_mac"] = runner.shell(serial, "cat /sys/class/net/wlan0/address")
    fields["bluetooth_mac"] = first_available(runner, serial, BLUETOOTH_MAC_SOURCES)
    fields["serial_number"] = first_available(runner, serial, SERIAL_SOURCES)
    fields["kernel_version"] = runner.shell(serial, "uname -r")

    fields.update(_battery_fields(runner.shell(serial, "dumpsys battery")))
    fields.update(_storage_fields(runner.shell(serial, "df -k /data")))
    fields.update(_memory_fields(runner.shell(serial, "cat /proc/meminfo")))

    return DeviceProperties(**fields)


def adb_available(runner: AdbRunner) -> bool:
    try:
        runner.checked(["version"])
        return True
    except AdbError as e:
        logger.error(f"adb unavailable: {e}")
        return False
