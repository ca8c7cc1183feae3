"""Battery, display, sensor and connectivity diagnostics plus hardware test actions."""
import logging
from typing import List, Optional

from droiddesk.adb_utils import AdbError, AdbRunner
from droiddesk.models import (
    BatteryDiagnostics, ConnectivityDiagnostics, DisplayDiagnostics, FullDiagnostics,
    SensorInfo, TouchTestResult,
)
from droiddesk.parsers import (
    decode_battery_health, decode_battery_status, decode_network_type, deci_to_celsius,
    detect_sensors, field_at, micro_to_milli, parse_dumpsys_bool, parse_dumpsys_value,
    parse_max_touch_points, parse_sensor_list, plugged_source, split_fields, to_float,
    to_int,
)

logger = logging.getLogger(__name__)

POWER_SUPPLY = "/sys/class/power_supply/battery"


# ============ BATTERY ============
def get_battery_diagnostics(runner: AdbRunner, serial: str) -> BatteryDiagnostics:
    dump = runner.shell(serial, "dumpsys battery") or ""

    level = to_int(parse_dumpsys_value(dump, "level"))
    ac = parse_dumpsys_bool(dump, "AC powered") or False
    usb = parse_dumpsys_bool(dump, "USB powered") or False
    wireless = parse_dumpsys_bool(dump, "Wireless powered") or False

    return BatteryDiagnostics(
        level=level,
        status=decode_battery_status(parse_dumpsys_value(dump, "status")),
        health=decode_battery_health(parse_dumpsys_value(dump, "health")),
        temperature=deci_to_celsius(to_float(parse_dumpsys_value(dump, "temperature"))),
        voltage=to_int(parse_dumpsys_value(dump, "voltage")),
        current=micro_to_milli(to_int(runner.shell(serial, f"cat {POWER_SUPPLY}/current_now"))),
        technology=parse_dumpsys_value(dump, "technology"),
        plugged=plugged_source(ac, usb, wireless),
        capacity=micro_to_milli(to_int(runner.shell(serial, f"cat {POWER_SUPPLY}/charge_full_design"))),
        charge_counter=to_int(runner.shell(serial, f"cat {POWER_SUPPLY}/charge_counter")),
        full_charge=None if level is None else level >= 100,
        max_charging_current=micro_to_milli(to_int(parse_dumpsys_value(dump, "Max charging current"))),
        max_charging_voltage=micro_to_milli(to_int(parse_dumpsys_value(dump, "Max charging voltage"))),
    )


# ============ DISPLAY ============
def _refresh_rate(runner: AdbRunner, serial: str, display_dump: str) -> Optional[str]:
    line = runner.shell(serial, "dumpsys display | grep 'renderFrameRate' | head -1")
    if line and "=" in line:
        return f"{line.split('=')[1].strip()} Hz"
    rate = parse_dumpsys_value(display_dump, "refreshRate")
    if rate is not None:
        return f"{rate} Hz"
    return None


def _hdr_capabilities(hdr_dump: str) -> Optional[str]:
    if any(tag in hdr_dump for tag in ("HDR10", "HLG", "DOLBY")):
        return hdr_dump.splitlines()[0] if hdr_dump.strip() else "HDR Supported"
    return None


def _supported_modes(modes_output: str) -> List[str]:
    modes = [l.strip() for l in modes_output.splitlines() if "x" in l and "@" in l]
    return modes[:5]


def get_display_diagnostics(runner: AdbRunner, serial: str) -> DisplayDiagnostics:
    size = runner.shell(serial, "wm size")
    density = runner.shell(serial, "wm density")
    display_dump = runner.shell(
        serial, "dumpsys display | grep -E 'refresh|mDefaultModeId|supported modes' | head -10"
    ) or ""
    hdr_dump = runner.shell(serial, "dumpsys display | grep -i hdr | head -5") or ""
    modes_output = runner.shell(serial, "dumpsys display | grep -A 20 'mSupportedModes' | head -15") or ""
    mode = runner.settings_get(serial, "system", "screen_brightness_mode")

    return DisplayDiagnostics(
        resolution=size.replace("Physical size: ", "").strip() if size else None,
        density=f"{density.replace('Physical density: ', '').strip()} dpi" if density else None,
        refresh_rate=_refresh_rate(runner, serial, display_dump),
        hdr_capabilities=_hdr_capabilities(hdr_dump),
        supported_modes=_supported_modes(modes_output),
        brightness=to_int(runner.settings_get(serial, "system", "screen_brightness")),
        adaptive_brightness=None if mode is None else mode == "1",
    )


# ============ SENSORS ============
def get_sensor_list(runner: AdbRunner, serial: str) -> List[SensorInfo]:
    """
    Detailed `0x...|name|vendor|...` listing first; if that yields nothing,
    fall back to a keyword scan of the whole sensorservice dump.
    """
    detailed = runner.shell(serial, "dumpsys sensorservice | grep -E '^0x' | head -30") or ""
    sensors = parse_sensor_list(detailed)
    if not sensors:
        dump = runner.shell(serial, "dumpsys sensorservice") or ""
        sensors = detect_sensors(dump)
    return [SensorInfo(**s) for s in sensors]


# ============ CONNECTIVITY ============
def _wifi_fields(runner: AdbRunner, serial: str) -> dict:
    dump = runner.shell(
        serial, "dumpsys wifi | grep -E 'Wi-Fi is|mWifiInfo|SSID|BSSID|RSSI|Frequency|Link speed|IP'"
    ) or ""
    ssid = parse_dumpsys_value(dump, "SSID")
    rssi = parse_dumpsys_value(dump, "RSSI")
    frequency = parse_dumpsys_value(dump, "Frequency")
    link_speed = parse_dumpsys_value(dump, "Link speed")
    return {
        "wifi_enabled": "Wi-Fi is enabled" in dump,
        "wifi_connected": "mWifiInfo" in dump and "SSID: <unknown ssid>" not in dump,
        "wifi_ssid": ssid.strip('"') if ssid else None,
        "wifi_signal_strength": to_int(field_at(split_fields(rssi), 0)) if rssi else None,
        "wifi_frequency": f"{frequency.replace(' MHz', '')} MHz" if frequency else None,
        "wifi_link_speed": f"{link_speed.replace(' Mbps', '')} Mbps" if link_speed else None,
        "wifi_ip": runner.shell(serial, "ip addr show wlan0 | grep 'inet ' | awk '{print $2}' | cut -d/ -f1"),
    }


def _bluetooth_fields(runner: AdbRunner, serial: str) -> dict:
    dump = runner.shell(serial, "dumpsys bluetooth_manager | grep -E 'enabled|name|address|Bonded'") or ""
    enabled = "enabled: true" in dump.lower()
    if not enabled:
        enabled = runner.settings_get(serial, "global", "bluetooth_on") == "1"
    return {
        "bluetooth_enabled": enabled,
        "bluetooth_name": runner.settings_get(serial, "secure", "bluetooth_name"),
        "bluetooth_address": parse_dumpsys_value(dump, "address"),
        "paired_devices_count": sum(1 for l in dump.splitlines() if "Bonded" in l),
    }


def _cellular_fields(runner: AdbRunner, serial: str) -> dict:
    dump = runner.shell(serial, "dumpsys telephony.registry | head -50") or ""
    signal = parse_dumpsys_value(dump, "mSignalStrength") or parse_dumpsys_value(dump, "signalStrength")
    network = parse_dumpsys_value(dump, "mDataNetworkType") or parse_dumpsys_value(dump, "networkType")
    return {
        "mobile_data_enabled": runner.settings_get(serial, "global", "mobile_data") == "1",
        "carrier": runner.getprop(serial, "gsm.sim.operator.alpha"),
        "signal_strength": signal,
        "network_type": decode_network_type(network) if network else None,
    }


def get_connectivity_diagnostics(runner: AdbRunner, serial: str) -> ConnectivityDiagnostics:
    fields = {}
    fields.update(_wifi_fields(runner, serial))
    fields.update(_bluetooth_fields(runner, serial))
    fields.update(_cellular_fields(runner, serial))
    fields["airplane_mode"] = runner.settings_get(serial, "global", "airplane_mode_on") == "1"
    return ConnectivityDiagnostics(**fields)


def get_device_diagnostics(runner: AdbRunner, serial: str) -> FullDiagnostics:
    return FullDiagnostics(
        battery=get_battery_diagnostics(runner, serial),
        display=get_display_diagnostics(runner, serial),
        sensors=get_sensor_list(runner, serial),
        connectivity=get_connectivity_diagnostics(runner, serial),
    )


# ============ TOUCH ============
def run_touch_test(runner: AdbRunner, serial: str) -> TouchTestResult:
    input_dump = runner.shell(serial, "getevent -lp | grep -A 10 'touchscreen\\|touch'") or ""
    slot_line = runner.shell(serial, "getevent -lp | grep ABS_MT_SLOT | head -1")
    events = runner.shell(serial, "timeout 0.1 getevent -lt 2>/dev/null | head -5") or ""
    raw_events = events.splitlines()[:5]

    return TouchTestResult(
        points_detected=1 if raw_events else 0,
        max_touch_points=parse_max_touch_points(slot_line),
        touch_major=parse_dumpsys_value(input_dump, "ABS_MT_TOUCH_MAJOR"),
        tool_type=parse_dumpsys_value(input_dump, "ABS_MT_TOOL_TYPE"),
        raw_events=raw_events,
    )


def inject_touch(runner: AdbRunner, serial: str, x: int, y: int) -> None:
    runner.shell_action(serial, f"input tap {x} {y}")


# ============ ACTIONS ============
def _first_success(runner: AdbRunner, serial: str, commands: List[str], error: str) -> None:
    for cmd in commands:
        try:
            runner.shell_action(serial, cmd)
            return
        except AdbError as e:
            logger.info(f"'{cmd}' failed, trying next method: {e}")
    raise AdbError(error)


def set_brightness(runner: AdbRunner, serial: str, level: int) -> None:
    try:
        runner.shell_action(serial, "settings put system screen_brightness_mode 0")
    except AdbError as e:
        logger.warning(f"Could not disable adaptive brightness: {e}")
    level = max(0, min(255, level))
    runner.shell_action(serial, f"settings put system screen_brightness {level}")


def toggle_wifi(runner: AdbRunner, serial: str, enable: bool) -> None:
    action = "enable" if enable else "disable"
    _first_success(
        runner, serial,
        [f"svc wifi {action}", f"cmd wifi set-wifi-enabled {'enabled' if enable else 'disabled'}"],
        "Failed to toggle WiFi - may require root or device policy restrictions",
    )


def toggle_bluetooth(runner: AdbRunner, serial: str, enable: bool) -> None:
    action = "enable" if enable else "disable"
    _first_success(
        runner, serial,
        [f"svc bluetooth {action}", f"cmd bluetooth_manager {action} 2>/dev/null"],
        "Failed to toggle Bluetooth - may require root or device policy restrictions",
    )


def simulate_battery_level(runner: AdbRunner, serial: str, level: int) -> None:
    runner.shell_action(serial, "dumpsys battery unplug")
    runner.shell_action(serial, f"dumpsys battery set level {max(0, min(100, level))}")


def reset_battery_simulation(runner: AdbRunner, serial: str) -> None:
    runner.shell_action(serial, "dumpsys battery reset")


def trigger_vibration(runner: AdbRunner, serial: str, duration_ms: int) -> None:
    _first_success(
        runner, serial,
        [
            f"cmd vibrator vibrate -f {duration_ms} default",
            f"cmd vibrator vibrate {duration_ms}",
            "input keyevent 24 && input keyevent 25",
        ],
        "Failed to trigger vibration",
    )
