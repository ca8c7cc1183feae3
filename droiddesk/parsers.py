from typing import Dict, Iterable, List, Optional, Set


SENTINEL_VALUES = ("null", "unknown")

BATTERY_STATUS = {
    1: "Unknown",
    2: "Charging",
    3: "Discharging",
    4: "Not Charging",
    5: "Full",
}

BATTERY_HEALTH = {
    1: "Unknown",
    2: "Good",
    3: "Overheat",
    4: "Dead",
    5: "Over Voltage",
    6: "Failure",
    7: "Cold",
}

NETWORK_TYPES = {
    "0": "Unknown",
    "1": "GPRS",
    "2": "EDGE",
    "3": "UMTS",
    "4": "CDMA",
    "5": "EVDO_0",
    "6": "EVDO_A",
    "7": "1xRTT",
    "8": "HSDPA",
    "9": "HSUPA",
    "10": "HSPA",
    "11": "IDEN",
    "12": "EVDO_B",
    "13": "LTE",
    "14": "EHRPD",
    "15": "HSPAP",
    "18": "GSM",
    "19": "TD-SCDMA",
    "20": "5G NR",
}

# (keyword, display name) pairs for the keyword-scan fallback
SENSOR_KEYWORDS = (
    ("accelerometer", "Accelerometer"),
    ("gyroscope", "Gyroscope"),
    ("magnetometer", "Magnetometer"),
    ("barometer", "Barometer"),
    ("proximity", "Proximity"),
    ("light", "Light"),
    ("gravity", "Gravity"),
    ("rotation", "Rotation Vector"),
    ("step", "Step Counter"),
)


# ============ TOKENIZER ============
def split_fields(line: str, sep: Optional[str] = None) -> List[str]:
    """Split a line on whitespace, or on `sep` with each field trimmed."""
    if sep is None:
        return line.split()
    return [part.strip() for part in line.split(sep)]


def field_at(parts: List[str], index: int) -> Optional[str]:
    """Return parts[index] or None when the line is too short."""
    if -len(parts) <= index < len(parts):
        return parts[index]
    return None


def value_after(text: str, key: str) -> Optional[str]:
    """
    Return the token following `key` in a same-line multi-key string.

    `value_after("versionCode=123 minSdk=21", "minSdk=")` gives "21". The key
    is located independently, so column order does not matter.
    """
    idx = text.find(key)
    if idx < 0:
        return None
    rest = text[idx + len(key):]
    token = rest.split(" ", 1)[0].strip()
    return token or None


# ============ KEY-VALUE SCANNER ============
def normalize_value(raw: Optional[str]) -> Optional[str]:
    """Trim raw text and map empty/sentinel values to None."""
    if raw is None:
        return None
    value = raw.strip()
    if not value or value in SENTINEL_VALUES:
        return None
    return value


def parse_dumpsys_value(text: str, key: str) -> Optional[str]:
    """
    Find the first line starting with `key` and return the value after its
    first ':' (or '=' when the line has no ':').

    Lines whose value is empty or a sentinel are skipped and scanning goes on.
    """
    if not text:
        return None
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(key):
            continue
        if ":" in line:
            value = line.split(":", 1)[1]
        elif "=" in line:
            value = line.split("=", 1)[1]
        else:
            continue
        value = normalize_value(value)
        if value is not None:
            return value
    return None


def parse_dumpsys_bool(text: str, key: str) -> Optional[bool]:
    value = parse_dumpsys_value(text, key)
    if value is None:
        return None
    return to_bool(value)


def parse_key_value_block(text: str) -> Dict[str, str]:
    """Parse `key: value` lines into a dict, first occurrence wins."""
    data = {}
    for line in text.splitlines():
        if ":" in line:
            k, v = line.split(":", 1)
            key = k.strip()
            val = normalize_value(v)
            if key and val is not None and key not in data:
                data[key] = val
    return data


# ============ TYPED CONVERTERS ============
def to_bool(value: str) -> bool:
    return value.lower() == "true" or value == "1"


def to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def micro_to_milli(value: Optional[int]) -> Optional[int]:
    """Convert µA/µV/µAh readings to mA/mV/mAh, truncating toward zero."""
    if value is None:
        return None
    return int(value / 1000)


def deci_to_celsius(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return value / 10.0


def format_temperature(value: Optional[str]) -> Optional[str]:
    """Render a deciCelsius reading like "355" as "35.5°C"."""
    celsius = deci_to_celsius(to_float(value))
    if celsius is None:
        return None
    return f"{celsius:.1f}°C"


def format_kb(kb: Optional[int]) -> Optional[str]:
    """Render a KB amount as "500 MB" or, above 1024 MB, "2.0 GB"."""
    if kb is None:
        return None
    mb = kb / 1024
    if mb > 1024:
        return f"{mb / 1024:.1f} GB"
    return f"{mb:.0f} MB"


# ============ ENUMERATED DECODERS ============
def _decode(table: Dict[int, str], value: Optional[str], keep_raw: bool) -> str:
    code = to_int(value)
    if code is not None and code in table:
        return table[code]
    if keep_raw and value:
        return value
    return "Unknown"


def decode_battery_status(value: Optional[str], keep_raw: bool = False) -> str:
    """
    Decode a `dumpsys battery` status code.

    With keep_raw the original string is returned for unrecognized values,
    otherwise they degrade to "Unknown".
    """
    return _decode(BATTERY_STATUS, value, keep_raw)


def decode_battery_health(value: Optional[str], keep_raw: bool = False) -> str:
    return _decode(BATTERY_HEALTH, value, keep_raw)


def decode_network_type(value: str) -> str:
    """Decode a telephony network type; unknown codes pass through."""
    return NETWORK_TYPES.get(value, value)


def plugged_source(ac: bool, usb: bool, wireless: bool) -> str:
    if ac and usb:
        return "AC + USB"
    if ac:
        return "AC"
    if usb:
        return "USB"
    if wireless:
        return "Wireless"
    return "Not Plugged"


# ============ LISTING PARSERS ============
def parse_devices_output(text: str) -> List[dict]:
    """
    Parse `adb devices -l` output.

    emulator-5554  device product:sdk_gphone64 model:Pixel_7 device:emu64 transport_id:1
    """
    devices = []
    for line in text.splitlines()[1:]:
        if not line.strip():
            continue
        parts = split_fields(line)
        if len(parts) < 2:
            continue
        entry = {"serial": parts[0], "state": parts[1], "model": None, "product": None, "device": None}
        for part in parts[2:]:
            if ":" not in part:
                continue
            key, value = part.split(":", 1)
            if key in ("model", "product", "device"):
                entry[key] = value
        devices.append(entry)
    return devices


def parse_ls_output(text: str, parent: str) -> List[dict]:
    """
    Parse `ls -l` output into file entries.

    `name` joins every field from the eighth on so names with spaces survive,
    but `path` uses only the last field. Both are kept as-is for now.
    """
    entries = []
    for line in text.splitlines():
        if line.startswith("total"):
            continue
        parts = split_fields(line)
        if len(parts) < 8:
            continue

        permissions = parts[0]
        entries.append({
            "name": " ".join(parts[7:]),
            "path": f"{parent.rstrip('/')}/{parts[-1]}",
            "is_dir": permissions.startswith("d"),
            "size": int(parts[4]) if parts[4].isdigit() else None,
            "permissions": permissions,
        })
    return entries


def parse_disabled_packages(text: str) -> Set[str]:
    disabled = set()
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("package:"):
            disabled.add(line[len("package:"):])
    return disabled


def parse_package_list(text: str, disabled: Iterable[str], is_system: bool) -> List[dict]:
    """Parse `pm list packages -f` lines of the form package:<path>=<id>."""
    disabled = set(disabled)
    packages = []
    for line in text.splitlines():
        if not line.strip() or not line.startswith("package:"):
            continue
        path, sep, package_id = line[len("package:"):].rpartition("=")
        if not sep:
            continue
        package_id = package_id.strip()
        packages.append({
            "package_id": package_id,
            "path": path,
            "is_system": is_system,
            "is_enabled": package_id not in disabled,
        })
    return packages


def parse_package_dump(text: str) -> dict:
    """Extract package details from `dumpsys package <id>` output."""
    details = {
        "version_name": "",
        "version_code": "",
        "first_install_time": "",
        "last_update_time": "",
        "uid": "",
        "path": "",
        "installer": "",
        "min_sdk": "",
        "target_sdk": "",
        "permissions": [],
        "is_enabled": True,
    }
    in_permissions = False

    for line in text.splitlines():
        trimmed = line.strip()

        if trimmed.startswith("requested permissions:"):
            in_permissions = True
            continue
        if in_permissions:
            if not trimmed or ":" in trimmed:
                in_permissions = False
            else:
                details["permissions"].append(trimmed)
                continue

        if trimmed.startswith("User 0:"):
            state = value_after(trimmed, "enabled=")
            if state:
                details["is_enabled"] = state[0] not in ("2", "3", "4")

        if trimmed.startswith("versionName="):
            details["version_name"] = trimmed[len("versionName="):]
        elif trimmed.startswith("versionCode="):
            details["version_code"] = value_after(trimmed, "versionCode=") or ""
            min_sdk = value_after(trimmed, "minSdk=")
            if min_sdk is not None:
                details["min_sdk"] = min_sdk
            target_sdk = value_after(trimmed, "targetSdk=")
            if target_sdk is not None:
                details["target_sdk"] = target_sdk
        elif trimmed.startswith("firstInstallTime="):
            details["first_install_time"] = trimmed[len("firstInstallTime="):]
        elif trimmed.startswith("lastUpdateTime="):
            details["last_update_time"] = trimmed[len("lastUpdateTime="):]
        elif trimmed.startswith("userId="):
            details["uid"] = trimmed[len("userId="):]
        elif trimmed.startswith("codePath="):
            details["path"] = trimmed[len("codePath="):]
        elif trimmed.startswith("installerPackageName="):
            details["installer"] = trimmed[len("installerPackageName="):]

    return details


def parse_du_size(text: Optional[str]) -> str:
    """First token of `du -h` output, e.g. "25M"."""
    if text:
        parts = split_fields(text)
        if parts:
            return parts[0]
    return "Unknown"


# ============ SENSOR PARSERS ============
def parse_sensor_list(text: str) -> List[dict]:
    """Parse `|`-delimited sensorservice lines; column 1 is the name."""
    sensors = []
    for line in text.splitlines():
        parts = split_fields(line, "|")
        if len(parts) < 2 or not parts[1]:
            continue
        sensors.append({
            "name": parts[1],
            "vendor": field_at(parts, 2),
            "sensor_type": None,
            "status": "active",
        })
    return sensors


def detect_sensors(dump: str) -> List[dict]:
    """Keyword scan of a full sensorservice dump."""
    lowered = dump.lower()
    return [
        {"name": name, "vendor": None, "sensor_type": keyword, "status": "detected"}
        for keyword, name in SENSOR_KEYWORDS
        if keyword in lowered
    ]


# ============ SYSTEM PARSERS ============
def parse_df_output(text: str) -> List[dict]:
    """Parse df -k output into a list of mount dictionaries."""
    mounts = []
    lines = [l for l in text.splitlines() if l.strip()]
    if not lines:
        return mounts

    for line in lines[1:]:
        parts = line.split()
        if len(parts) < 6:
            continue
        mounts.append({
            "filesystem": parts[0],
            "size_kb": int(parts[1]) if parts[1].isdigit() else 0,
            "used_kb": int(parts[2]) if parts[2].isdigit() else 0,
            "available_kb": int(parts[3]) if parts[3].isdigit() else 0,
            "mountpoint": " ".join(parts[5:]),
        })
    return mounts


def parse_meminfo(text: str) -> Dict[str, int]:
    """Parse /proc/meminfo lines into KB values."""
    data = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, val = line.split(":", 1)
        amount = to_int(field_at(val.split(), 0))
        if amount is not None:
            data[key.strip()] = amount
    return data


def parse_max_touch_points(text: Optional[str]) -> Optional[int]:
    """Slot count from a getevent ABS_MT_SLOT line ("... max 9 ..." gives 10)."""
    if not text or "max" not in text:
        return None
    tail = text.split("max", 1)[1]
    slots = to_int((field_at(tail.split(), 0) or "").rstrip(","))
    if slots is None:
        return None
    return slots + 1
