from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """Base for records returned by the builders; immutable once built."""
    model_config = ConfigDict(frozen=True)


# ============ DEVICES ============
class AdbDevice(Record):
    serial: str = Field(..., examples=["emulator-5554"])
    state: str = Field(..., examples=["device"])
    model: Optional[str] = Field(None, examples=["sdk_gphone64_x86_64"])
    product: Optional[str] = Field(None, examples=["sdk_gphone64_x86_64"])
    device: Optional[str] = Field(None, examples=["emulator64_x86_64"])


class DeviceProperties(Record):
    # System
    android_version: Optional[str] = Field(None, examples=["14"])
    sdk_version: Optional[str] = Field(None, examples=["34"])
    security_patch: Optional[str] = Field(None, examples=["2024-06-05"])
    build_id: Optional[str] = Field(None, examples=["UQ1A.240205.004"])
    build_fingerprint: Optional[str] = None

    # Hardware
    manufacturer: Optional[str] = Field(None, examples=["Google"])
    brand: Optional[str] = Field(None, examples=["google"])
    model: Optional[str] = Field(None, examples=["Pixel 7"])
    device: Optional[str] = Field(None, examples=["panther"])
    hardware: Optional[str] = None
    board: Optional[str] = None
    platform: Optional[str] = None
    cpu_abi: Optional[str] = Field(None, examples=["arm64-v8a"])

    # Display
    screen_resolution: Optional[str] = Field(None, examples=["1080x2400"])
    screen_density: Optional[str] = Field(None, examples=["420"])

    # Network
    wifi_mac: Optional[str] = None
    bluetooth_mac: Optional[str] = None
    serial_number: Optional[str] = None

    # Build
    bootloader: Optional[str] = None
    baseband: Optional[str] = None
    kernel_version: Optional[str] = None
    build_type: Optional[str] = Field(None, examples=["user"])
    build_tags: Optional[str] = Field(None, examples=["release-keys"])

    # Battery
    battery_level: Optional[str] = Field(None, examples=["87"])
    battery_status: Optional[str] = Field(None, examples=["Charging"])
    battery_health: Optional[str] = Field(None, examples=["Good"])
    battery_temperature: Optional[str] = Field(None, examples=["35.5°C"])

    # Storage
    internal_storage: Optional[str] = Field(None, examples=["51.3 GB"])
    available_storage: Optional[str] = Field(None, examples=["35.5 GB"])

    # Memory
    total_ram: Optional[str] = Field(None, examples=["7.6 GB"])
    available_ram: Optional[str] = Field(None, examples=["3.1 GB"])


# ============ DIAGNOSTICS ============
class SensorInfo(Record):
    name: str = Field(..., examples=["LSM6DSO Accelerometer"])
    vendor: Optional[str] = Field(None, examples=["STMicro"])
    sensor_type: Optional[str] = None
    status: str = Field(..., examples=["active"], description="active, detected, inactive or error")


class BatteryDiagnostics(Record):
    level: Optional[int] = Field(None, examples=[87], description="Percent, 0-100")
    status: str = Field(..., examples=["Charging"])
    health: str = Field(..., examples=["Good"])
    temperature: Optional[float] = Field(None, examples=[35.5], description="Degrees Celsius")
    voltage: Optional[int] = Field(None, examples=[4120], description="Millivolts")
    current: Optional[int] = Field(None, examples=[1500], description="Milliamps")
    technology: Optional[str] = Field(None, examples=["Li-ion"])
    plugged: str = Field(..., examples=["USB"])
    capacity: Optional[int] = Field(None, examples=[4355], description="Design capacity in mAh")
    charge_counter: Optional[int] = None
    full_charge: Optional[bool] = None
    max_charging_current: Optional[int] = Field(None, description="Milliamps")
    max_charging_voltage: Optional[int] = Field(None, description="Millivolts")


class DisplayDiagnostics(Record):
    resolution: Optional[str] = Field(None, examples=["1080x2400"])
    density: Optional[str] = Field(None, examples=["420 dpi"])
    refresh_rate: Optional[str] = Field(None, examples=["120.0 Hz"])
    hdr_capabilities: Optional[str] = None
    supported_modes: List[str] = Field(default_factory=list)
    brightness: Optional[int] = Field(None, examples=[128])
    adaptive_brightness: Optional[bool] = None


class ConnectivityDiagnostics(Record):
    # WiFi
    wifi_enabled: bool = False
    wifi_connected: bool = False
    wifi_ssid: Optional[str] = None
    wifi_signal_strength: Optional[int] = Field(None, examples=[-55])
    wifi_frequency: Optional[str] = Field(None, examples=["5180 MHz"])
    wifi_link_speed: Optional[str] = Field(None, examples=["866 Mbps"])
    wifi_ip: Optional[str] = None

    # Bluetooth
    bluetooth_enabled: bool = False
    bluetooth_name: Optional[str] = None
    bluetooth_address: Optional[str] = None
    paired_devices_count: int = 0

    # Cellular
    mobile_data_enabled: bool = False
    carrier: Optional[str] = None
    signal_strength: Optional[str] = None
    network_type: Optional[str] = Field(None, examples=["LTE"])

    # General
    airplane_mode: bool = False


class FullDiagnostics(Record):
    battery: BatteryDiagnostics
    display: DisplayDiagnostics
    sensors: List[SensorInfo]
    connectivity: ConnectivityDiagnostics


class TouchTestResult(Record):
    points_detected: int = 0
    max_touch_points: Optional[int] = None
    touch_major: Optional[str] = None
    tool_type: Optional[str] = None
    raw_events: List[str] = Field(default_factory=list)


# ============ FILES ============
class FileEntry(Record):
    name: str = Field(..., examples=["Download"])
    path: str = Field(..., examples=["/sdcard/Download"])
    is_dir: bool
    size: Optional[int] = Field(None, examples=[3452])
    permissions: str = Field(..., examples=["drwxrwx--x"])


# ============ PACKAGES ============
class AppPackage(Record):
    package_id: str = Field(..., examples=["com.example.app"])
    path: str = Field(..., examples=["/data/app/com.example.app-1/base.apk"])
    is_system: bool
    is_enabled: bool


class PackageDetails(Record):
    package_id: str
    version_name: str = ""
    version_code: str = ""
    first_install_time: str = ""
    last_update_time: str = ""
    uid: str = ""
    path: str = ""
    installer: str = ""
    min_sdk: str = ""
    target_sdk: str = ""
    size: str = "Unknown"
    permissions: List[str] = Field(default_factory=list)
    is_enabled: bool = True


# ============ MIRROR ============
class MirrorEvent(Record):
    event: str = Field("scrcpy-response", examples=["scrcpy-response"])
    serial: str
    pid: int
    message: str = Field(..., examples=["Session ended (PID: 4242)"])


# ============ REQUESTS ============
class ConnectRequest(BaseModel):
    ip: str = Field(..., examples=["192.168.1.50:5555"])


class PairRequest(BaseModel):
    addr: str = Field(..., examples=["192.168.1.50:37123"])
    code: str = Field(..., examples=["123456"])


class TransferRequest(BaseModel):
    source: str
    destination: str


class PathRequest(BaseModel):
    path: str


class RenameRequest(BaseModel):
    path: str
    new_name: str


class InstallRequest(BaseModel):
    path: str = Field(..., examples=["/home/user/app-release.apk"])


class ShellCommand(BaseModel):
    command: str = Field(..., examples=["getprop ro.product.model"])


class TouchRequest(BaseModel):
    x: int
    y: int


class LevelRequest(BaseModel):
    level: int


class ToggleRequest(BaseModel):
    enable: bool


class VibrationRequest(BaseModel):
    duration_ms: int = 500


class MessageResponse(BaseModel):
    message: str


class HealthStatus(BaseModel):
    status: str = Field(..., examples=["healthy"])
    adb_available: bool
    device_count: int
