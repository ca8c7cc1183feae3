import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from droiddesk import devices, diagnostics, files, packages, terminal
from droiddesk.adb_utils import AdbError, AdbRunner
from droiddesk.config import resolve_tool_paths, settings
from droiddesk.mirror import EventBus, MirrorManager
from droiddesk.models import (
    AdbDevice, AppPackage, BatteryDiagnostics, ConnectRequest, ConnectivityDiagnostics,
    DeviceProperties, DisplayDiagnostics, FileEntry, FullDiagnostics, HealthStatus,
    InstallRequest, LevelRequest, MessageResponse, PackageDetails, PairRequest, PathRequest,
    RenameRequest, SensorInfo, ShellCommand, ToggleRequest, TouchRequest, TouchTestResult,
    TransferRequest, VibrationRequest,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

tool_paths = resolve_tool_paths(settings)
event_bus = EventBus()
mirror_manager = MirrorManager(tool_paths, event_bus, timeout=settings.COMMAND_TIMEOUT)


def get_runner() -> AdbRunner:
    return AdbRunner(tool_paths, timeout=settings.COMMAND_TIMEOUT)


def get_mirror_manager() -> MirrorManager:
    return mirror_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Using adb at {tool_paths.adb}, scrcpy at {tool_paths.scrcpy}")
    yield
    stopped = await run_in_threadpool(mirror_manager.stop_all)
    if stopped:
        logger.info(f"Stopped {stopped} mirroring session(s) on shutdown")


# ============ FastAPI APP ============
app = FastAPI(
    title=settings.APP_NAME,
    description="Android device management backend over adb and scrcpy",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ============ CORS MIDDLEWARE ============
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============ ERROR HANDLERS ============
@app.exception_handler(AdbError)
async def adb_error_handler(request, exc):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "error": "ADB Error"}
    )


async def _build(label: str, func, *args):
    """Run a record builder off the event loop; unexpected errors become HTTP 500."""
    try:
        return await run_in_threadpool(func, *args)
    except AdbError:
        raise
    except Exception as e:
        logger.error(f"{label} error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ============ HEALTH ============
@app.get("/health", response_model=HealthStatus, tags=["System"])
async def health_check(runner: AdbRunner = Depends(get_runner)):
    """Check API health and whether adb can be reached."""
    try:
        found = await run_in_threadpool(devices.get_adb_devices, runner)
    except AdbError as e:
        logger.error(f"Health check failed: {e}")
        return HealthStatus(status="degraded", adb_available=False, device_count=0)
    ready = [d for d in found if d.state == "device"]
    return HealthStatus(
        status="healthy" if ready else "degraded",
        adb_available=True,
        device_count=len(ready),
    )


@app.get("/", tags=["Root"])
async def root():
    """API root endpoint with the main resources."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "endpoints": {
            "health": "/health",
            "devices": "/devices",
            "device_info": "/devices/{serial}/info",
            "diagnostics": "/devices/{serial}/diagnostics",
            "files": "/devices/{serial}/files",
            "packages": "/devices/{serial}/packages",
            "shell": "/devices/{serial}/shell",
            "logs": "/devices/{serial}/logs",
            "mirror": "/devices/{serial}/mirror",
            "events": "/ws/events",
        },
        "docs": "/docs",
    }


# ============ DEVICES ============
@app.get("/devices", response_model=List[AdbDevice], tags=["Devices"])
async def list_devices(runner: AdbRunner = Depends(get_runner)):
    """List attached devices (`adb devices -l`)."""
    return await run_in_threadpool(devices.get_adb_devices, runner)


@app.post("/devices/connect", response_model=MessageResponse, tags=["Devices"])
async def connect_device(body: ConnectRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(devices.adb_connect, runner, body.ip)
    return MessageResponse(message=out)


@app.post("/devices/pair", response_model=MessageResponse, tags=["Devices"])
async def pair_device(body: PairRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(devices.adb_pair, runner, body.addr, body.code)
    return MessageResponse(message=out)


@app.post("/adb/restart", response_model=MessageResponse, tags=["Devices"])
async def restart_server(runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(devices.restart_adb_server, runner)
    return MessageResponse(message="ADB server restarted")


@app.get("/devices/{serial}/info", response_model=DeviceProperties, tags=["Devices"])
async def device_info(serial: str, runner: AdbRunner = Depends(get_runner)):
    """
    Get device information (build, hardware, battery, storage, memory).

    Fields the device does not report are null.
    """
    return await _build("Device info", devices.get_device_info, runner, serial)


# ============ DIAGNOSTICS ============
@app.get("/devices/{serial}/diagnostics", response_model=FullDiagnostics, tags=["Diagnostics"])
async def device_diagnostics(serial: str, runner: AdbRunner = Depends(get_runner)):
    """Battery, display, sensors and connectivity in one call."""
    return await _build("Diagnostics", diagnostics.get_device_diagnostics, runner, serial)


@app.get("/devices/{serial}/diagnostics/battery", response_model=BatteryDiagnostics, tags=["Diagnostics"])
async def battery_diagnostics(serial: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Battery", diagnostics.get_battery_diagnostics, runner, serial)


@app.get("/devices/{serial}/diagnostics/display", response_model=DisplayDiagnostics, tags=["Diagnostics"])
async def display_diagnostics(serial: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Display", diagnostics.get_display_diagnostics, runner, serial)


@app.get("/devices/{serial}/diagnostics/sensors", response_model=List[SensorInfo], tags=["Diagnostics"])
async def sensor_diagnostics(serial: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Sensors", diagnostics.get_sensor_list, runner, serial)


@app.get(
    "/devices/{serial}/diagnostics/connectivity",
    response_model=ConnectivityDiagnostics,
    tags=["Diagnostics"],
)
async def connectivity_diagnostics(serial: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Connectivity", diagnostics.get_connectivity_diagnostics, runner, serial)


@app.post("/devices/{serial}/touch-test", response_model=TouchTestResult, tags=["Diagnostics"])
async def touch_test(serial: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Touch test", diagnostics.run_touch_test, runner, serial)


@app.post("/devices/{serial}/touch", response_model=MessageResponse, tags=["Diagnostics"])
async def touch(serial: str, body: TouchRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.inject_touch, runner, serial, body.x, body.y)
    return MessageResponse(message="Touch injected")


@app.post("/devices/{serial}/brightness", response_model=MessageResponse, tags=["Diagnostics"])
async def brightness(serial: str, body: LevelRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.set_brightness, runner, serial, body.level)
    return MessageResponse(message="Brightness updated")


@app.post("/devices/{serial}/wifi", response_model=MessageResponse, tags=["Diagnostics"])
async def wifi(serial: str, body: ToggleRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.toggle_wifi, runner, serial, body.enable)
    return MessageResponse(message=f"WiFi {'enabled' if body.enable else 'disabled'}")


@app.post("/devices/{serial}/bluetooth", response_model=MessageResponse, tags=["Diagnostics"])
async def bluetooth(serial: str, body: ToggleRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.toggle_bluetooth, runner, serial, body.enable)
    return MessageResponse(message=f"Bluetooth {'enabled' if body.enable else 'disabled'}")


@app.post("/devices/{serial}/battery/simulate", response_model=MessageResponse, tags=["Diagnostics"])
async def simulate_battery(serial: str, body: LevelRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.simulate_battery_level, runner, serial, body.level)
    return MessageResponse(message="Battery level simulated")


@app.post("/devices/{serial}/battery/reset", response_model=MessageResponse, tags=["Diagnostics"])
async def reset_battery(serial: str, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.reset_battery_simulation, runner, serial)
    return MessageResponse(message="Battery simulation reset")


@app.post("/devices/{serial}/vibrate", response_model=MessageResponse, tags=["Diagnostics"])
async def vibrate(serial: str, body: VibrationRequest, runner: AdbRunner = Depends(get_runner)):
    await run_in_threadpool(diagnostics.trigger_vibration, runner, serial, body.duration_ms)
    return MessageResponse(message="Vibration triggered")


# ============ FILES ============
@app.get("/devices/{serial}/files", response_model=List[FileEntry], tags=["Files"])
async def list_files(serial: str, path: str = Query("/sdcard"), runner: AdbRunner = Depends(get_runner)):
    return await run_in_threadpool(files.list_files, runner, serial, path)


@app.get("/devices/{serial}/files/content", tags=["Files"])
async def file_content(serial: str, path: str = Query(...), runner: AdbRunner = Depends(get_runner)):
    data = await run_in_threadpool(files.read_file_content, runner, serial, path)
    return Response(content=data, media_type="application/octet-stream")


@app.post("/devices/{serial}/files/download", response_model=MessageResponse, tags=["Files"])
async def download(serial: str, body: TransferRequest, runner: AdbRunner = Depends(get_runner)):
    """Pull `source` from the device to the local `destination`."""
    out = await run_in_threadpool(files.download_file, runner, serial, body.source, body.destination)
    return MessageResponse(message=out)


@app.post("/devices/{serial}/files/upload", response_model=MessageResponse, tags=["Files"])
async def upload(serial: str, body: TransferRequest, runner: AdbRunner = Depends(get_runner)):
    """Push the local `source` to `destination` on the device."""
    out = await run_in_threadpool(files.upload_file, runner, serial, body.source, body.destination)
    return MessageResponse(message=out)


@app.delete("/devices/{serial}/files", response_model=MessageResponse, tags=["Files"])
async def delete(serial: str, path: str = Query(...), runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(files.delete_file, runner, serial, path)
    return MessageResponse(message=out)


@app.post("/devices/{serial}/files/folder", response_model=MessageResponse, tags=["Files"])
async def create_folder(serial: str, body: PathRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(files.create_folder, runner, serial, body.path)
    return MessageResponse(message=out)


@app.post("/devices/{serial}/files/rename", response_model=MessageResponse, tags=["Files"])
async def rename(serial: str, body: RenameRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(files.rename_file, runner, serial, body.path, body.new_name)
    return MessageResponse(message=out)


@app.post("/devices/{serial}/files/move", response_model=MessageResponse, tags=["Files"])
async def move(serial: str, body: TransferRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(files.move_file, runner, serial, body.source, body.destination)
    return MessageResponse(message=out)


@app.post("/devices/{serial}/files/copy", response_model=MessageResponse, tags=["Files"])
async def copy(serial: str, body: TransferRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(files.copy_file, runner, serial, body.source, body.destination)
    return MessageResponse(message=out)


# ============ PACKAGES ============
@app.get("/devices/{serial}/packages", response_model=List[AppPackage], tags=["Packages"])
async def list_packages(serial: str, include_system: bool = False, runner: AdbRunner = Depends(get_runner)):
    """Installed packages sorted by id; system packages only when asked for."""
    return await run_in_threadpool(packages.list_packages, runner, serial, include_system)


@app.post("/devices/{serial}/packages/install", response_model=MessageResponse, tags=["Packages"])
async def install(serial: str, body: InstallRequest, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(packages.install_package, runner, serial, body.path)
    return MessageResponse(message=out)


@app.get("/devices/{serial}/packages/{package}", response_model=PackageDetails, tags=["Packages"])
async def package_details(serial: str, package: str, runner: AdbRunner = Depends(get_runner)):
    return await _build("Package details", packages.get_package_details, runner, serial, package)


@app.delete("/devices/{serial}/packages/{package}", response_model=MessageResponse, tags=["Packages"])
async def uninstall(serial: str, package: str, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(packages.uninstall_package, runner, serial, package)
    return MessageResponse(message=out)


PACKAGE_ACTIONS = {
    "enable": (packages.enable_package, "Package enabled"),
    "disable": (packages.disable_package, "Package disabled"),
    "clear": (packages.clear_package_data, "Package data cleared"),
    "force-stop": (packages.force_stop_package, "Package stopped"),
    "launch": (packages.launch_package, "Package launched"),
}


@app.post("/devices/{serial}/packages/{package}/{action}", response_model=MessageResponse, tags=["Packages"])
async def package_action(serial: str, package: str, action: str, runner: AdbRunner = Depends(get_runner)):
    """enable, disable, clear, force-stop or launch a package."""
    if action not in PACKAGE_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown package action: {action}")
    func, message = PACKAGE_ACTIONS[action]
    await run_in_threadpool(func, runner, serial, package)
    return MessageResponse(message=message)


# ============ TERMINAL & LOGS ============
@app.post("/devices/{serial}/shell", response_model=MessageResponse, tags=["Terminal"])
async def shell(serial: str, body: ShellCommand, runner: AdbRunner = Depends(get_runner)):
    out = await run_in_threadpool(terminal.run_adb_command, runner, serial, body.command)
    return MessageResponse(message=out)


@app.get("/devices/{serial}/logs", response_class=PlainTextResponse, tags=["Terminal"])
async def logs(serial: str, runner: AdbRunner = Depends(get_runner)):
    """Last lines of logcat (count set by LOGCAT_LINES)."""
    return await run_in_threadpool(terminal.get_adb_logs, runner, serial, settings.LOGCAT_LINES)


# ============ MIRROR ============
@app.get("/scrcpy", tags=["Mirror"])
async def scrcpy_status(manager: MirrorManager = Depends(get_mirror_manager)):
    return {"installed": await run_in_threadpool(manager.check_scrcpy)}


@app.post("/scrcpy/install", response_model=MessageResponse, tags=["Mirror"])
async def scrcpy_install(manager: MirrorManager = Depends(get_mirror_manager)):
    return MessageResponse(message=await run_in_threadpool(manager.install_scrcpy))


@app.post("/devices/{serial}/mirror", response_model=MessageResponse, tags=["Mirror"])
async def start_mirror(serial: str, manager: MirrorManager = Depends(get_mirror_manager)):
    """Start scrcpy; a `scrcpy-response` event is sent on /ws/events when it exits."""
    return MessageResponse(message=await run_in_threadpool(manager.start, serial))


@app.delete("/devices/{serial}/mirror", response_model=MessageResponse, tags=["Mirror"])
async def stop_mirror(serial: str, manager: MirrorManager = Depends(get_mirror_manager)):
    stopped = await run_in_threadpool(manager.stop, serial)
    return MessageResponse(message=f"Stopped {stopped} session(s)")


@app.delete("/mirror", response_model=MessageResponse, tags=["Mirror"])
async def kill_scrcpy(manager: MirrorManager = Depends(get_mirror_manager)):
    stopped = await run_in_threadpool(manager.stop_all)
    return MessageResponse(message=f"Stopped {stopped} session(s)")


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        event = await queue.get()
        await websocket.send_json(event.model_dump())


@app.websocket("/ws/events")
async def events_stream(websocket: WebSocket):
    """Push mirror session events to the client as JSON."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = event_bus.subscribe(lambda event: loop.call_soon_threadsafe(queue.put_nowait, event))
    await websocket.accept()
    sender = asyncio.create_task(_forward_events(websocket, queue))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Event stream client disconnected")
    finally:
        sender.cancel()
        unsubscribe()


def run():
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
