"""
Core configuration settings
"""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_prefix="DROIDDESK_",
        env_file=".env",
        extra="ignore",
    )

    # App
    APP_NAME: str = "DroidDesk"
    APP_VERSION: str = "1.0.0"
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Tools
    RESOURCE_DIR: Optional[str] = None
    ADB_PATH: Optional[str] = None
    SCRCPY_PATH: Optional[str] = None
    COMMAND_TIMEOUT: float = 30.0
    LOGCAT_LINES: int = 500

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:1420",
        "http://localhost:5173",
        "tauri://localhost",
    ]


@dataclass(frozen=True)
class ToolPaths:
    """Resolved locations of the external binaries."""
    adb: str = "adb"
    scrcpy: str = "scrcpy"


def _bundle_dir() -> str:
    if sys.platform.startswith("win"):
        return "scrcpy-win64"
    if sys.platform == "darwin":
        return "scrcpy-macos"
    return "scrcpy-linux"


def _ensure_executable(path: Path) -> None:
    if os.name != "posix":
        return
    if path.stat().st_mode & 0o111 == 0:
        try:
            path.chmod(0o755)
        except OSError as e:
            logger.warning(f"Could not make {path} executable: {e}")


def resolve_binary(name: str, explicit: Optional[str], resource_dir: Optional[str]) -> str:
    """
    Locate a tool binary.

    Order: explicit path, then the copy bundled under
    <resource_dir>/binaries/scrcpy-<platform>/, then the bare name on PATH.
    """
    if explicit:
        return explicit

    if resource_dir:
        exe = f"{name}.exe" if sys.platform.startswith("win") else name
        bundled = Path(resource_dir) / "binaries" / _bundle_dir() / exe
        if bundled.exists():
            _ensure_executable(bundled)
            return str(bundled)

    return name


def resolve_tool_paths(config: Settings) -> ToolPaths:
    return ToolPaths(
        adb=resolve_binary("adb", config.ADB_PATH, config.RESOURCE_DIR),
        scrcpy=resolve_binary("scrcpy", config.SCRCPY_PATH, config.RESOURCE_DIR),
    )


settings = Settings()
