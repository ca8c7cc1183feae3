"""DroidDesk: Android device management backend over adb and scrcpy."""

__version__ = "1.0.0"
