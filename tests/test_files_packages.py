import pytest

from conftest import SERIAL, FakeRunner
from droiddesk import files, packages
from droiddesk.adb_utils import AdbError, ProcessResult

LS_SDCARD = """total 24
drwxrwx--x 2 root sdcard_rw 3452 2024-01-01 12:00 Download
-rw-rw---- 1 root sdcard_rw 1024 2024-01-01 12:00 notes.txt
lrw-r--r-- 1 root root 21 2024-01-01 12:00 sdcard -> /storage/self/primary
"""


class TestFiles:
    def test_list_directory(self):
        runner = FakeRunner(commands={("-s", SERIAL, "shell", "ls", "-l", "/sdcard/"): LS_SDCARD})
        entries = files.list_files(runner, SERIAL, "/sdcard/")

        assert [e.name for e in entries] == ["Download", "notes.txt", "sdcard -> /storage/self/primary"]
        assert entries[0].path == "/sdcard/Download"
        assert entries[0].is_dir
        assert entries[1].size == 1024
        assert not entries[1].is_dir
        assert entries[2].path == "/sdcard//storage/self/primary"

    def test_list_missing_directory(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "shell", "ls", "-l", "/nope"): ProcessResult(1, "", "ls: /nope: No such file or directory"),
        })
        with pytest.raises(AdbError, match="No such file"):
            files.list_files(runner, SERIAL, "/nope")

    def test_paths_with_spaces_are_quoted(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "shell", "rm", "-f", "-r", "'/sdcard/My Docs'"): "",
        })
        assert files.delete_file(runner, SERIAL, "/sdcard/My Docs") == "Delete successful"

    def test_rename_moves_within_parent(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "shell", "mv", "/sdcard/a.txt", "/sdcard/b.txt"): "",
        })
        assert files.rename_file(runner, SERIAL, "/sdcard/a.txt", "b.txt") == "Rename successful"

    def test_transfers(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "pull", "/sdcard/a.txt", "/tmp/a.txt"): "1 file pulled",
            ("-s", SERIAL, "push", "/tmp/b.txt", "/sdcard/b.txt"): "1 file pushed",
            ("-s", SERIAL, "shell", "mkdir", "-p", "/sdcard/new"): "",
            ("-s", SERIAL, "shell", "cp", "-r", "/sdcard/a.txt", "/sdcard/new"): "",
        })
        assert files.download_file(runner, SERIAL, "/sdcard/a.txt", "/tmp/a.txt") == "Download successful"
        assert files.upload_file(runner, SERIAL, "/tmp/b.txt", "/sdcard/b.txt") == "Upload successful"
        assert files.create_folder(runner, SERIAL, "/sdcard/new") == "Folder created"
        assert files.copy_file(runner, SERIAL, "/sdcard/a.txt", "/sdcard/new") == "Copy successful"

    def test_read_content(self):
        runner = FakeRunner(files={"/sdcard/a.bin": b"\x00\x01\xff"})
        assert files.read_file_content(runner, SERIAL, "/sdcard/a.bin") == b"\x00\x01\xff"
        with pytest.raises(AdbError, match="No such file"):
            files.read_file_content(runner, SERIAL, "/sdcard/missing.bin")


def pm(*args):
    return ("-s", SERIAL, "shell", "pm") + args


PACKAGE_DUMP = """Packages:
  Package [com.example.app] (a1b2c3):
    userId=10123
    codePath=/data/app/~~xyz==/com.example.app-1
    versionCode=42 minSdk=24 targetSdk=34
    versionName=2.1.0
    firstInstallTime=2024-01-01 10:00:00
    lastUpdateTime=2024-02-01 10:00:00
    installerPackageName=com.android.vending
    requested permissions:
      android.permission.INTERNET
      android.permission.CAMERA
    install permissions:
      android.permission.INTERNET: granted=true
    User 0: ceDataInode=1234 installed=true hidden=false suspended=false enabled=3
"""


class TestPackages:
    def test_list_user_packages_sorted(self):
        runner = FakeRunner(commands={
            pm("list", "packages", "-d"): "package:com.b.app\n",
            pm("list", "packages", "-f", "-3"): (
                "package:/data/app/~~x==/com.b.app-1/base.apk=com.b.app\n"
                "package:/data/app/com.a.app-2/base.apk=com.a.app\n"
            ),
        })
        found = packages.list_packages(runner, SERIAL)

        assert [p.package_id for p in found] == ["com.a.app", "com.b.app"]
        assert found[1].path == "/data/app/~~x==/com.b.app-1/base.apk"
        assert not found[1].is_enabled
        assert found[0].is_enabled
        assert pm("list", "packages", "-f", "-s") not in runner.calls

    def test_include_system(self):
        runner = FakeRunner(commands={
            pm("list", "packages", "-f", "-3"): "package:/data/app/z/base.apk=org.zeta\n",
            pm("list", "packages", "-f", "-s"): "package:/system/app/Settings/Settings.apk=com.android.settings\n",
        })
        found = packages.list_packages(runner, SERIAL, include_system=True)

        assert [(p.package_id, p.is_system) for p in found] == [
            ("com.android.settings", True), ("org.zeta", False),
        ]

    def test_details(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "shell", "dumpsys", "package", "com.example.app"): PACKAGE_DUMP,
            ("-s", SERIAL, "shell", "du", "-h", "/data/app/~~xyz==/com.example.app-1"):
                "25M\t/data/app/~~xyz==/com.example.app-1\n",
        })
        details = packages.get_package_details(runner, SERIAL, "com.example.app")

        assert details.package_id == "com.example.app"
        assert details.version_name == "2.1.0"
        assert details.version_code == "42"
        assert details.min_sdk == "24"
        assert details.target_sdk == "34"
        assert details.uid == "10123"
        assert details.installer == "com.android.vending"
        assert details.permissions == ["android.permission.INTERNET", "android.permission.CAMERA"]
        assert details.size == "25M"
        assert details.is_enabled is False

    def test_details_without_size(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "shell", "dumpsys", "package", "com.example.app"): PACKAGE_DUMP,
        })
        assert packages.get_package_details(runner, SERIAL, "com.example.app").size == "Unknown"

    def test_install(self):
        runner = FakeRunner(commands={
            ("-s", SERIAL, "install", "-r", "/tmp/good.apk"): "Performing Streamed Install\nSuccess\n",
            ("-s", SERIAL, "install", "-r", "/tmp/bad.apk"):
                ProcessResult(1, "", "adb: failed to install /tmp/bad.apk: INSTALL_FAILED_INVALID_APK"),
        })
        assert packages.install_package(runner, SERIAL, "/tmp/good.apk") == "Installed successfully"
        with pytest.raises(AdbError, match="INSTALL_FAILED_INVALID_APK"):
            packages.install_package(runner, SERIAL, "/tmp/bad.apk")

    def test_uninstall_failure_reports_stdout(self):
        runner = FakeRunner(commands={
            pm("uninstall", "com.a.app"): "Success\n",
            pm("uninstall", "com.b.app"): ProcessResult(1, "Failure [DELETE_FAILED_INTERNAL_ERROR]\n", ""),
        })
        assert packages.uninstall_package(runner, SERIAL, "com.a.app") == "Uninstalled successfully"
        with pytest.raises(AdbError, match=r"Failure \[DELETE_FAILED_INTERNAL_ERROR\]"):
            packages.uninstall_package(runner, SERIAL, "com.b.app")

    def test_pm_error_on_stderr_with_zero_exit(self):
        runner = FakeRunner(commands={
            pm("disable-user", "--user", "0", "com.a.app"):
                ProcessResult(0, "", "Error: java.lang.SecurityException: Shell cannot change component state"),
        })
        with pytest.raises(AdbError, match="SecurityException"):
            packages.disable_package(runner, SERIAL, "com.a.app")

    def test_enable_clear_stop_launch(self):
        runner = FakeRunner(commands={
            pm("enable", "com.a.app"): "Package com.a.app new state: enabled\n",
            pm("clear", "com.a.app"): "Success\n",
            ("-s", SERIAL, "shell", "am", "force-stop", "com.a.app"): "",
            ("-s", SERIAL, "shell", "monkey", "-p", "com.a.app",
             "-c", "android.intent.category.LAUNCHER", "1"): "Events injected: 1\n",
        })
        packages.enable_package(runner, SERIAL, "com.a.app")
        packages.clear_package_data(runner, SERIAL, "com.a.app")
        packages.force_stop_package(runner, SERIAL, "com.a.app")
        packages.launch_package(runner, SERIAL, "com.a.app")
        assert len(runner.calls) == 4
