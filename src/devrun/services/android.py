"""Android tool integration: gradle wrapper, adb and emulator."""

import os
from pathlib import Path

from ..config import AndroidConfig, TimeoutsConfig, ToolsConfig
from ..errors import ToolError
from .tools import ToolResult, run_tool, spawn_tool


def gradle_executable(config: AndroidConfig) -> str:
    """Gradle wrapper for the host: gradlew.bat on Windows."""
    if os.name == "nt" and config.gradlew == "./gradlew":
        return "gradlew.bat"
    return config.gradlew


def run_gradle(project_dir: Path, task: str, config: AndroidConfig, timeouts: TimeoutsConfig) -> str:
    """Run one gradle task in the project.

    Raises:
        ToolError: If the build fails
    """
    result = run_tool(
        [gradle_executable(config), task],
        cwd=project_dir,
        timeout=timeouts.build,
        check=True,
    )
    return result.stdout


def parse_adb_devices(stdout: str) -> dict[str, str]:
    """Parse `adb devices` output into {serial: state}.

    >>> parse_adb_devices("List of devices attached\\nemulator-5554\\tdevice\\n")
    {'emulator-5554': 'device'}
    """
    devices: dict[str, str] = {}
    for line in stdout.splitlines():
        if "\t" not in line:
            continue
        serial, _, state = line.partition("\t")
        devices[serial.strip()] = state.strip()
    return devices


def list_devices(tools: ToolsConfig, timeouts: TimeoutsConfig) -> dict[str, str]:
    """List devices known to adb.

    Raises:
        ToolError: If adb is missing or fails
    """
    result = run_tool([tools.adb, "devices"], timeout=timeouts.device_query, check=True)
    return parse_adb_devices(result.stdout)


def list_avds(tools: ToolsConfig, timeouts: TimeoutsConfig) -> list[str]:
    """List configured Android Virtual Devices."""
    result = run_tool([tools.emulator, "-list-avds"], timeout=timeouts.device_query, check=True)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def start_emulator(avd: str, port: int, tools: ToolsConfig) -> None:
    """Launch an emulator in the background; it keeps running after devrun exits."""
    spawn_tool([tools.emulator, "-avd", avd, "-port", str(port), "-no-snapshot-load", "-no-audio"])


def get_os_version(serial: str, tools: ToolsConfig, timeouts: TimeoutsConfig) -> str | None:
    """Read the Android release of a device, None if it can't be queried."""
    try:
        result = run_tool(
            [tools.adb, "-s", serial, "shell", "getprop", "ro.build.version.release"],
            timeout=timeouts.device_query,
        )
    except ToolError:
        return None
    version = result.stdout.strip()
    return version if result.ok and version else None


def install(serial: str, apk: Path, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Install (or reinstall) an APK.

    adb reports some install failures with exit code 0, so the output is
    checked for the Failure marker too.

    Raises:
        ToolError: If installation fails
    """
    result = run_tool(
        [tools.adb, "-s", serial, "install", "-r", str(apk)],
        timeout=timeouts.install,
        check=True,
    )
    if "Failure [" in result.output:
        raise ToolError(f"adb install {apk.name} failed: {result.output.strip()}")


def run_instrumentation(
    serial: str,
    target: str,
    test_package: str,
    runner: str,
    tools: ToolsConfig,
    timeouts: TimeoutsConfig,
) -> ToolResult:
    """Run one instrumentation test with raw (-r) status output.

    The exit code is not checked: a failing test is reported in the output.

    Raises:
        ToolError: If adb can't be invoked; a timeout returns the partial
            output with ``timed_out`` set
    """
    return run_tool(
        [
            tools.adb,
            "-s",
            serial,
            "shell",
            "am",
            "instrument",
            "-w",
            "-r",
            "-e",
            "class",
            target,
            f"{test_package}/{runner}",
        ],
        timeout=timeouts.test,
        allow_timeout=True,
    )


def pull(serial: str, remote: str, local: Path, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Copy a file off the device.

    Raises:
        ToolError: If the pull fails
    """
    run_tool(
        [tools.adb, "-s", serial, "pull", remote, str(local)],
        timeout=timeouts.install,
        check=True,
    )


def uninstall(serial: str, package: str, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Remove a package from the device.

    Raises:
        ToolError: If the uninstall fails
    """
    result = run_tool(
        [tools.adb, "-s", serial, "uninstall", package],
        timeout=timeouts.install,
        check=True,
    )
    if "Failure" in result.output:
        raise ToolError(f"adb uninstall {package} failed: {result.output.strip()}")
