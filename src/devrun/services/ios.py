"""iOS tool integration: simctl, xcodebuild, xcparse and xcresulttool."""

import plistlib
from pathlib import Path

from ..config import IosConfig, TimeoutsConfig, ToolsConfig
from ..errors import ToolError
from .tools import ToolResult, run_tool

PRODUCTS_SUBDIR = "Build/Products/Debug-iphonesimulator"
RUNNER_SUFFIX = "-Runner.app"


def destination(udid: str) -> str:
    return f"platform=iOS Simulator,id={udid}"


def list_simulators(
    tools: ToolsConfig, timeouts: TimeoutsConfig, available_only: bool = False
) -> str:
    """Return raw `xcrun simctl list devices` output.

    Raises:
        ToolError: If simctl fails
    """
    cmd = [tools.xcrun, "simctl", "list", "devices"]
    if available_only:
        cmd.append("available")
    return run_tool(cmd, timeout=timeouts.device_query, check=True).stdout


def boot_simulator(udid: str, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Ask simctl to boot a simulator; readiness is polled separately.

    Raises:
        ToolError: If the boot command fails
    """
    result = run_tool(
        [tools.xcrun, "simctl", "boot", udid], timeout=timeouts.device_query
    )
    # simctl exits non-zero when the device is already booted
    if not result.ok and "Booted" not in result.output:
        raise ToolError(f"simctl boot {udid} failed: {result.output.strip()}")


def build_for_testing(
    project_dir: Path, udid: str, config: IosConfig, tools: ToolsConfig, timeouts: TimeoutsConfig
) -> None:
    """Build the app and its UI test bundle.

    Raises:
        ToolError: If the build fails
    """
    run_tool(
        [
            tools.xcodebuild,
            "build-for-testing",
            "-scheme",
            config.scheme,
            "-destination",
            destination(udid),
            "-derivedDataPath",
            config.derived_data,
        ],
        cwd=project_dir,
        timeout=timeouts.build,
        check=True,
    )


def run_test(
    project_dir: Path,
    udid: str,
    test_name: str,
    result_bundle: Path,
    config: IosConfig,
    tools: ToolsConfig,
    timeouts: TimeoutsConfig,
) -> ToolResult:
    """Run one UI test against the prebuilt products.

    The exit code is not checked: xcodebuild exits non-zero on test failure.

    Raises:
        ToolError: If xcodebuild can't be invoked; a timeout returns the
            partial output with ``timed_out`` set
    """
    return run_tool(
        [
            tools.xcodebuild,
            "test-without-building",
            "-scheme",
            config.scheme,
            "-destination",
            destination(udid),
            "-derivedDataPath",
            config.derived_data,
            "-resultBundlePath",
            str(result_bundle),
            f"-only-testing:{config.test_target}/{test_name}",
        ],
        cwd=project_dir,
        timeout=timeouts.test,
        allow_timeout=True,
    )


def find_built_apps(project_dir: Path, config: IosConfig) -> tuple[Path | None, Path | None]:
    """Locate the built app and UI test runner app.

    Returns:
        Tuple of (app bundle, test runner bundle); either may be None
    """
    products = project_dir / config.derived_data / PRODUCTS_SUBDIR
    if not products.is_dir():
        return None, None
    app: Path | None = None
    runner: Path | None = None
    for bundle in sorted(products.glob("*.app")):
        if bundle.name.endswith(RUNNER_SUFFIX):
            runner = runner or bundle
        else:
            app = app or bundle
    return app, runner


def read_bundle_id(app_bundle: Path) -> str:
    """Read CFBundleIdentifier from an app bundle's Info.plist.

    Raises:
        ToolError: If the plist is missing or has no identifier
    """
    info = app_bundle / "Info.plist"
    try:
        with open(info, "rb") as f:
            bundle_id = plistlib.load(f).get("CFBundleIdentifier")
    except (OSError, plistlib.InvalidFileException) as e:
        raise ToolError(f"Cannot read {info}: {e}") from e
    if not bundle_id:
        raise ToolError(f"No CFBundleIdentifier in {info}")
    return bundle_id


def install_app(udid: str, app_bundle: Path, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Install an app bundle on a simulator.

    Raises:
        ToolError: If installation fails
    """
    run_tool(
        [tools.xcrun, "simctl", "install", udid, str(app_bundle)],
        timeout=timeouts.install,
        check=True,
    )


def uninstall_app(udid: str, bundle_id: str, tools: ToolsConfig, timeouts: TimeoutsConfig) -> None:
    """Remove an app from a simulator.

    Raises:
        ToolError: If the uninstall fails
    """
    run_tool(
        [tools.xcrun, "simctl", "uninstall", udid, bundle_id],
        timeout=timeouts.install,
        check=True,
    )


def export_attachments(
    result_bundle: Path, output_dir: Path, tools: ToolsConfig, timeouts: TimeoutsConfig
) -> None:
    """Export result bundle attachments (screen recordings) with xcparse.

    Raises:
        ToolError: If xcparse fails
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    run_tool(
        [tools.xcparse, "attachments", str(result_bundle), str(output_dir)],
        timeout=timeouts.media,
        check=True,
    )


def result_summary(result_bundle: Path, tools: ToolsConfig, timeouts: TimeoutsConfig) -> str:
    """Return the JSON test summary of a result bundle (Xcode 16+).

    Raises:
        ToolError: If xcresulttool is unavailable or fails
    """
    return run_tool(
        [
            tools.xcrun,
            "xcresulttool",
            "get",
            "test-results",
            "summary",
            "--path",
            str(result_bundle),
            "--compact",
        ],
        timeout=timeouts.device_query,
        check=True,
    ).stdout
