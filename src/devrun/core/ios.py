"""iOS pipeline: simulator selection, boot and XCUITest run."""

import logging
import re
import shutil
import uuid
from pathlib import Path

from ..config import DevrunConfig
from ..errors import BootTimeoutError, DeviceNotFoundError, ToolError
from ..models import Device, IosTestTarget, RunResult
from ..services import ios as simctl
from .classifier import Platform, failure_reasons, parse_xcresult_summary
from .extractor import FrameExtractor
from .pipeline import Step, StepRunner, require_project_dir
from .wait import await_condition

logger = logging.getLogger(__name__)

VIDEO_SUFFIXES = (".mp4", ".mov", ".m4v")

_OS_HEADER = re.compile(r"^--\s+iOS\s+([\d.]+)\s+--")
_DEVICE_LINE = re.compile(r"^\s+(.+?)\s+\(([0-9A-Fa-f-]{36})\)\s+\((\w[\w ]*)\)")


def is_version_at_least(version: str, minimum: str) -> bool:
    """Compare dotted versions field by field; missing fields count as 0.

    >>> is_version_at_least("26.1", "26.1")
    True
    >>> is_version_at_least("25.9", "26.1")
    False
    """
    left = [int(part) for part in version.split(".")]
    right = [int(part) for part in minimum.split(".")]
    for i in range(max(len(left), len(right))):
        a = left[i] if i < len(left) else 0
        b = right[i] if i < len(right) else 0
        if a != b:
            return a > b
    return True


def parse_simulators(listing: str) -> list[tuple[Device, str]]:
    """Parse `xcrun simctl list devices` output.

    Only devices under ``-- iOS x.y --`` headers are returned; watchOS,
    tvOS and unavailable runtimes are skipped.

    Returns:
        List of (device, state) pairs in listing order
    """
    simulators: list[tuple[Device, str]] = []
    current_os: str | None = None
    for line in listing.splitlines():
        header = _OS_HEADER.match(line)
        if header:
            current_os = header.group(1)
            continue
        if line.startswith("--"):
            current_os = None
            continue
        match = _DEVICE_LINE.match(line)
        if match and current_os:
            name, udid, state = match.groups()
            simulators.append((Device(serial=udid, name=name, os_version=current_os), state))
    return simulators


def find_first_simulator(listing: str, family: str, min_os_version: str) -> Device | None:
    """First simulator whose name starts with ``family`` on a new enough OS."""
    for device, _state in parse_simulators(listing):
        if device.name.startswith(family) and is_version_at_least(
            device.os_version or "0", min_os_version
        ):
            return device
    return None


def is_simulator_booted(listing: str, udid: str) -> bool:
    return any(
        device.serial == udid and state == "Booted" for device, state in parse_simulators(listing)
    )


def select_simulator(config: DevrunConfig) -> Device:
    """Pick the simulator a run will lock and use.

    Raises:
        DeviceNotFoundError: If no available simulator qualifies
        ToolError: If simctl can't be run
    """
    ios = config.ios
    listing = simctl.list_simulators(config.tools, config.timeouts, available_only=True)
    device = find_first_simulator(listing, ios.device_family, ios.min_os_version)
    if device is None:
        raise DeviceNotFoundError(
            f"No available {ios.device_family} simulator found (OS >= {ios.min_os_version})."
        )
    return device


def ensure_simulator_ready(device: Device, config: DevrunConfig) -> Device:
    """Boot the simulator unless it is already booted.

    Raises:
        BootTimeoutError: If it doesn't report Booted in time
        ToolError: If simctl can't be run
    """
    tools, timeouts, ios = config.tools, config.timeouts, config.ios

    def booted() -> bool:
        return is_simulator_booted(simctl.list_simulators(tools, timeouts), device.serial)

    if booted():
        logger.info("✓ Simulator already running")
        return device

    logger.info("Booting simulator...")
    simctl.boot_simulator(device.serial, tools, timeouts)
    if not await_condition(
        booted, interval=ios.poll_interval, timeout=ios.boot_timeout, ignore_errors=(ToolError,)
    ):
        raise BootTimeoutError(
            f"Simulator failed to boot within {ios.boot_timeout:g} seconds. "
            "Please check simulator logs."
        )
    logger.info("✓ Simulator booted")
    return device


def find_largest_video(directory: Path) -> Path | None:
    """Largest video file anywhere under ``directory``."""
    videos = [
        path
        for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() in VIDEO_SUFFIXES
    ]
    return max(videos, key=lambda path: path.stat().st_size, default=None)


def _remove_trees(*paths: Path) -> None:
    for path in paths:
        if path.exists():
            shutil.rmtree(path)


def run_ios_test(target: IosTestTarget, device: Device, config: DevrunConfig) -> RunResult:
    """Build, install and run one UI test on a simulator.

    The caller must hold the device lock for ``device.serial``. The UI test
    bundle is built together with the app, so there is no separate test
    artifact build or install step.

    Raises:
        ProjectNotFoundError: If the project directory is missing
        PipelineStepError: If a fatal step fails
    """
    project_dir = target.project_dir
    require_project_dir(project_dir)

    ios, tools, timeouts = config.ios, config.tools, config.timeouts
    udid = device.serial
    steps = StepRunner()

    run_id = uuid.uuid4()
    result_bundle = project_dir / f"{run_id}.xcresult"
    attachments_dir = project_dir / f"results_{run_id}"

    steps.fatal(
        Step.BUILD_APP,
        "Building app and UI tests",
        lambda: simctl.build_for_testing(project_dir, udid, ios, tools, timeouts),
    )
    steps.fatal(
        Step.ENSURE_DEVICE,
        "Checking simulator",
        lambda: ensure_simulator_ready(device, config),
    )

    app_bundle, runner_bundle = simctl.find_built_apps(project_dir, ios)

    def install() -> None:
        if app_bundle is None:
            raise ToolError(f"No built app found under {project_dir / ios.derived_data}")
        simctl.install_app(udid, app_bundle, tools, timeouts)

    steps.fatal(Step.INSTALL_APP, "Installing app", install)
    run = steps.fatal(
        Step.EXECUTE,
        f"Running test: {target.test_name}",
        lambda: simctl.run_test(project_dir, udid, target.test_name, result_bundle, ios, tools, timeouts),
    )
    output = run.output

    structured = None
    frames_dir = None
    frame_count = 0
    if result_bundle.exists():
        summary = steps.best_effort(
            Step.READ_RESULT_SUMMARY,
            "Reading test summary",
            lambda: simctl.result_summary(result_bundle, tools, timeouts),
        )
        if summary:
            structured = parse_xcresult_summary(summary)

        steps.best_effort(
            Step.RETRIEVE_RECORDING,
            "Exporting attachments",
            lambda: simctl.export_attachments(result_bundle, attachments_dir, tools, timeouts),
        )
        video = find_largest_video(attachments_dir) if attachments_dir.is_dir() else None
        if video is not None:
            frames_dir = project_dir / f"frames_{target.test_name}"
            extractor = FrameExtractor(config.frames, tools, timeouts)
            logger.info("Extracting frames from video...")
            frame_count = (
                steps.best_effort(
                    Step.EXTRACT_FRAMES,
                    "Extracting frames",
                    lambda: extractor.extract(video, frames_dir),
                )
                or 0
            )
        steps.best_effort(
            Step.DELETE_LOCAL_RECORDING,
            "Deleting attachments and result bundle",
            lambda: _remove_trees(attachments_dir, result_bundle),
        )
    else:
        logger.warning(f"No result bundle found in {result_bundle}")

    reasons = failure_reasons(output, Platform.IOS, structured, timed_out=run.timed_out)
    success = not reasons

    logger.info("Cleaning up...")
    if runner_bundle is not None:
        steps.best_effort(
            Step.UNINSTALL_TEST_ARTIFACT,
            "Uninstalling UI test runner",
            lambda: simctl.uninstall_app(udid, simctl.read_bundle_id(runner_bundle), tools, timeouts),
        )
    if app_bundle is not None:
        steps.best_effort(
            Step.UNINSTALL_APP,
            "Uninstalling app",
            lambda: simctl.uninstall_app(udid, simctl.read_bundle_id(app_bundle), tools, timeouts),
        )

    return RunResult(
        success=success,
        output=output,
        error_excerpt=None if success else output,
        frame_count=frame_count,
        frames_dir=frames_dir,
        failure_signals=reasons,
        steps=steps.outcomes,
    )
