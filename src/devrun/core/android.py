"""Android pipeline: emulator lifecycle and instrumentation test run."""

import logging
import time

from ..config import DevrunConfig
from ..errors import BootTimeoutError, DeviceNotFoundError, ToolError
from ..models import AndroidTestTarget, Device, RunResult
from ..services import android as adb
from .classifier import Platform, extract_error_excerpt, failure_reasons
from .extractor import FrameExtractor
from .pipeline import Step, StepRunner, require_project_dir
from .wait import await_condition

logger = logging.getLogger(__name__)

READY_STATE = "device"


class AndroidEmulator:
    """Lifecycle of the emulator on the configured fixed port."""

    def __init__(self, config: DevrunConfig) -> None:
        self.config = config
        self.serial = config.android.serial

    def is_ready(self) -> bool:
        """True if adb lists the emulator in the ``device`` state."""
        devices = adb.list_devices(self.config.tools, self.config.timeouts)
        return devices.get(self.serial) == READY_STATE

    def ensure_ready(self) -> Device:
        """Return the running emulator, booting one if needed.

        Raises:
            DeviceNotFoundError: If no AVD is available to boot
            BootTimeoutError: If the emulator doesn't come up in time
            ToolError: If adb or emulator can't be run
        """
        if self.is_ready():
            logger.info("✓ Emulator already running")
            return self._describe(self.serial)

        avd = self.boot()
        logger.info("✓ Emulator started successfully")
        return self._describe(avd)

    def boot(self) -> str:
        """Start an AVD on the fixed port and wait until it is usable.

        Returns:
            Name of the AVD that was started
        """
        android = self.config.android
        avds = adb.list_avds(self.config.tools, self.config.timeouts)
        if not avds:
            raise DeviceNotFoundError(
                "No Android Virtual Devices (AVDs) found. Please create an AVD using Android Studio."
            )
        if android.avd and android.avd not in avds:
            raise DeviceNotFoundError(f"AVD {android.avd} not found (available: {', '.join(avds)})")
        avd = android.avd or avds[0]

        logger.info(f"Using AVD: {avd}")
        adb.start_emulator(avd, android.port, self.config.tools)

        logger.info("Waiting for emulator to boot...")
        ready = await_condition(
            self.is_ready,
            interval=android.poll_interval,
            timeout=android.boot_timeout,
            ignore_errors=(ToolError,),
        )
        if not ready:
            raise BootTimeoutError(
                f"Emulator failed to start within {android.boot_timeout:g} seconds. "
                "Please check emulator logs."
            )
        # adb reports "device" before package manager and storage are up
        time.sleep(android.settle_delay)
        return avd

    def _describe(self, name: str) -> Device:
        return Device(
            serial=self.serial,
            name=name,
            os_version=adb.get_os_version(self.serial, self.config.tools, self.config.timeouts),
        )


def run_android_test(target: AndroidTestTarget, config: DevrunConfig) -> RunResult:
    """Build, install and run one instrumentation test on the emulator.

    The caller must hold the device lock for ``config.android.serial``.

    Raises:
        ProjectNotFoundError: If the project directory is missing
        PipelineStepError: If a fatal step fails
    """
    project_dir = target.project_dir
    require_project_dir(project_dir)

    android, tools, timeouts = config.android, config.tools, config.timeouts
    serial = android.serial
    steps = StepRunner()

    steps.fatal(
        Step.BUILD_APP,
        "Building debug APK",
        lambda: adb.run_gradle(project_dir, android.app_task, android, timeouts),
    )
    steps.fatal(
        Step.BUILD_TEST_ARTIFACT,
        "Building test APK",
        lambda: adb.run_gradle(project_dir, android.test_task, android, timeouts),
    )
    steps.fatal(
        Step.ENSURE_DEVICE,
        "Checking for running emulator",
        AndroidEmulator(config).ensure_ready,
    )
    steps.fatal(
        Step.INSTALL_APP,
        "Installing debug APK",
        lambda: adb.install(serial, project_dir / android.app_apk, tools, timeouts),
    )
    steps.fatal(
        Step.INSTALL_TEST_ARTIFACT,
        "Installing test APK",
        lambda: adb.install(serial, project_dir / android.test_apk, tools, timeouts),
    )
    run = steps.fatal(
        Step.EXECUTE,
        f"Running test: {target.test_name}",
        lambda: adb.run_instrumentation(
            serial,
            target.instrumentation_target,
            target.test_package_name,
            android.runner,
            tools,
            timeouts,
        ),
    )
    output = run.output

    # The test records itself into the app's external files directory
    recording_name = f"screenrecord_{target.test_name}.mp4"
    remote_recording = f"{android.recording_dir.format(package=target.package_name)}/{recording_name}"
    local_recording = project_dir / recording_name
    frames_dir = None
    frame_count = 0

    steps.best_effort(
        Step.RETRIEVE_RECORDING,
        "Pulling screen recording",
        lambda: adb.pull(serial, remote_recording, local_recording, tools, timeouts),
    )
    if local_recording.exists():
        frames_dir = project_dir / f"frames_{target.test_name}"
        extractor = FrameExtractor(config.frames, tools, timeouts)
        logger.info("Extracting frames from video...")
        frame_count = (
            steps.best_effort(
                Step.EXTRACT_FRAMES,
                "Extracting frames",
                lambda: extractor.extract(local_recording, frames_dir),
            )
            or 0
        )
        steps.best_effort(
            Step.DELETE_LOCAL_RECORDING, "Deleting screen recording", local_recording.unlink
        )

    reasons = failure_reasons(output, Platform.ANDROID, timed_out=run.timed_out)
    success = not reasons
    excerpt = extract_error_excerpt(output)

    logger.info("Cleaning up...")
    steps.best_effort(
        Step.UNINSTALL_TEST_ARTIFACT,
        "Uninstalling test APK",
        lambda: adb.uninstall(serial, target.test_package_name, tools, timeouts),
    )
    steps.best_effort(
        Step.UNINSTALL_APP,
        "Uninstalling app",
        lambda: adb.uninstall(serial, target.package_name, tools, timeouts),
    )

    return RunResult(
        success=success,
        output=output,
        error_excerpt=excerpt or (None if success else output),
        frame_count=frame_count,
        frames_dir=frames_dir,
        failure_signals=reasons,
        steps=steps.outcomes,
    )
