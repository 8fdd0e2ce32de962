"""Tests for iOS simulator selection and pipeline."""

import plistlib
import subprocess
from pathlib import Path

import pytest

from devrun.config import DevrunConfig
from devrun.core.ios import (
    ensure_simulator_ready,
    find_first_simulator,
    find_largest_video,
    is_simulator_booted,
    is_version_at_least,
    parse_simulators,
    run_ios_test,
    select_simulator,
)
from devrun.errors import (
    BootTimeoutError,
    DeviceNotFoundError,
    PipelineStepError,
    ProjectNotFoundError,
)
from devrun.models import Device, IosTestTarget

LISTING = """== Devices ==
-- iOS 15.2 --
    iPhone 8 (11111111-1111-1111-1111-111111111111) (Shutdown)
-- iOS 17.5 --
    iPad Pro (11-inch) (4th generation) (22222222-2222-2222-2222-222222222222) (Shutdown)
    iPhone 15 (33333333-3333-3333-3333-333333333333) (Shutdown)
    iPhone 15 Pro (55555555-5555-5555-5555-555555555555) (Booted)
-- watchOS 10.5 --
    Apple Watch Series 9 (45mm) (44444444-4444-4444-4444-444444444444) (Shutdown)
-- Unavailable: com.apple.CoreSimulator.SimRuntime.iOS-16-0 --
    iPhone 14 (66666666-6666-6666-6666-666666666666) (Shutdown) (unavailable, runtime profile not found)
"""

IPHONE_15 = "33333333-3333-3333-3333-333333333333"

PASSING_RUN = """Test Case '-[iosAppUITests.iosAppUITests testScrollingDownGesture]' passed (4.210 seconds).
Test Suite 'All tests' passed at 2024-05-01 10:00:05.000.
** TEST EXECUTE SUCCEEDED **
"""

FAILING_RUN = """Test Case '-[iosAppUITests.iosAppUITests testScrollingDownGesture]' failed (3.100 seconds).
Test Suite 'All tests' failed at 2024-05-01 10:00:05.000.
** TEST EXECUTE FAILED **
"""


def listing_with_state(state: str) -> str:
    return LISTING.replace(f"({IPHONE_15}) (Shutdown)", f"({IPHONE_15}) ({state})")


def write_app_bundle(products: Path, name: str, bundle_id: str) -> Path:
    bundle = products / name
    bundle.mkdir(parents=True)
    with open(bundle / "Info.plist", "wb") as f:
        plistlib.dump({"CFBundleIdentifier": bundle_id}, f)
    return bundle


def creates_result_bundle(cmd: list[str]) -> None:
    """xcodebuild effect: write the requested result bundle."""
    Path(cmd[cmd.index("-resultBundlePath") + 1]).mkdir(parents=True)


def exports_videos(cmd: list[str]) -> None:
    """xcparse effect: export two recordings of different sizes."""
    output_dir = Path(cmd[-1])
    nested = output_dir / "testScrollingDownGesture"
    nested.mkdir(parents=True)
    (nested / "small.mp4").write_bytes(b"x" * 10)
    (nested / "large.mp4").write_bytes(b"x" * 100)
    (output_dir / "screenshot.png").write_bytes(b"x" * 1000)


@pytest.fixture
def device() -> Device:
    return Device(serial=IPHONE_15, name="iPhone 15", os_version="17.5")


@pytest.fixture
def target(project_dir: Path) -> IosTestTarget:
    return IosTestTarget(project_dir=project_dir, test_name="testScrollingDownGesture")


@pytest.fixture
def built_products(project_dir: Path, config: DevrunConfig) -> Path:
    """Products of build-for-testing: the app and its UI test runner."""
    products = project_dir / config.ios.derived_data / "Build/Products/Debug-iphonesimulator"
    write_app_bundle(products, "iosApp.app", "com.example.iosApp")
    write_app_bundle(products, "iosAppUITests-Runner.app", "com.example.iosAppUITests.xctrunner")
    return products


@pytest.fixture
def simulator_booted(fake_tools):
    fake_tools.on("simctl", "list", stdout=listing_with_state("Booted"))
    return fake_tools


class TestVersionComparison:
    """Tests for is_version_at_least."""

    @pytest.mark.parametrize(
        ("version", "minimum", "expected"),
        [
            ("15.3", "15.3", True),
            ("17.5", "15.3", True),
            ("15.2", "15.3", False),
            ("16", "15.3", True),
            ("15", "15.3", False),
            ("15.3.1", "15.3", True),
            ("15.10", "15.9", True),
            ("26.1", "26.1", True),
            ("27.0", "26.1", True),
            ("25.9", "26.1", False),
        ],
    )
    def test_compares_fields_numerically(self, version: str, minimum: str, expected: bool) -> None:
        assert is_version_at_least(version, minimum) is expected


class TestParseSimulators:
    """Tests for parse_simulators."""

    def test_ios_devices_only(self) -> None:
        """watchOS and unavailable runtimes are skipped."""
        names = [device.name for device, _ in parse_simulators(LISTING)]
        assert names == [
            "iPhone 8",
            "iPad Pro (11-inch) (4th generation)",
            "iPhone 15",
            "iPhone 15 Pro",
        ]

    def test_records_os_and_state(self) -> None:
        simulators = parse_simulators(LISTING)
        device, state = simulators[3]
        assert device.serial == "55555555-5555-5555-5555-555555555555"
        assert device.os_version == "17.5"
        assert state == "Booted"

    def test_empty_listing(self) -> None:
        assert parse_simulators("== Devices ==\n") == []


class TestSelection:
    """Tests for simulator selection."""

    def test_first_matching_family_and_version(self) -> None:
        """iPhone 8 is too old and the iPad is the wrong family."""
        device = find_first_simulator(LISTING, "iPhone", "15.3")
        assert device is not None
        assert device.serial == IPHONE_15

    def test_other_family(self) -> None:
        device = find_first_simulator(LISTING, "iPad", "15.3")
        assert device is not None
        assert device.name.startswith("iPad Pro")

    def test_nothing_new_enough(self) -> None:
        assert find_first_simulator(LISTING, "iPhone", "18.0") is None

    def test_is_booted(self) -> None:
        assert is_simulator_booted(LISTING, "55555555-5555-5555-5555-555555555555")
        assert not is_simulator_booted(LISTING, IPHONE_15)
        assert not is_simulator_booted(LISTING, "unknown")

    def test_select_uses_available_devices(self, fake_tools, config: DevrunConfig) -> None:
        fake_tools.on("simctl", "list", stdout=LISTING)
        assert select_simulator(config).serial == IPHONE_15
        assert fake_tools.find("simctl", "list", "devices", "available")

    def test_select_none_found(self, fake_tools, config: DevrunConfig) -> None:
        config.ios.min_os_version = "18.0"
        fake_tools.on("simctl", "list", stdout=LISTING)
        with pytest.raises(DeviceNotFoundError, match="No available iPhone simulator"):
            select_simulator(config)


class TestEnsureSimulatorReady:
    """Tests for ensure_simulator_ready."""

    def test_already_booted(self, simulator_booted, device: Device, config: DevrunConfig) -> None:
        ensure_simulator_ready(device, config)
        assert not simulator_booted.find("simctl", "boot")

    def test_boots_and_waits(self, fake_tools, device: Device, config: DevrunConfig) -> None:
        booting = listing_with_state("Booting")
        fake_tools.on(
            "simctl", "list", stdout=[LISTING, booting, listing_with_state("Booted")]
        )
        ensure_simulator_ready(device, config)
        assert fake_tools.find("simctl", "boot", IPHONE_15)

    def test_boot_timeout(self, fake_tools, device: Device, config: DevrunConfig) -> None:
        fake_tools.on("simctl", "list", stdout=LISTING)
        with pytest.raises(BootTimeoutError, match="Simulator failed to boot"):
            ensure_simulator_ready(device, config)

    def test_boot_command_tolerates_already_booted(
        self, fake_tools, device: Device, config: DevrunConfig
    ) -> None:
        """simctl's 'current state: Booted' error is not a failure."""
        fake_tools.on("simctl", "list", stdout=[LISTING, listing_with_state("Booted")])
        fake_tools.on(
            "simctl",
            "boot",
            returncode=149,
            stderr="Unable to boot device in current state: Booted",
        )
        ensure_simulator_ready(device, config)


def test_find_largest_video(tmp_path: Path) -> None:
    """The biggest recording wins; other attachments are ignored."""
    exports_videos(["xcparse", "attachments", "bundle", str(tmp_path)])
    largest = find_largest_video(tmp_path)
    assert largest is not None
    assert largest.name == "large.mp4"


class TestRunIosTest:
    """Tests for run_ios_test."""

    def test_passing_run(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """A passing run extracts frames and cleans up every artifact."""
        simulator_booted.on(
            "test-without-building", stdout=PASSING_RUN, effect=creates_result_bundle
        )
        simulator_booted.on("xcresulttool", stdout='{"result": "Passed", "totalTestCount": 1}')
        simulator_booted.on("xcparse", effect=exports_videos)
        simulator_booted.on("ffprobe", stdout="0.4\n")
        simulator_booted.on("ffmpeg", effect=simulator_booted.writes_frames(3))

        result = run_ios_test(target, device, config)

        assert result.success
        assert result.error_excerpt is None
        assert result.frame_count == 1
        assert result.frames_dir == target.project_dir / "frames_testScrollingDownGesture"
        assert [p.name for p in result.frames_dir.iterdir()] == ["frame_00003.jpg"]
        assert not list(target.project_dir.glob("*.xcresult"))
        assert not list(target.project_dir.glob("results_*"))

        (ffprobe,) = simulator_booted.find("ffprobe")
        assert ffprobe[-1].endswith("large.mp4")
        assert [step.step for step in result.steps] == [
            "build_app",
            "ensure_device",
            "install_app",
            "execute",
            "read_result_summary",
            "retrieve_recording",
            "extract_frames",
            "delete_local_recording",
            "uninstall_test_artifact",
            "uninstall_app",
        ]

    def test_build_install_and_test_commands(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """The run targets one test on the selected simulator."""
        simulator_booted.on("test-without-building", stdout=PASSING_RUN)

        run_ios_test(target, device, config)

        (build,) = simulator_booted.find("xcodebuild", "build-for-testing")
        assert build[build.index("-destination") + 1] == f"platform=iOS Simulator,id={IPHONE_15}"
        assert build[build.index("-scheme") + 1] == "iosApp"
        app = str(built_products / "iosApp.app")
        assert simulator_booted.find("simctl", "install", IPHONE_15, app)
        (test,) = simulator_booted.find("xcodebuild", "test-without-building")
        assert "-only-testing:iosAppUITests/iosAppUITests/testScrollingDownGesture" in test

    def test_uninstalls_app_and_runner(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        simulator_booted.on("test-without-building", stdout=FAILING_RUN, returncode=65)

        run_ios_test(target, device, config)

        assert simulator_booted.find("uninstall", IPHONE_15, "com.example.iosApp")
        assert simulator_booted.find(
            "uninstall", IPHONE_15, "com.example.iosAppUITests.xctrunner"
        )

    def test_failing_run(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """A failing test reports the full output as excerpt."""
        simulator_booted.on(
            "test-without-building",
            stdout=FAILING_RUN,
            returncode=65,
            effect=creates_result_bundle,
        )
        simulator_booted.on("xcresulttool", stdout='{"result": "Failed", "failedTests": 1}')

        result = run_ios_test(target, device, config)

        assert not result.success
        assert result.error_excerpt == result.output
        assert result.failure_signals[0] == "structured_result"
        assert "all_tests_failed" in result.failure_signals
        assert result.frame_count == 0

    def test_structured_failure_with_clean_output(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """The result bundle can fail a run whose text looks clean."""
        simulator_booted.on(
            "test-without-building", stdout=PASSING_RUN, effect=creates_result_bundle
        )
        simulator_booted.on("xcresulttool", stdout='{"result": "Failed", "failedTests": 1}')

        result = run_ios_test(target, device, config)

        assert not result.success
        assert result.failure_signals == ["structured_result"]

    def test_summary_unavailable_falls_back_to_output(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """Older Xcode without the summary command still classifies by text."""
        simulator_booted.on(
            "test-without-building", stdout=PASSING_RUN, effect=creates_result_bundle
        )
        simulator_booted.on("xcresulttool", returncode=64, stderr="Error: Unknown option")

        result = run_ios_test(target, device, config)

        assert result.success

    def test_runner_timeout_still_cleans_up(
        self,
        simulator_booted,
        built_products: Path,
        target: IosTestTarget,
        device: Device,
        config: DevrunConfig,
    ) -> None:
        """A hung xcodebuild fails the run but both apps are still removed."""
        simulator_booted.on(
            "test-without-building",
            raises=subprocess.TimeoutExpired(["xcodebuild"], config.timeouts.test, output=None),
        )

        result = run_ios_test(target, device, config)

        assert not result.success
        assert result.failure_signals == ["runner_timeout"]
        assert result.error_excerpt == f"xcodebuild timed out after {config.timeouts.test} seconds"
        assert simulator_booted.find("uninstall", IPHONE_15, "com.example.iosApp")
        assert simulator_booted.find(
            "uninstall", IPHONE_15, "com.example.iosAppUITests.xctrunner"
        )

    def test_missing_project_dir(
        self, fake_tools, tmp_path: Path, device: Device, config: DevrunConfig
    ) -> None:
        target = IosTestTarget(project_dir=tmp_path / "missing", test_name="testScrollingDownGesture")
        with pytest.raises(ProjectNotFoundError):
            run_ios_test(target, device, config)
        assert fake_tools.calls == []

    def test_build_failure_aborts(
        self, simulator_booted, target: IosTestTarget, device: Device, config: DevrunConfig
    ) -> None:
        simulator_booted.on("build-for-testing", returncode=65, stdout="** BUILD FAILED **")

        with pytest.raises(PipelineStepError) as exc_info:
            run_ios_test(target, device, config)

        assert exc_info.value.step == "build_app"
        assert not simulator_booted.find("test-without-building")

    def test_missing_app_bundle_aborts_install(
        self, simulator_booted, target: IosTestTarget, device: Device, config: DevrunConfig
    ) -> None:
        """Without build products there is nothing to install."""
        with pytest.raises(PipelineStepError) as exc_info:
            run_ios_test(target, device, config)

        assert exc_info.value.step == "install_app"
        assert "No built app found" in exc_info.value.message
