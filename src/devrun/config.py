"""Configuration management for devrun."""

import tempfile
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import (
    ANDROID_SETTLE_DELAY,
    BOOT_POLL_INTERVAL,
    BOOT_TIMEOUT,
    BUILD_TIMEOUT,
    DEVICE_QUERY_TIMEOUT,
    INSTALL_TIMEOUT,
    LOCK_POLL_INTERVAL,
    LOCK_TIMEOUT,
    MEDIA_TIMEOUT,
    TEST_TIMEOUT,
)

CONFIG_FILE = ".devrun.toml"


class LockConfig(BaseModel):
    """Device lock settings."""

    timeout: float = LOCK_TIMEOUT
    poll_interval: float = LOCK_POLL_INTERVAL
    directory: Path | None = None  # Defaults to the system temp dir

    def get_directory(self) -> Path:
        return self.directory or Path(tempfile.gettempdir())


class AndroidConfig(BaseModel):
    """Android emulator and build settings."""

    port: int = 5554
    avd: str | None = None  # First AVD from `emulator -list-avds` when unset
    gradlew: str = "./gradlew"
    app_task: str = "assembleDebug"
    test_task: str = "assembleDebugAndroidTest"
    app_apk: str = "composeApp/build/outputs/apk/debug/composeApp-debug.apk"
    test_apk: str = (
        "composeApp/build/outputs/apk/androidTest/debug/composeApp-debug-androidTest.apk"
    )
    runner: str = "androidx.test.runner.AndroidJUnitRunner"
    recording_dir: str = "/storage/emulated/0/Android/data/{package}/files"
    boot_timeout: float = BOOT_TIMEOUT
    poll_interval: float = BOOT_POLL_INTERVAL
    settle_delay: float = ANDROID_SETTLE_DELAY

    @property
    def serial(self) -> str:
        return f"emulator-{self.port}"


class IosConfig(BaseModel):
    """iOS simulator and xcodebuild settings."""

    scheme: str = "iosApp"
    test_target: str = "iosAppUITests/iosAppUITests"
    device_family: str = "iPhone"
    min_os_version: str = "15.3"
    derived_data: str = ".devrun/DerivedData"
    boot_timeout: float = BOOT_TIMEOUT
    poll_interval: float = BOOT_POLL_INTERVAL


class FramesConfig(BaseModel):
    """Frame extraction settings."""

    width: int = Field(default=320, gt=0)
    quality: int = Field(default=6, ge=1, le=31)  # ffmpeg -q:v scale
    fps: int = Field(default=1, gt=0)


class ToolsConfig(BaseModel):
    """Executables for external tools."""

    adb: str = "adb"
    emulator: str = "emulator"
    xcrun: str = "xcrun"
    xcodebuild: str = "xcodebuild"
    xcparse: str = "xcparse"
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"


class TimeoutsConfig(BaseModel):
    """Subprocess timeouts in seconds."""

    build: int = BUILD_TIMEOUT
    install: int = INSTALL_TIMEOUT
    test: int = TEST_TIMEOUT
    device_query: int = DEVICE_QUERY_TIMEOUT
    media: int = MEDIA_TIMEOUT


class DevrunConfig(BaseModel):
    """Root configuration for devrun."""

    lock: LockConfig = Field(default_factory=LockConfig)
    android: AndroidConfig = Field(default_factory=AndroidConfig)
    ios: IosConfig = Field(default_factory=IosConfig)
    frames: FramesConfig = Field(default_factory=FramesConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)


def find_config(project_dir: Path | None, explicit: Path | None = None) -> Path | None:
    """Locate the config file for a run.

    Args:
        project_dir: Project being tested, searched for .devrun.toml
        explicit: Path given with --config, wins when set

    Returns:
        Path to an existing config file, or None to use defaults
    """
    if explicit is not None:
        return explicit
    if project_dir is not None:
        candidate = project_dir / CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | None) -> DevrunConfig:
    """Load config from a TOML file.

    Args:
        config_path: Path to config file, or None

    Returns:
        Loaded configuration, or defaults if no file is given
    """
    if config_path is None:
        return DevrunConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return DevrunConfig.model_validate(data)


def write_config_template(project_dir: Path) -> Path:
    """Write default .devrun.toml template.

    Args:
        project_dir: Project root to write into

    Returns:
        Path to the written config file
    """
    config_path = project_dir / CONFIG_FILE
    defaults = DevrunConfig()
    template = {
        "lock": {"timeout": defaults.lock.timeout, "poll_interval": defaults.lock.poll_interval},
        "android": {
            "port": defaults.android.port,
            "gradlew": defaults.android.gradlew,
            "app_apk": defaults.android.app_apk,
            "test_apk": defaults.android.test_apk,
            "runner": defaults.android.runner,
        },
        "ios": {
            "scheme": defaults.ios.scheme,
            "test_target": defaults.ios.test_target,
            "device_family": defaults.ios.device_family,
            "min_os_version": defaults.ios.min_os_version,
        },
        "frames": defaults.frames.model_dump(),
        "tools": defaults.tools.model_dump(),
        "timeouts": defaults.timeouts.model_dump(),
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
