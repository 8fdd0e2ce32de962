"""Core orchestration for devrun.

This package contains the device lock, device lifecycles, output
classification, frame extraction and the per-platform pipelines. It is
independent of the CLI layer.
"""

from .android import AndroidEmulator, run_android_test
from .classifier import (
    Platform,
    classify,
    extract_error_excerpt,
    failure_reasons,
    find_failure_signals,
    parse_instrumentation_status,
    parse_xcresult_summary,
)
from .extractor import FrameExtractor, list_frames
from .ios import (
    ensure_simulator_ready,
    find_first_simulator,
    is_simulator_booted,
    is_version_at_least,
    parse_simulators,
    run_ios_test,
    select_simulator,
)
from .lock_manager import (
    DeviceLock,
    acquire_device_lock,
    clear_lock,
    hold_device_lock,
    inspect_lock,
    lock_path,
)
from .pipeline import FATAL_STEPS, Step, StepRunner, require_project_dir
from .wait import await_condition

__all__ = [
    "FATAL_STEPS",
    "AndroidEmulator",
    "DeviceLock",
    "FrameExtractor",
    "Platform",
    "Step",
    "StepRunner",
    "acquire_device_lock",
    "await_condition",
    "classify",
    "clear_lock",
    "ensure_simulator_ready",
    "extract_error_excerpt",
    "failure_reasons",
    "find_failure_signals",
    "find_first_simulator",
    "hold_device_lock",
    "inspect_lock",
    "is_simulator_booted",
    "is_version_at_least",
    "list_frames",
    "lock_path",
    "parse_instrumentation_status",
    "parse_simulators",
    "parse_xcresult_summary",
    "require_project_dir",
    "run_android_test",
    "run_ios_test",
    "select_simulator",
]
