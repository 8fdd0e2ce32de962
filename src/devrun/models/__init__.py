"""Pydantic data models for devrun.

This package defines the data structures shared across devrun:
- Test selection for each platform (AndroidTestTarget, IosTestTarget)
- The device a run is bound to (Device)
- Device lock snapshots (DeviceLockInfo)
- Pipeline outcomes (StepOutcome, RunResult)

Example:
    >>> from devrun.models import AndroidTestTarget
    >>> target = AndroidTestTarget(
    ...     project_dir="/work/app",
    ...     package_name="com.example.app",
    ...     test_suite_name="LoginTest",
    ...     test_name="testLogin",
    ... )
    >>> target.instrumentation_target
    'com.example.app.LoginTest#testLogin'
"""

from .device import Device
from .lock import DeviceLockInfo
from .result import RunResult, StepOutcome
from .test_target import AndroidTestTarget, BaseTestTarget, IosTestTarget

__all__ = [
    "AndroidTestTarget",
    "BaseTestTarget",
    "Device",
    "DeviceLockInfo",
    "IosTestTarget",
    "RunResult",
    "StepOutcome",
]
