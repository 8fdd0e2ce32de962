"""Errors raised by devrun."""


class DevrunError(Exception):
    """Base exception for devrun errors."""


class ToolError(DevrunError):
    """An external tool could not be run or exited with an error."""


class ProjectNotFoundError(DevrunError):
    """The project directory does not exist."""


class LockError(DevrunError):
    """Error acquiring or managing a device lock."""


class LockTimeoutError(LockError):
    """The device lock could not be acquired in time."""


class DeviceError(DevrunError):
    """Device discovery or boot failed."""


class DeviceNotFoundError(DeviceError):
    """No device matches the selection criteria."""


class BootTimeoutError(DeviceError):
    """The device did not report ready within the boot budget."""


class MediaError(DevrunError):
    """Frame extraction from a recording failed."""


class PipelineStepError(DevrunError):
    """A fatal pipeline step failed."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        self.message = message
        super().__init__(f"{step}: {message}")
