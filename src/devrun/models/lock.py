"""Device lock snapshot model."""

from pathlib import Path

from pydantic import BaseModel, Field


class DeviceLockInfo(BaseModel):
    """State of a device lock directory as seen by a reader.

    Attributes:
        device_id: Device identifier the lock is scoped to.
        path: Lock directory.
        exists: Whether the lock directory exists.
        pid: Recorded owner pid, None when missing or unreadable.
        alive: Whether the recorded owner process is running.
    """

    device_id: str
    path: Path
    exists: bool = False
    pid: int | None = Field(default=None, description="Owner process id")
    alive: bool = False

    @property
    def stale(self) -> bool:
        """True if the lock exists but nobody live owns it."""
        return self.exists and not self.alive
