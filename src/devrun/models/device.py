"""Device descriptor model."""

from pydantic import BaseModel, ConfigDict, Field


class Device(BaseModel):
    """An emulator or simulator selected for one run.

    Attributes:
        serial: adb serial (Android) or simulator udid (iOS).
        name: Human readable device name.
        os_version: Reported OS version, when known.
    """

    model_config = ConfigDict(frozen=True)

    serial: str = Field(description="Serial number or unique device id")
    name: str = Field(description="Display name")
    os_version: str | None = Field(default=None, description="OS version")
