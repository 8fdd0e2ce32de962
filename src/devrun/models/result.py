"""Pipeline result models."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class StepOutcome(BaseModel):
    """Outcome of one pipeline step."""

    model_config = ConfigDict(frozen=True)

    step: str
    fatal: bool
    ok: bool
    message: str = ""
    duration_seconds: float = 0.0


class RunResult(BaseModel):
    """Result of one pipeline invocation.

    A failing test is a normal result with ``success=False``; fatal setup
    errors are raised instead and never produce a RunResult.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    output: str = ""
    error_excerpt: str | None = None
    frame_count: int = Field(default=0, ge=0)
    frames_dir: Path | None = None
    failure_signals: list[str] = Field(default_factory=list)
    steps: list[StepOutcome] = Field(default_factory=list)
