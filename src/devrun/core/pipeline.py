"""Sequential step runner with a per-step failure policy.

Each platform pipeline is a fixed sequence of named steps. A fatal step
that fails aborts the run with :class:`PipelineStepError`; a best-effort
step that fails logs a warning and the run continues. Outcomes are
recorded in order for the final :class:`RunResult`.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TypeVar

from ..errors import DevrunError, PipelineStepError, ProjectNotFoundError
from ..models import StepOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Step(str, Enum):
    """Pipeline states, in execution order."""

    BUILD_APP = "build_app"
    BUILD_TEST_ARTIFACT = "build_test_artifact"
    ENSURE_DEVICE = "ensure_device"
    INSTALL_APP = "install_app"
    INSTALL_TEST_ARTIFACT = "install_test_artifact"
    EXECUTE = "execute"
    READ_RESULT_SUMMARY = "read_result_summary"
    RETRIEVE_RECORDING = "retrieve_recording"
    EXTRACT_FRAMES = "extract_frames"
    DELETE_LOCAL_RECORDING = "delete_local_recording"
    UNINSTALL_TEST_ARTIFACT = "uninstall_test_artifact"
    UNINSTALL_APP = "uninstall_app"


FATAL_STEPS = frozenset(
    {
        Step.BUILD_APP,
        Step.BUILD_TEST_ARTIFACT,
        Step.ENSURE_DEVICE,
        Step.INSTALL_APP,
        Step.INSTALL_TEST_ARTIFACT,
        Step.EXECUTE,
    }
)


def require_project_dir(project_dir: Path) -> None:
    """Fail before any tool runs if the project directory is missing.

    Raises:
        ProjectNotFoundError: If project_dir is not a directory
    """
    if not project_dir.is_dir():
        raise ProjectNotFoundError(f"Project directory not found: {project_dir}")


class StepRunner:
    """Run pipeline steps and record their outcomes."""

    def __init__(self) -> None:
        self.outcomes: list[StepOutcome] = []
        self._number = 0

    def fatal(self, step: Step, description: str, action: Callable[[], T]) -> T:
        """Run a step whose failure aborts the pipeline.

        Raises:
            PipelineStepError: If the action raises a DevrunError
        """
        self._announce(description)
        started = time.monotonic()
        try:
            value = action()
        except DevrunError as e:
            self._record(step, ok=False, message=str(e), started=started)
            raise PipelineStepError(step.value, str(e)) from e
        self._record(step, ok=True, started=started)
        return value

    def best_effort(self, step: Step, description: str, action: Callable[[], T]) -> T | None:
        """Run a step whose failure is only logged.

        Returns:
            The action's return value, or None if it failed
        """
        logger.debug(description)
        started = time.monotonic()
        try:
            value = action()
        except Exception as e:
            logger.warning(f"{description} failed: {e}")
            self._record(step, ok=False, message=str(e), started=started)
            return None
        self._record(step, ok=True, started=started)
        return value

    def _announce(self, description: str) -> None:
        self._number += 1
        logger.info(f"Step {self._number}: {description}...")

    def _record(self, step: Step, ok: bool, started: float, message: str = "") -> None:
        self.outcomes.append(
            StepOutcome(
                step=step.value,
                fatal=step in FATAL_STEPS,
                ok=ok,
                message=message,
                duration_seconds=round(time.monotonic() - started, 3),
            )
        )
