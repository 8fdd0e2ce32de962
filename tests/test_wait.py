"""Tests for bounded polling."""

import pytest

from devrun.core.wait import await_condition
from devrun.errors import ToolError


class FakeClock:
    """Clock that only advances when sleep is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestAwaitCondition:
    """Tests for await_condition."""

    def test_true_immediately_does_not_sleep(self) -> None:
        """A predicate that already holds returns without sleeping."""
        clock = FakeClock()
        assert await_condition(lambda: True, 1, 10, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == []

    def test_polls_until_true(self) -> None:
        """Predicate is re-checked after each interval."""
        clock = FakeClock()
        answers = iter([False, False, True])
        assert await_condition(lambda: next(answers), 2, 10, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [2, 2]

    def test_times_out(self) -> None:
        """Returns False once the timeout elapses."""
        clock = FakeClock()
        assert not await_condition(lambda: False, 2, 5, clock=clock, sleep=clock.sleep)
        assert sum(clock.sleeps) == 5

    def test_last_sleep_lands_on_deadline(self) -> None:
        """The final sleep is shortened to the remaining budget."""
        clock = FakeClock()
        await_condition(lambda: False, 2, 5, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [2, 2, 1]

    def test_checks_once_more_at_deadline(self) -> None:
        """A predicate that becomes true exactly at the deadline counts."""
        clock = FakeClock()
        assert await_condition(lambda: clock.now >= 5, 2, 5, clock=clock, sleep=clock.sleep)

    def test_ignored_errors_count_as_not_yet(self) -> None:
        """Listed exceptions from the predicate are retried."""
        clock = FakeClock()
        calls = []

        def flaky() -> bool:
            calls.append(1)
            if len(calls) < 3:
                raise ToolError("adb not ready")
            return True

        assert await_condition(
            flaky, 1, 10, ignore_errors=(ToolError,), clock=clock, sleep=clock.sleep
        )
        assert len(calls) == 3

    def test_other_errors_propagate(self) -> None:
        """Exceptions not listed are raised to the caller."""
        clock = FakeClock()

        def broken() -> bool:
            raise ValueError("bug")

        with pytest.raises(ValueError, match="bug"):
            await_condition(
                broken, 1, 10, ignore_errors=(ToolError,), clock=clock, sleep=clock.sleep
            )
