"""Pass/fail classification of test runner output.

Structured results are used where the runner provides them: raw
instrumentation status codes on Android, the xcresult summary on iOS.
The text heuristics below are a best-effort fallback. They can miss a
failure phrased in wording not listed here, and can flag benign log lines
that mention a runtime exception type. A structured failure always wins;
a structured pass never overrides a heuristic failure signal.
"""

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ValidationError


class Platform(str, Enum):
    """Device families devrun can drive."""

    ANDROID = "android"
    IOS = "ios"


@dataclass(frozen=True)
class FailureSignal:
    """A named pattern whose presence marks a run as failed."""

    name: str
    pattern: re.Pattern[str]

    def matches(self, output: str) -> bool:
        return self.pattern.search(output) is not None


def _literal(name: str, text: str) -> FailureSignal:
    return FailureSignal(name, re.compile(re.escape(text)))


ANDROID_FAILURE_SIGNALS: tuple[FailureSignal, ...] = (
    _literal("suite_failure_banner", "FAILURES!!!"),
    FailureSignal("failure_count", re.compile(r"Tests run:\s*\d+,\s*Failures:\s*[1-9]\d*")),
    FailureSignal(
        "instrumentation_failed",
        re.compile(r"INSTRUMENTATION_(?:FAILED|STATUS_CODE:\s*-1)\b"),
    ),
    FailureSignal(
        "instrumentation_result",
        re.compile(
            r"INSTRUMENTATION_RESULT:.*(?:shortMsg|longMsg)=.*(?:fail|crash|exception)",
            re.IGNORECASE,
        ),
    ),
    _literal("test_failed", "Test failed"),
    FailureSignal(
        "runtime_exception",
        re.compile(r"java\.lang\.\w+(?:Exception|Error)|kotlin\.\w+Exception"),
    ),
)

IOS_FAILURE_SIGNALS: tuple[FailureSignal, ...] = (
    _literal("all_tests_failed", "Test Suite 'All tests' failed"),
    _literal("test_failed", "Test Failed"),
    FailureSignal("suite_failed", re.compile(r"Test Suite '[^']+' failed")),
    FailureSignal("test_case_failed", re.compile(r"\bTest\s+.*\s+failed\b", re.IGNORECASE)),
    _literal("test_failed_banner", "** TEST FAILED **"),
    _literal("build_failed", "BUILD FAILED"),
    _literal("xcodebuild_error", "xcodebuild: error:"),
)

SIGNALS_BY_PLATFORM = {
    Platform.ANDROID: ANDROID_FAILURE_SIGNALS,
    Platform.IOS: IOS_FAILURE_SIGNALS,
}

# Raw instrumentation (-r) codes. Per-test: 0 ok, 1 start, -1 error,
# -2 failure, -3 ignored, -4 assumption failure. Final: -1 is RESULT_OK.
_STATUS_CODE = re.compile(r"^INSTRUMENTATION_STATUS_CODE:\s*(-?\d+)\s*$", re.MULTILINE)
_FINAL_CODE = re.compile(r"^INSTRUMENTATION_CODE:\s*(-?\d+)\s*$", re.MULTILINE)
_FAILING_STATUS_CODES = {-1, -2}
_RESULT_OK = -1

_ERROR_LOGS = re.compile(r"ERROR_LOGS_START\s*([\s\S]*?)\s*ERROR_LOGS_END")


def find_failure_signals(output: str, platform: Platform) -> list[str]:
    """Return the names of all heuristic failure signals present, in order."""
    return [signal.name for signal in SIGNALS_BY_PLATFORM[platform] if signal.matches(output)]


def parse_instrumentation_status(output: str) -> bool | None:
    """Read the pass/fail verdict from raw instrumentation output.

    Returns:
        False if a test errored/failed or the run didn't finish OK, True if
        the run finished OK with no failing test, None if the output has no
        final INSTRUMENTATION_CODE
    """
    codes = {int(code) for code in _STATUS_CODE.findall(output)}
    if codes & _FAILING_STATUS_CODES:
        return False
    final = _FINAL_CODE.findall(output)
    if not final:
        return None
    return int(final[-1]) == _RESULT_OK


class XcresultSummary(BaseModel):
    """Fields used from `xcresulttool get test-results summary`."""

    result: str
    totalTestCount: int | None = None  # noqa: N815 - xcresulttool key
    failedTests: int | None = None  # noqa: N815 - xcresulttool key


def parse_xcresult_summary(summary_json: str) -> bool | None:
    """Read the pass/fail verdict from an xcresult summary.

    Returns:
        True for Passed, False for Failed, None when unparseable or when the
        result is neither (e.g. Skipped)
    """
    try:
        summary = XcresultSummary.model_validate_json(summary_json)
    except ValidationError:
        return None
    if summary.result == "Failed" or (summary.failedTests or 0) > 0:
        return False
    if summary.result == "Passed":
        return True
    return None


def failure_reasons(
    output: str,
    platform: Platform,
    structured: bool | None = None,
    timed_out: bool = False,
) -> list[str]:
    """List every reason to consider a run failed, structured ones first.

    Args:
        output: Combined runner output
        platform: Which signal set applies
        structured: Verdict from a structured result, if one was available
        timed_out: The runner was stopped before it finished

    Returns:
        Signal names; empty when no failure was detected
    """
    reasons = []
    if timed_out:
        reasons.append("runner_timeout")
    if structured is False:
        reasons.append("structured_result")
    if platform is Platform.ANDROID and parse_instrumentation_status(output) is False:
        reasons.append("instrumentation_status")
    reasons.extend(find_failure_signals(output, platform))
    return reasons


def classify(output: str, platform: Platform, structured: bool | None = None) -> bool:
    """Decide whether a run passed: True when no failure was detected."""
    return not failure_reasons(output, platform, structured)


def extract_error_excerpt(output: str) -> str:
    """Extract the text between ERROR_LOGS_START and ERROR_LOGS_END markers.

    All delimited blocks are joined with newlines. Returns an empty string
    when no markers are present.
    """
    return "\n".join(_ERROR_LOGS.findall(output)).strip()
