"""Subprocess wrapper shared by every external tool integration."""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import ToolError

logger = logging.getLogger(__name__)

OUTPUT_TAIL_CHARS = 2000


@dataclass(frozen=True)
class ToolResult:
    """Captured result of one tool invocation."""

    command: list[str]
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


def format_command(cmd: list[str]) -> str:
    return shlex.join(cmd)


def _text(value: str | bytes | None) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


def _tail(text: str) -> str:
    text = text.strip()
    if len(text) <= OUTPUT_TAIL_CHARS:
        return text
    return "..." + text[-OUTPUT_TAIL_CHARS:]


def run_tool(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: int | None = None,
    check: bool = False,
    allow_timeout: bool = False,
) -> ToolResult:
    """Run an external tool and capture its output.

    A non-zero exit code is only an error when ``check`` is set; callers
    such as the test runner need the output of failing invocations.

    Args:
        cmd: Command and arguments
        cwd: Working directory
        timeout: Optional timeout in seconds
        check: Raise ToolError on non-zero exit code
        allow_timeout: Return the partial output of a timed-out run instead
            of raising

    Returns:
        ToolResult with exit code and captured text

    Raises:
        ToolError: If the tool is missing, fails with check set, or times out
            without allow_timeout
    """
    logger.debug(f"$ {format_command(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        message = f"{cmd[0]} timed out after {timeout} seconds"
        if allow_timeout:
            logger.warning(message)
            partial = _text(e.stderr).rstrip("\n")
            return ToolResult(
                command=list(cmd),
                exit_code=-1,
                stdout=_text(e.stdout),
                stderr=f"{partial}\n{message}" if partial else message,
                timed_out=True,
            )
        raise ToolError(message) from e
    except FileNotFoundError:
        raise ToolError(f"Command not found: {cmd[0]}") from None

    tool_result = ToolResult(
        command=list(cmd),
        exit_code=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
    )
    if check and not tool_result.ok:
        raise ToolError(
            f"{format_command(cmd)} exited with code {result.returncode}: "
            f"{_tail(tool_result.stderr or tool_result.stdout)}"
        )
    return tool_result


def spawn_tool(cmd: list[str], cwd: Path | None = None) -> subprocess.Popen[bytes]:
    """Start a long-running tool in the background.

    The child gets its own session so it survives this process; its
    output is discarded.

    Raises:
        ToolError: If the executable is missing
    """
    logger.debug(f"$ {format_command(cmd)} &")
    try:
        return subprocess.Popen(
            cmd,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except FileNotFoundError:
        raise ToolError(f"Command not found: {cmd[0]}") from None
