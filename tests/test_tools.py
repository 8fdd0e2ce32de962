"""Tests for the subprocess wrapper."""

from pathlib import Path
from unittest import mock

import pytest

from devrun.errors import ToolError
from devrun.services.tools import ToolResult, format_command, run_tool, spawn_tool


class TestRunTool:
    """Tests for run_tool against real processes."""

    def test_captures_stdout(self) -> None:
        """Standard output is captured as text."""
        result = run_tool(["echo", "hello"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_nonzero_exit_without_check(self) -> None:
        """A failing tool is reported, not raised, by default."""
        result = run_tool(["sh", "-c", "echo out; echo err >&2; exit 3"])
        assert not result.ok
        assert result.exit_code == 3
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_nonzero_exit_with_check(self) -> None:
        """check=True raises with the tail of the tool's output."""
        with pytest.raises(ToolError, match="exited with code 2: broken"):
            run_tool(["sh", "-c", "echo broken >&2; exit 2"], check=True)

    def test_missing_executable(self) -> None:
        """A missing tool is a ToolError naming it."""
        with pytest.raises(ToolError, match="Command not found: devrun-no-such-tool"):
            run_tool(["devrun-no-such-tool"])

    def test_timeout(self) -> None:
        """A tool that runs too long is a ToolError."""
        with pytest.raises(ToolError, match="timed out after 1 seconds"):
            run_tool(["sleep", "5"], timeout=1)

    def test_timeout_keeps_partial_output(self) -> None:
        """With allow_timeout the output so far is returned, not raised."""
        result = run_tool(["sh", "-c", "echo partial; sleep 5"], timeout=1, allow_timeout=True)
        assert result.timed_out
        assert not result.ok
        assert "partial" in result.stdout
        assert result.stderr == "sh timed out after 1 seconds"

    def test_runs_in_cwd(self, tmp_path: Path) -> None:
        """The working directory is honored."""
        result = run_tool(["pwd"], cwd=tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()


class TestToolResult:
    """Tests for ToolResult."""

    def test_output_combines_streams(self) -> None:
        """stderr follows stdout in the combined output."""
        result = ToolResult(command=["adb"], exit_code=0, stdout="a", stderr="b")
        assert result.output == "a\nb"

    def test_output_without_stderr(self) -> None:
        result = ToolResult(command=["adb"], exit_code=0, stdout="a", stderr="")
        assert result.output == "a"

    def test_output_stderr_only(self) -> None:
        result = ToolResult(command=["adb"], exit_code=1, stdout="", stderr="b")
        assert result.output == "b"


class TestSpawnTool:
    """Tests for spawn_tool."""

    def test_detached_session(self) -> None:
        """Background tools are started in their own session."""
        with mock.patch("devrun.services.tools.subprocess.Popen") as popen:
            spawn_tool(["emulator", "-avd", "Pixel_7"])
        assert popen.call_args.args[0] == ["emulator", "-avd", "Pixel_7"]
        assert popen.call_args.kwargs["start_new_session"] is True

    def test_missing_executable(self) -> None:
        with pytest.raises(ToolError, match="Command not found"):
            spawn_tool(["devrun-no-such-tool"])


def test_format_command_quotes() -> None:
    """Commands are logged shell-quoted."""
    assert format_command(["adb", "shell", "echo hi"]) == "adb shell 'echo hi'"
