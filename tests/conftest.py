"""Shared test fixtures for devrun tests."""

import subprocess
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest import mock

import pytest
from typer.testing import CliRunner

from devrun.config import DevrunConfig

Effect = Callable[[list[str]], None]


class FakeTools:
    """Scripted stand-in for external tools.

    Rules match a command when every token appears in it; the most
    recently added matching rule answers. Unmatched commands succeed with
    empty output. ``stdout`` may be a list, consumed one entry per call
    with the last entry repeating.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.spawned: list[list[str]] = []
        self._rules: list[tuple[tuple[str, ...], Callable[[list[str]], Any]]] = []

    def on(
        self,
        *tokens: str,
        stdout: str | list[str] = "",
        stderr: str = "",
        returncode: int = 0,
        effect: Effect | None = None,
        raises: BaseException | None = None,
    ) -> None:
        outputs = list(stdout) if isinstance(stdout, list) else [stdout]

        def respond(cmd: list[str]) -> subprocess.CompletedProcess[str]:
            if raises is not None:
                raise raises
            if effect is not None:
                effect(cmd)
            out = outputs.pop(0) if len(outputs) > 1 else outputs[0]
            return subprocess.CompletedProcess(cmd, returncode, out, stderr)

        self._rules.insert(0, (tokens, respond))

    def run(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(cmd))
        for tokens, respond in self._rules:
            if all(token in cmd for token in tokens):
                return respond(list(cmd))
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def popen(self, cmd: list[str], **kwargs: Any) -> mock.MagicMock:
        self.spawned.append(list(cmd))
        return mock.MagicMock()

    def find(self, *tokens: str) -> list[list[str]]:
        """All recorded calls containing every token."""
        return [cmd for cmd in self.calls if all(token in cmd for token in tokens)]

    def index(self, *tokens: str) -> int:
        """Position of the first recorded call containing every token."""
        for i, cmd in enumerate(self.calls):
            if all(token in cmd for token in tokens):
                return i
        raise AssertionError(f"No call containing {tokens}")

    @staticmethod
    def writes_frames(count: int) -> Effect:
        """Effect for an ffmpeg call: write ``count`` frames to its output pattern."""

        def effect(cmd: list[str]) -> None:
            pattern = Path(cmd[-1])
            for i in range(1, count + 1):
                (pattern.parent / (pattern.name % i)).write_bytes(b"jpeg")

        return effect

    @staticmethod
    def writes_file(content: bytes = b"video") -> Effect:
        """Effect for a copy-style call: create the file named by its last argument."""

        def effect(cmd: list[str]) -> None:
            Path(cmd[-1]).write_bytes(content)

        return effect


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_tools() -> Generator[FakeTools, None, None]:
    """Replace subprocess execution for every external tool."""
    tools = FakeTools()
    with (
        mock.patch("devrun.services.tools.subprocess.run", side_effect=tools.run),
        mock.patch("devrun.services.tools.subprocess.Popen", side_effect=tools.popen),
    ):
        yield tools


@pytest.fixture
def lock_dir(tmp_path: Path) -> Path:
    """Private directory for device locks."""
    d = tmp_path / "locks"
    d.mkdir()
    return d


@pytest.fixture
def config(lock_dir: Path) -> DevrunConfig:
    """Config with short timeouts and no settle delays."""
    return DevrunConfig.model_validate(
        {
            "lock": {"timeout": 2, "poll_interval": 0.01, "directory": str(lock_dir)},
            "android": {"boot_timeout": 0.2, "poll_interval": 0.01, "settle_delay": 0},
            "ios": {"boot_timeout": 0.2, "poll_interval": 0.01},
        }
    )


@pytest.fixture
def config_file(tmp_path: Path, lock_dir: Path) -> Path:
    """TOML config equivalent to the ``config`` fixture."""
    path = tmp_path / "devrun.toml"
    path.write_text(
        f"""[lock]
timeout = 2
poll_interval = 0.01
directory = "{lock_dir.as_posix()}"

[android]
boot_timeout = 0.2
poll_interval = 0.01
settle_delay = 0

[ios]
boot_timeout = 0.2
poll_interval = 0.01
"""
    )
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty mobile project directory."""
    d = tmp_path / "project"
    d.mkdir()
    return d
