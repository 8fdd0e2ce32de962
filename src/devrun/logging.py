"""Logging configuration for devrun."""

import logging
from enum import IntEnum
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler


class LogLevel(IntEnum):
    """Log level enumeration."""

    QUIET = logging.WARNING
    NORMAL = logging.INFO
    VERBOSE = logging.DEBUG


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
    debug: bool = False,
) -> Console:
    """Configure logging based on CLI options.

    Pipeline progress is logged at INFO, so it shows by default and
    disappears with --quiet. Tool command lines are logged at DEBUG.

    Args:
        verbosity: Number of -v flags (0=normal, 1+=debug)
        quiet: Only warnings and errors (takes precedence over debug/verbosity)
        no_color: Disable colored output
        stream: Output stream for logs (stderr when None)
        debug: Enable debug logging with timestamps and source paths

    Returns:
        Console the log handler writes to
    """
    if quiet:
        level = LogLevel.QUIET
    elif debug or verbosity >= 1:
        level = LogLevel.VERBOSE
    else:
        level = LogLevel.NORMAL

    console = Console(
        file=stream,
        stderr=stream is None,
        force_terminal=False if no_color else None,
        no_color=no_color,
    )

    handler = RichHandler(
        console=console,
        show_time=debug or verbosity >= 2,
        show_path=debug or verbosity >= 2,
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    return console
