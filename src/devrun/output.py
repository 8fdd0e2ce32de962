"""Output formatting for devrun CLI."""

import json
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape

from .models import RunResult

RULE_WIDTH = 60


@dataclass
class OutputContext:
    """Context for output formatting.

    Results go to stdout; logs go to stderr through the logging handler.
    """

    console: Console = field(default_factory=lambda: Console(soft_wrap=True))
    json_mode: bool = False

    def print(self, message: str, style: str | None = None) -> None:
        """Print message respecting output mode."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: dict[str, Any]) -> None:
        """Print JSON data."""
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print error in appropriate format."""
        if self.json_mode:
            self.print_json({"error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]")

    def report(self, result: RunResult) -> None:
        """Print the summary of a finished run.

        On failure the error excerpt is shown, falling back to the raw
        output when no excerpt was extracted.
        """
        if self.json_mode:
            self.print_json(result.model_dump(mode="json"))
            return

        self.console.print()
        self.console.print("[bold]TEST RESULTS[/bold]")
        if result.success:
            self.console.print("Status: [green]✓ PASSED[/green]")
        else:
            self.console.print("Status: [red]✗ FAILED[/red]")
        if result.frame_count > 0:
            location = f" (from {result.frames_dir})" if result.frames_dir else ""
            self.console.print(f"Frames Extracted: {result.frame_count}{location}")
        self.console.print()
        if not result.success:
            self.console.print("Output:")
            self.console.print("-" * RULE_WIDTH)
            # Raw tool output may contain square brackets
            self.console.print(result.error_excerpt or result.output, markup=False)
            self.console.print("-" * RULE_WIDTH)


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext()
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx
