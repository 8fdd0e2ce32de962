"""Init command implementation."""

from pathlib import Path

import typer
from rich.markup import escape

from ..config import CONFIG_FILE, ToolsConfig, find_config, load_config, write_config_template
from ..constants import INIT_TOOL_CHECK_TIMEOUT
from ..core import Platform
from ..errors import ToolError
from ..output import get_output_context
from ..services import run_tool


def toolchain(platform: Platform | None, tools: ToolsConfig) -> dict[str, list[str]]:
    """Commands that prove each required tool is installed."""
    checks: dict[str, list[str]] = {}
    if platform in (None, Platform.ANDROID):
        checks["adb"] = [tools.adb, "version"]
        checks["emulator"] = [tools.emulator, "-list-avds"]
    if platform in (None, Platform.IOS):
        checks["xcodebuild"] = [tools.xcodebuild, "-version"]
        checks["simctl"] = [tools.xcrun, "simctl", "help"]
        checks["xcparse"] = [tools.xcparse, "version"]
    checks["ffmpeg"] = [tools.ffmpeg, "-version"]
    checks["ffprobe"] = [tools.ffprobe, "-version"]
    return checks


def init(
    project_dir: Path = typer.Argument(Path("."), help="Project to configure"),
    platform: Platform | None = typer.Option(
        None, "--platform", "-p", help="Only check tools for this platform"
    ),
) -> None:
    """Write a .devrun.toml template and check the toolchain."""
    ctx = get_output_context()

    if not project_dir.is_dir():
        ctx.error(f"Project directory not found: {project_dir}")
        raise typer.Exit(1)

    config_path = project_dir / CONFIG_FILE
    if not config_path.exists():
        write_config_template(project_dir)
        ctx.print(f"[green]Created config template:[/green] {config_path}")
    else:
        ctx.print(f"[yellow]Config already exists:[/yellow] {config_path}")

    tools = load_config(find_config(project_dir)).tools
    all_ok = True
    for name, cmd in toolchain(platform, tools).items():
        try:
            result = run_tool(cmd, timeout=INIT_TOOL_CHECK_TIMEOUT)
        except ToolError as e:
            ctx.print(f"[red]✗[/red] {name}: {escape(str(e))}")
            all_ok = False
            continue
        if result.ok:
            ctx.print(f"[green]✓[/green] {name}")
        else:
            ctx.print(f"[red]✗[/red] {name}: {escape(result.output.strip()[:50])}")
            all_ok = False

    if not all_ok:
        ctx.print("\n[yellow]Warning: Some tools are missing or not configured[/yellow]")
        raise typer.Exit(2)

    ctx.print("\n[bold green]Toolchain ready[/bold green]")
