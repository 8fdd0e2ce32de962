"""Device lock inspection commands."""

from pathlib import Path

import typer

from ..config import load_config
from ..core import clear_lock, inspect_lock
from ..errors import LockError
from ..output import get_output_context

lock_app = typer.Typer(help="Inspect or clear device locks", no_args_is_help=True)

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config file with [lock] settings")


@lock_app.command("status")
def lock_status(
    device_id: str = typer.Argument(..., help="Device serial or simulator udid"),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Show who holds the lock for a device."""
    ctx = get_output_context()
    lock_dir = load_config(config_path).lock.get_directory()
    info = inspect_lock(device_id, lock_dir)

    if ctx.json_mode:
        ctx.print_json({**info.model_dump(mode="json"), "stale": info.stale})
        return

    if not info.exists:
        ctx.print(f"[green]{device_id} is not locked[/green]")
    elif info.alive:
        ctx.print(f"[yellow]{device_id} is locked by PID {info.pid}[/yellow]")
    else:
        owner = f"PID {info.pid}" if info.pid is not None else "unknown owner"
        ctx.print(f"[red]{device_id} has a stale lock ({owner})[/red]")
    ctx.print(f"Lock path: {info.path}")


@lock_app.command("clear")
def lock_clear(
    device_id: str = typer.Argument(..., help="Device serial or simulator udid"),
    force: bool = typer.Option(False, "--force", "-f", help="Remove even if the owner is alive"),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Remove a stale device lock."""
    ctx = get_output_context()
    lock_dir = load_config(config_path).lock.get_directory()
    try:
        removed = clear_lock(device_id, lock_dir, force=force)
    except LockError as e:
        ctx.error(f"{e}. Use --force to remove it anyway.")
        raise typer.Exit(1) from None

    if removed:
        ctx.print(f"[green]Removed lock for {device_id}[/green]")
    else:
        ctx.print(f"No lock for {device_id}")
