"""devrun CLI: run one mobile UI test on an exclusively locked device."""

import typer
from rich.console import Console

from devrun import __version__

from .commands import android, init, ios, lock_app
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"devrun {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="devrun",
    help="Build, install and run one UI test on an Android emulator or iOS simulator",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v shows tool commands, -vv adds timestamps)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log warnings and errors",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """devrun - one UI test, one device, one run at a time."""
    configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
        debug=debug,
    )
    console = Console(
        no_color=no_color,
        force_terminal=False if no_color else None,
        soft_wrap=True,
    )
    set_output_context(OutputContext(console=console, json_mode=json_output))


app.command()(android)
app.command()(ios)
app.command()(init)
app.add_typer(lock_app, name="lock")


if __name__ == "__main__":
    app()
