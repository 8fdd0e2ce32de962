"""Run commands: one UI test on an Android emulator or iOS simulator."""

from collections.abc import Callable
from pathlib import Path

import typer
from pydantic import ValidationError

from ..config import DevrunConfig, find_config, load_config
from ..constants import EXIT_SIGINT
from ..core import hold_device_lock, run_android_test, run_ios_test, select_simulator
from ..errors import DevrunError
from ..models import AndroidTestTarget, IosTestTarget, RunResult
from ..output import get_output_context

ANDROID_USAGE = """Usage: devrun android <project_dir> <package_name> <test_suite_name> <test_name>

Example:
  devrun android /path/to/project com.example.app SvgIconExampleTest testSvgIconExampleDisplaysAllElements"""

IOS_USAGE = """Usage: devrun ios <project_dir> <test_name>

Example:
  devrun ios /path/to/iosApp testScrollingDownGesture"""

CONFIG_OPTION_HELP = "Config file (default: <project_dir>/.devrun.toml)"


def _usage_error(usage: str, args: dict[str, str | None], error: ValidationError) -> None:
    """Print usage or the invalid arguments to stderr and exit 1."""
    if any(value is None for value in args.values()):
        typer.echo(usage, err=True)
    else:
        lines = ["Invalid arguments:"]
        for detail in error.errors():
            field = detail["loc"][0] if detail["loc"] else "arguments"
            lines.append(f"  - {field}: must be a non-empty string")
        typer.echo("\n".join(lines), err=True)
    raise typer.Exit(1)


def _load(project_dir: Path, config_path: Path | None) -> DevrunConfig:
    ctx = get_output_context()
    try:
        return load_config(find_config(project_dir, config_path))
    except (OSError, ValueError) as e:
        ctx.error(f"Invalid config: {e}")
        raise typer.Exit(1) from None


def _require_project_dir(project_dir: Path) -> None:
    if not project_dir.is_dir():
        get_output_context().error(f"Project directory not found: {project_dir}")
        raise typer.Exit(1)


def _run_locked(device_id: str, config: DevrunConfig, run: Callable[[], RunResult]) -> RunResult:
    """Run a pipeline while holding the device lock.

    Fatal errors exit 1; an interrupt while waiting for the lock exits 130.
    Signals received while the lock is held are handled by the lock itself.
    """
    ctx = get_output_context()
    try:
        with hold_device_lock(
            device_id,
            timeout=config.lock.timeout,
            poll_interval=config.lock.poll_interval,
            lock_dir=config.lock.get_directory(),
        ):
            return run()
    except KeyboardInterrupt:
        raise typer.Exit(EXIT_SIGINT) from None
    except DevrunError as e:
        ctx.error(f"Fatal error: {e}")
        raise typer.Exit(1) from None


def _finish(result: RunResult) -> None:
    get_output_context().report(result)
    raise typer.Exit(0 if result.success else 1)


def android(
    project_dir: str | None = typer.Argument(None, help="Path to the Android project"),
    package_name: str | None = typer.Argument(None, help="Application package name"),
    test_suite_name: str | None = typer.Argument(None, help="Test class name"),
    test_name: str | None = typer.Argument(None, help="Test method name"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run one instrumentation test on the Android emulator."""
    args = {
        "project_dir": project_dir,
        "package_name": package_name,
        "test_suite_name": test_suite_name,
        "test_name": test_name,
    }
    try:
        target = AndroidTestTarget.model_validate(args)
    except ValidationError as e:
        _usage_error(ANDROID_USAGE, args, e)
        return

    ctx = get_output_context()
    _require_project_dir(target.project_dir)
    config = _load(target.project_dir, config_path)
    serial = config.android.serial

    ctx.print(f"Running Android test: {target.test_name}")
    ctx.print(f"Project Directory: {target.project_dir}")
    ctx.print(f"Package: {target.package_name}")
    ctx.print(f"Device: {serial}")
    ctx.print("")

    _finish(_run_locked(serial, config, lambda: run_android_test(target, config)))


def ios(
    project_dir: str | None = typer.Argument(None, help="Path to the iosApp directory"),
    test_name: str | None = typer.Argument(None, help="UI test method name"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run one UI test on an iOS simulator."""
    args = {"project_dir": project_dir, "test_name": test_name}
    try:
        target = IosTestTarget.model_validate(args)
    except ValidationError as e:
        _usage_error(IOS_USAGE, args, e)
        return

    ctx = get_output_context()
    _require_project_dir(target.project_dir)
    config = _load(target.project_dir, config_path)

    try:
        device = select_simulator(config)
    except DevrunError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    ctx.print(f"Running iOS test: {target.test_name}")
    ctx.print(f"Project Directory: {target.project_dir}")
    ctx.print(f"Destination: {device.name} (iOS {device.os_version}, {device.serial})")
    ctx.print("")

    _finish(_run_locked(device.serial, config, lambda: run_ios_test(target, device, config)))
