"""Typer application and CLI entry point for specbridge.

This module wires together the top-level Typer application and registers the
built-in commands (``import``, ``export``, ``diff``, ``validate``,
``inspect``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands and
invokes the Typer app. :class:`~specbridge.exceptions.SpecbridgeError`
instances exit with their own code; anything else is written to a crash log
under the data directory.

See Also:
    :mod:`specbridge.config`: Configuration resolution.
    :mod:`specbridge.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from specbridge import __version__
from specbridge.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="specbridge",
    help="Convert between OpenAPI 3.0/3.1 documents and ContractSpec operation specs.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specbridge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without writing files."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~specbridge.output.OutputManager` from
    CLI flags, routes library log records to stderr and stores shared
    options in ``ctx.obj``.
    """
    from specbridge.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["dry_run"] = dry_run
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool) -> None:
    """Send ``specbridge.*`` log records to stderr (DEBUG with ``--verbose``)."""
    logger = logging.getLogger("specbridge")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.ERROR)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from specbridge.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


_registered = False


def register_commands() -> None:
    """Attach the built-in commands to :data:`app` (idempotent)."""
    global _registered
    if _registered:
        return

    from specbridge.commands.config import config_app
    from specbridge.commands.diff import diff_command
    from specbridge.commands.export import export_command
    from specbridge.commands.import_ import import_command
    from specbridge.commands.inspect import inspect_app
    from specbridge.commands.validate import validate_command

    app.command("import")(import_command)
    app.command("export")(export_command)
    app.command("diff")(diff_command)
    app.command("validate")(validate_command)
    app.add_typer(inspect_app, name="inspect", help="Inspect an OpenAPI document.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    _registered = True


def main() -> None:
    """CLI entry point invoked by the ``specbridge`` console script.

    Unhandled :class:`~specbridge.exceptions.SpecbridgeError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from specbridge.exceptions import SpecbridgeError
        from specbridge.output import error

        if isinstance(exc, SpecbridgeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
