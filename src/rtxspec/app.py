"""The ``rtxspec`` command line.

The root callback resolves configuration (flags, ``RTXSPEC_*`` variables,
``./rtxspec.json``, the user config file), installs the process-wide
:class:`~rtxspec.output.OutputManager` and routes ``rtxspec.*`` loggers to
stderr.  Sub-commands live in :mod:`rtxspec.commands`.

:func:`main` is the console-script entry point.  Errors derived from
:class:`~rtxspec.exceptions.RtxSpecError` exit with their own exit code;
anything else is a bug, and its traceback is saved to a crash log.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from rtxspec import __version__
from rtxspec.commands.generate import generate_app
from rtxspec.commands.inspect import inspect_app
from rtxspec.commands.validate import validate_command_specs
from rtxspec.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from rtxspec.output import OutputFormat

app = typer.Typer(
    name="rtxspec",
    help="Derive boundary tests, pairwise matrices, round-trip checks and field "
    "mappings from declarative RTX router command specs.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("validate")(validate_command_specs)
app.add_typer(inspect_app, name="inspect", help="Show resolved parameters and syntax templates.")
app.add_typer(generate_app, name="generate", help="Generate test and mapping artifacts.")


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"rtxspec {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, no_color: bool) -> None:
    """Send ``rtxspec.*`` records to stderr; DEBUG with ``--verbose``, else WARNING."""
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    logger = logging.getLogger("rtxspec")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    catalog: Optional[str] = typer.Option(
        None, "--catalog", "-c", help="Capability catalog (YAML or JSON)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write artifacts as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write artifacts as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log generator decisions."),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write artifacts to this file as JSON."
    ),
) -> None:
    from rtxspec.commands.support import fail
    from rtxspec.config import resolve_config
    from rtxspec.exceptions import ConfigError
    from rtxspec.output import OutputManager, set_output

    configure_logging(verbose, no_color)
    set_output(OutputManager(no_color=no_color, quiet=quiet))
    flag_format = "json" if json_output else "plain" if plain_output else None
    try:
        config = resolve_config(cli_catalog=catalog, cli_format=flag_format)
        fmt = _output_format(config.output.format)
    except ConfigError as exc:
        fail(exc)

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, output_file=output_file))
    ctx.obj = {"config": config}


def _output_format(name: str) -> OutputFormat:
    from rtxspec.exceptions import ConfigError

    try:
        return OutputFormat(name)
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise ConfigError(f"Unknown output format '{name}' (expected one of: {choices})") from None


def _interrupted(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def write_crash_log(exc: BaseException) -> Path:
    """Save the traceback of *exc* under the data directory and return its path."""
    from rtxspec.config import get_data_dir

    crash_dir = get_data_dir() / "crash"
    crash_dir.mkdir(parents=True, exist_ok=True)
    path = crash_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    path.write_text("".join(lines), encoding="utf-8")
    return path


def main() -> None:
    """Console-script entry point."""
    from rtxspec.exceptions import RtxSpecError
    from rtxspec.output import get_output

    signal.signal(signal.SIGINT, _interrupted)
    try:
        app()
    except RtxSpecError as exc:
        get_output().error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        path = write_crash_log(exc)
        get_output().error(f"Unexpected error; traceback saved to {path}")
        sys.exit(EXIT_GENERIC_FAILURE)
