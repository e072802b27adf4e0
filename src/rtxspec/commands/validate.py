"""Validate command -- check command specs for specification defects.

Loads each spec, runs :func:`~rtxspec.parser.validator.validate_command`
and prints one status row per spec.  The exit code is that of the first
failing spec, or 0 when all pass.
"""

from __future__ import annotations

import typer

from rtxspec.exceptions import RtxSpecError
from rtxspec.exit_codes import EXIT_SUCCESS
from rtxspec.output import get_output

from rtxspec.commands.support import get_catalog, load_commands


def validate_command_specs(
    ctx: typer.Context,
    specs: list[str] = typer.Argument(..., help="Command spec files or URLs ('-' for stdin)."),
) -> None:
    """Check command specs for defects.

    Example::

        rtxspec validate specs/ipsec_ike_*.yaml
    """
    from rtxspec.parser import validate_command

    catalog = get_catalog(ctx)
    output = get_output()
    rows: list[list[str]] = []
    exit_code = EXIT_SUCCESS

    for command in load_commands(specs):
        try:
            validate_command(command, catalog)
        except RtxSpecError as exc:
            rows.append([command.name, "defect", str(exc)])
            if exit_code == EXIT_SUCCESS:
                exit_code = exc.exit_code
            continue
        rows.append([command.name, "ok", ""])

    output.print_table(["Command", "Status", "Detail"], rows, title="Validation")
    if exit_code != EXIT_SUCCESS:
        output.error(f"{sum(1 for r in rows if r[1] != 'ok')} of {len(rows)} spec(s) have defects")
        raise typer.Exit(code=exit_code)
    output.success(f"{len(rows)} spec(s) valid")
