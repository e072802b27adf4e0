"""Helpers shared by the CLI sub-commands.

Sub-commands read the resolved configuration that
:func:`~rtxspec.app.main_callback` stores in ``ctx.obj`` and turn
:class:`~rtxspec.exceptions.RtxSpecError` into a clean exit with the
error's exit code.
"""

from __future__ import annotations

from typing import NoReturn, Optional

import typer

from rtxspec.exceptions import InvalidUsageError, RtxSpecError
from rtxspec.models import CapabilityCatalog, CommandSpec, GlobalConfig
from rtxspec.output import get_output


def fail(exc: RtxSpecError) -> NoReturn:
    """Report *exc* on stderr and exit with its exit code."""
    get_output().error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def get_config(ctx: typer.Context) -> GlobalConfig:
    obj = ctx.obj or {}
    return obj.get("config") or GlobalConfig()


def get_catalog(ctx: typer.Context) -> CapabilityCatalog:
    """Load the capability catalog named by the resolved config (once per invocation)."""
    from rtxspec.config import load_catalog

    obj = ctx.ensure_object(dict)
    if obj.get("catalog") is None:
        try:
            obj["catalog"] = load_catalog(get_config(ctx).catalog)
        except RtxSpecError as exc:
            fail(exc)
    return obj["catalog"]


def load_commands(sources: list[str]) -> list[CommandSpec]:
    """Load every command spec in *sources*, exiting on the first failure."""
    from rtxspec.parser import load_command

    commands = []
    for source in sources:
        try:
            commands.append(load_command(source))
        except RtxSpecError as exc:
            fail(exc)
    return commands


def parse_license_context(values: Optional[list[str]]) -> dict[str, int]:
    """Parse repeated ``--license SKU=QTY`` options.

    Raises:
        typer.Exit: With the invalid-usage exit code on malformed input.
    """
    context: dict[str, int] = {}
    for value in values or []:
        sku, sep, qty = value.partition("=")
        if not sep or not sku.strip() or not qty.strip().isdigit():
            fail(InvalidUsageError(f"--license expects SKU=QUANTITY (got '{value}')"))
        context[sku.strip()] = int(qty)
    return context
