"""Inspect commands -- examine a command spec's parameters and templates.

Provides the ``rtxspec inspect`` sub-command group with read-only views:
effective parameter domains per model (optionally under a license context)
and the parsed syntax templates.
"""

from __future__ import annotations

from typing import Optional

import typer

from rtxspec.exceptions import RtxSpecError, UnsupportedOnModelError
from rtxspec.output import get_output

from rtxspec.commands.support import fail, get_catalog, load_commands, parse_license_context


inspect_app = typer.Typer(no_args_is_help=True)


@inspect_app.command("params")
def inspect_params(
    ctx: typer.Context,
    spec: str = typer.Argument(..., help="Command spec file or URL."),
    model: Optional[list[str]] = typer.Option(
        None, "--model", "-m", help="Model to resolve for (repeatable)."
    ),
    licenses: Optional[list[str]] = typer.Option(
        None, "--license", "-l", help="License context as SKU=QTY (repeatable)."
    ),
) -> None:
    """Show the effective domain of every parameter.

    Example::

        rtxspec inspect params specs/ipsec_ike_encryption.yaml -m RTX1210 -l YSL-VPN-EX2=2
    """
    from rtxspec.generator.resolver import ParameterResolver

    (command,) = load_commands([spec])
    context = parse_license_context(licenses)
    resolver = ParameterResolver(command, get_catalog(ctx))
    models: list[Optional[str]] = list(model or resolver.models()) or [None]

    rows: list[list[str]] = []
    for name in command.parameters:
        for target in models:
            try:
                domain = resolver.resolve(name, target, context)
            except UnsupportedOnModelError as exc:
                rows.append([name, target or "-", "-", "-", f"unsupported: {exc.reason}"])
                continue
            except RtxSpecError as exc:
                fail(exc)
            if domain.has_range:
                bounds = f"{domain.range_min}..{domain.range_max}"
            else:
                bounds = "-"
            values = ", ".join(domain.enum_values) or ", ".join(v.name for v in domain.variants)
            note = ""
            if domain.license_tier is not None:
                note = f"{domain.license_tier.sku} x{domain.license_tier.quantity}"
            rows.append([name, target or "-", domain.type, bounds, values or note or "-"])

    get_output().print_table(
        ["Parameter", "Model", "Type", "Range", "Values"],
        rows,
        title=f"{command.name} -- Parameters ({len(command.parameters)})",
    )


@inspect_app.command("syntax")
def inspect_syntax(
    spec: str = typer.Argument(..., help="Command spec file or URL."),
) -> None:
    """List the set/delete templates and their placeholders."""
    from rtxspec.generator.syntax import CommandSyntax
    from rtxspec.models import SyntaxForm

    (command,) = load_commands([spec])
    try:
        syntax = CommandSyntax(command)
    except RtxSpecError as exc:
        fail(exc)

    rows: list[list[str]] = []
    for form in SyntaxForm:
        for template in syntax.templates(form):
            rows.append([form.value, template.source, ", ".join(template.placeholders) or "-"])
    if not rows:
        get_output().info("No syntax templates declared.")
        return
    get_output().print_table(["Form", "Template", "Placeholders"], rows, title=command.name)
