"""Generate commands -- emit artifacts derived from command specs.

Provides the ``rtxspec generate`` sub-command group:

* ``boundaries`` -- boundary-value test cases.
* ``pairwise`` -- the constrained pairwise covering array.
* ``roundtrip`` -- round-trip verification results for declared syntax tests.
* ``fields`` -- target-schema field descriptors.
* ``all`` -- every artifact for many specs, generated concurrently.

Artifacts go to stdout in the active output format; errors exit with the
exit code of the failing :class:`~rtxspec.exceptions.RtxSpecError`.
"""

from __future__ import annotations

from typing import Optional

import typer

from rtxspec.exceptions import RtxSpecError
from rtxspec.exit_codes import EXIT_VALIDATION_FAILURE
from rtxspec.models import RoundTripStatus
from rtxspec.output import get_output

from rtxspec.commands.support import (
    fail,
    get_catalog,
    get_config,
    load_commands,
    parse_license_context,
)


generate_app = typer.Typer(no_args_is_help=True)

_LICENSE_HELP = "License context as SKU=QTY (repeatable)."


@generate_app.command("boundaries")
def generate_boundaries(
    ctx: typer.Context,
    spec: str = typer.Argument(..., help="Command spec file or URL."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Only expand these parameters (repeatable)."
    ),
    licenses: Optional[list[str]] = typer.Option(None, "--license", "-l", help=_LICENSE_HELP),
    allow_gaps: bool = typer.Option(
        False, "--allow-gaps", help="Report coverage gaps as warnings."
    ),
) -> None:
    """Emit boundary-value test cases.

    Example::

        rtxspec --json generate boundaries specs/ipsec_ike_encryption.yaml -l YSL-VPN-EX2=2
    """
    from rtxspec.generator.boundary import BoundaryExpander
    from rtxspec.generator.resolver import ParameterResolver

    (command,) = load_commands([spec])
    context = parse_license_context(licenses)
    config = get_config(ctx)
    expander = BoundaryExpander(
        ParameterResolver(command, get_catalog(ctx)),
        allow_gaps=allow_gaps or config.allow_coverage_gaps,
    )
    try:
        if param:
            cases = [c for name in param for c in expander.expand(name, license_context=context)]
        else:
            cases = expander.expand_command(context)
    except RtxSpecError as exc:
        fail(exc)

    output = get_output()
    for gap in expander.gaps:
        output.warning(gap)
    output.emit(cases)


@generate_app.command("pairwise")
def generate_pairwise(
    ctx: typer.Context,
    spec: str = typer.Argument(..., help="Command spec file or URL."),
) -> None:
    """Emit the pairwise covering array with model tags."""
    from rtxspec.generator.pairwise import PairwiseGenerator
    from rtxspec.generator.resolver import ParameterResolver

    (command,) = load_commands([spec])
    generator = PairwiseGenerator(command, ParameterResolver(command, get_catalog(ctx)))
    try:
        rows = generator.generate()
    except RtxSpecError as exc:
        fail(exc)

    output = get_output()
    if not rows:
        output.info(f"'{command.name}' declares no pairwise parameters.")
    else:
        stats = generator.stats
        output.info(
            f"{stats.combinations} combination(s) cover {stats.covered_pairs} pair(s) "
            f"({stats.forbidden_pairs} forbidden, {stats.exhaustive_combinations} exhaustive)"
        )
    output.emit([{**row.values, "models": row.models} for row in rows])


@generate_app.command("roundtrip")
def generate_roundtrip(
    ctx: typer.Context,
    spec: str = typer.Argument(..., help="Command spec file or URL."),
    model: Optional[list[str]] = typer.Option(
        None, "--model", "-m", help="Models to verify on (repeatable)."
    ),
) -> None:
    """Verify declared syntax tests in both directions.

    Exits with the validation-failure code when any test fails.
    """
    from rtxspec.generator.roundtrip import RoundTripValidator

    (command,) = load_commands([spec])
    models = list(model or []) or get_config(ctx).default_models or None
    try:
        results = RoundTripValidator(command).verify_command(models)
    except RtxSpecError as exc:
        fail(exc)

    output = get_output()
    output.emit(results)
    failed = [r for r in results if r.status == RoundTripStatus.FAILED]
    if failed:
        output.error(f"{len(failed)} of {len(results)} round-trip test(s) failed")
        raise typer.Exit(code=EXIT_VALIDATION_FAILURE)


@generate_app.command("fields")
def generate_fields(
    spec: str = typer.Argument(..., help="Command spec file or URL."),
) -> None:
    """Emit the field mapping table."""
    from rtxspec.generator.field_mapper import FieldMappingEmitter

    (command,) = load_commands([spec])
    try:
        mappings = FieldMappingEmitter(command).emit_all()
    except RtxSpecError as exc:
        fail(exc)
    get_output().emit(mappings)


@generate_app.command("all")
def generate_all(
    ctx: typer.Context,
    specs: list[str] = typer.Argument(..., help="Command spec files or URLs."),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Worker threads (default: executor default)."
    ),
    licenses: Optional[list[str]] = typer.Option(None, "--license", "-l", help=_LICENSE_HELP),
    allow_gaps: bool = typer.Option(
        False, "--allow-gaps", help="Report coverage gaps as warnings."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the artifact cache."),
) -> None:
    """Generate every artifact for many specs concurrently.

    A failing spec does not stop the others; the exit code is that of the
    first failure.

    Example::

        rtxspec --json generate all specs/*.yaml --workers 4 > artifacts.json
    """
    from rtxspec.cache import ArtifactCache
    from rtxspec.config import get_cache_dir
    from rtxspec.pipeline import generate_batch

    commands = load_commands(specs)
    config = get_config(ctx)
    cache_config = config.cache.model_copy(update={"enabled": config.cache.enabled and not no_cache})
    with ArtifactCache(get_cache_dir(), cache_config) as cache:
        outcomes = generate_batch(
            commands,
            catalog=get_catalog(ctx),
            max_workers=workers,
            models=config.default_models or None,
            license_context=parse_license_context(licenses),
            allow_gaps=allow_gaps or config.allow_coverage_gaps,
            cache=cache if cache.enabled else None,
        )

    output = get_output()
    output.emit(outcomes)
    failures = [o for o in outcomes if not o.ok]
    for outcome in failures:
        output.error(f"{outcome.command}: {outcome.error_type}")
    if failures:
        raise typer.Exit(code=failures[0].exit_code)
    output.success(f"Generated artifacts for {len(outcomes)} command(s)")
