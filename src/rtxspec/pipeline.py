"""Run every generator for one command, or for many commands in parallel.

:func:`generate_artifacts` validates a command and derives its boundary
cases, pairwise matrix, round-trip results and field mappings into one
:class:`~rtxspec.models.CommandArtifacts`.

:func:`generate_batch` fans independent commands out over a thread pool.
A specification defect, coverage gap or unsupported-model error in one
command is recorded in that command's :class:`~rtxspec.models.BatchOutcome`
and does not affect the others.  Outcomes are returned in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from rtxspec.cache import ArtifactCache
from rtxspec.exceptions import RtxSpecError
from rtxspec.generator.boundary import BoundaryExpander
from rtxspec.generator.field_mapper import FieldMappingEmitter
from rtxspec.generator.pairwise import PairwiseGenerator
from rtxspec.generator.resolver import LicenseContext, ParameterResolver
from rtxspec.generator.roundtrip import RoundTripValidator
from rtxspec.models import BatchOutcome, CapabilityCatalog, CommandArtifacts, CommandSpec
from rtxspec.parser.validator import validate_command

logger = logging.getLogger(__name__)


def generate_artifacts(
    command: CommandSpec,
    catalog: Optional[CapabilityCatalog] = None,
    models: Optional[list[str]] = None,
    license_context: Optional[LicenseContext] = None,
    allow_gaps: bool = False,
    cache: Optional[ArtifactCache] = None,
) -> CommandArtifacts:
    """Generate every artifact for *command*.

    Args:
        command: The command to generate for.
        catalog: Capability catalog for model and license resolution.
        models: Models to use when the command declares no
            ``applicable_models``.
        license_context: License SKU -> quantity for auto boundary cases.
        allow_gaps: Record coverage gaps as warnings instead of failing.
        cache: Optional artifact cache consulted before generating.

    Raises:
        SpecificationDefectError: The command is malformed.
        CoverageGapError: Boundary data is missing and gaps are not allowed.
    """
    if models and not command.applicable_models:
        command = command.model_copy(update={"applicable_models": list(models)})

    options = {"license_context": license_context or {}, "allow_gaps": allow_gaps}
    if cache is not None:
        cached = cache.get(command, catalog, options)
        if cached is not None:
            logger.debug("Cache hit for '%s'", command.name)
            return cached

    validate_command(command, catalog)
    resolver = ParameterResolver(command, catalog)

    expander = BoundaryExpander(resolver, allow_gaps=allow_gaps)
    boundary_cases = expander.expand_command(license_context)

    generator = PairwiseGenerator(command, resolver)
    combinations = generator.generate()

    artifacts = CommandArtifacts(
        command=command.name,
        boundary_cases=boundary_cases,
        combinations=combinations,
        coverage=generator.stats if command.pairwise is not None else None,
        roundtrip=RoundTripValidator(command).verify_command(),
        field_mappings=FieldMappingEmitter(command).emit_all(),
        warnings=list(expander.gaps),
    )
    if cache is not None:
        cache.set(command, catalog, options, artifacts)
    return artifacts


def generate_batch(
    commands: Iterable[CommandSpec],
    catalog: Optional[CapabilityCatalog] = None,
    max_workers: Optional[int] = None,
    models: Optional[list[str]] = None,
    license_context: Optional[LicenseContext] = None,
    allow_gaps: bool = False,
    cache: Optional[ArtifactCache] = None,
) -> list[BatchOutcome]:
    """Generate artifacts for many commands concurrently.

    Returns:
        One :class:`~rtxspec.models.BatchOutcome` per command, in input order.
    """
    commands = list(commands)

    def _run(command: CommandSpec) -> BatchOutcome:
        try:
            artifacts = generate_artifacts(
                command,
                catalog=catalog,
                models=models,
                license_context=license_context,
                allow_gaps=allow_gaps,
                cache=cache,
            )
        except RtxSpecError as exc:
            logger.warning("Generation failed for '%s': %s", command.name, exc)
            return BatchOutcome(
                command=command.name,
                error=str(exc),
                error_type=type(exc).__name__,
                exit_code=exc.exit_code,
            )
        return BatchOutcome(command=command.name, artifacts=artifacts)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_run, commands))
