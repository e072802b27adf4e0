"""Semantic validation of an extracted :class:`~rtxspec.models.CommandSpec`.

:func:`validate_command` runs every consistency check the generators rely on
and raises a single :class:`~rtxspec.exceptions.SpecificationDefectError`
listing all defects found, so that a spec author can fix them in one pass.
Checks:

* templates parse and reference declared parameters;
* boundary tests, selectors and pairwise parameters reference declared
  parameters;
* ranges are well formed, defaults lie in their enum set;
* every per-model override resolves (unknown models, bad ranges, undeclared
  enum subsets);
* boundary tests, syntax tests and pairwise declarations name only known
  models;
* pairwise constraints parse, have unambiguous precedence and leave every
  non-forbidden pair coverable;
* field bindings do not collide;
* multi-line syntax tests pair lines with mappings.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from rtxspec.exceptions import SpecificationDefectError, UnsupportedOnModelError
from rtxspec.generator.boundary import unknown_model_defects
from rtxspec.generator.field_mapper import FieldMappingEmitter
from rtxspec.generator.pairwise import PairwiseGenerator, unknown_pairwise_models
from rtxspec.generator.resolver import ParameterResolver
from rtxspec.generator.syntax import CommandSyntax
from rtxspec.models import CapabilityCatalog, CommandSpec, SingleMapping

logger = logging.getLogger(__name__)


def validate_command(
    command: CommandSpec,
    catalog: Optional[CapabilityCatalog] = None,
) -> None:
    """Check *command* for specification defects.

    Raises:
        SpecificationDefectError: Listing every defect found.
    """
    defects: list[str] = []

    def collect(check: Callable[[], Any]) -> None:
        try:
            check()
        except SpecificationDefectError as exc:
            defects.extend(exc.defects)

    resolver = ParameterResolver(command, catalog)
    collect(lambda: CommandSyntax(command))

    for name, param in command.parameters.items():
        if param.terraform_selector and param.terraform_selector not in command.parameters:
            defects.append(
                f"'{name}' selects fields by undeclared parameter '{param.terraform_selector}'"
            )
        if param.enum_values and param.default is not None:
            if str(param.default) not in param.enum_tokens:
                defects.append(f"default {param.default!r} of '{name}' is not an enum member")
        for model in [None, *param.model_constraints]:
            collect(lambda n=name, m=model: _resolve(resolver, n, m))

    known = resolver.known_models()
    for name, tests in command.boundary_tests.items():
        if name not in command.parameters:
            defects.append(f"boundary tests reference undeclared parameter '{name}'")
        for test in tests:
            defects.extend(unknown_model_defects(name, test, known))

    for test in command.syntax_tests + command.multiline_tests:
        label = test.name or test.rtx.strip()
        if isinstance(test.structured, SingleMapping) and len(test.lines) > 1:
            defects.append(f"syntax test '{label}' has several lines but a single mapping")
        elif len(test.lines) != len(test.structured.mappings):
            defects.append(f"syntax test '{label}' pairs lines and mappings unevenly")
        if test.model_constraints is not None and known:
            scoped = set(test.model_constraints.valid_for) | set(test.model_constraints.invalid_for)
            for model in sorted(scoped - known):
                defects.append(f"syntax test '{label}' names unknown model '{model}'")

    if command.pairwise is not None:
        defects.extend(unknown_pairwise_models(command.pairwise, known))
        if command.pairwise.enabled:
            collect(lambda: PairwiseGenerator(command, resolver).generate())

    collect(lambda: FieldMappingEmitter(command).emit_all())

    if defects:
        defects = list(dict.fromkeys(defects))
        raise SpecificationDefectError(
            f"{len(defects)} defect(s) in '{command.name}'",
            defects=defects,
            command=command.name,
        )
    logger.debug("'%s' passed validation", command.name)


def _resolve(resolver: ParameterResolver, name: str, model: Optional[str]) -> None:
    try:
        resolver.resolve(name, model)
    except UnsupportedOnModelError:
        logger.debug("'%s' unsupported on %s without a license context", name, model)
