"""Generators -- derive test and schema artifacts from a :class:`~rtxspec.models.CommandSpec`.

Typical usage::

    from rtxspec.generator import BoundaryExpander, ParameterResolver

    resolver = ParameterResolver(command, catalog)
    cases = BoundaryExpander(resolver).expand("gateway_id")

Sub-modules:

* :mod:`~rtxspec.generator.resolver` -- Effective domain of a parameter per
  model and license context.
* :mod:`~rtxspec.generator.validators` -- Type-aware value checks against an
  effective domain.
* :mod:`~rtxspec.generator.boundary` -- Boundary-value test cases.
* :mod:`~rtxspec.generator.constraints` -- The pairwise constraint language.
* :mod:`~rtxspec.generator.pairwise` -- Constrained pairwise covering arrays.
* :mod:`~rtxspec.generator.syntax` -- Command template parsing and rendering.
* :mod:`~rtxspec.generator.roundtrip` -- Bidirectional syntax test checks.
* :mod:`~rtxspec.generator.field_mapper` -- Target-schema field descriptors.
"""

from rtxspec.generator.boundary import BoundaryExpander
from rtxspec.generator.constraints import ConstraintSet, parse_expression
from rtxspec.generator.field_mapper import FieldMappingEmitter
from rtxspec.generator.pairwise import PairwiseGenerator
from rtxspec.generator.resolver import ParameterResolver
from rtxspec.generator.roundtrip import RoundTripValidator
from rtxspec.generator.syntax import CommandSyntax, parse_template

__all__ = [
    "ParameterResolver",
    "BoundaryExpander",
    "ConstraintSet",
    "parse_expression",
    "PairwiseGenerator",
    "CommandSyntax",
    "parse_template",
    "RoundTripValidator",
    "FieldMappingEmitter",
]
