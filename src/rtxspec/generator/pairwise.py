"""Pairwise covering-array generation under constraints.

Given a command's :class:`~rtxspec.models.PairwiseSpec`, produce a small set of
:class:`~rtxspec.models.Combination` rows such that, on every model scope,
every pair of (parameter, value) assignments that the constraints do not
forbid on its own appears in at least one row valid on that model.

Algorithm:

1. **Candidates.**  Values per parameter come from ``parameter_values``,
   else the enum set, else ``on``/``off`` for booleans, else the range
   endpoints.
2. **Pairs.**  For each model scope, every pair is either *forbidden* (a
   constraint is definitely violated by the pair alone) or *required*.  Each
   required pair must have at least one valid completion, found by
   depth-first search; otherwise :class:`~rtxspec.exceptions.UncoverablePairError`.
3. **Greedy covering.**  The uncovered pair with the fewest compatible
   extensions is seeded first.  Remaining parameters are filled most
   constrained first, each taking the value that covers the most uncovered
   pairs, with backtracking to keep the row valid on the seed's scope.  The
   finished row is tagged with every model it is valid on and covers pairs
   on all of them.

Ties break by declaration order, so output is reproducible.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

from rtxspec.exceptions import SpecificationDefectError, UncoverablePairError
from rtxspec.generator.constraints import ConstraintSet
from rtxspec.generator.resolver import ParameterResolver
from rtxspec.generator.validators import BOOL_TYPES, as_token
from rtxspec.models import Combination, CommandSpec, CoverageStats, PairwiseSpec

logger = logging.getLogger(__name__)

Pair = tuple[tuple[str, str], tuple[str, str]]
Scope = Optional[str]


class PairwiseGenerator:
    """Generate a pairwise covering array for one command.

    Args:
        command: The command to generate for.
        resolver: Used to read range endpoints.  Created on demand.

    Example::

        generator = PairwiseGenerator(command)
        rows = generator.generate()
        print(generator.stats.combinations, "rows cover",
              generator.stats.covered_pairs, "pairs")
    """

    def __init__(
        self,
        command: CommandSpec,
        resolver: Optional[ParameterResolver] = None,
    ) -> None:
        self._command = command
        self._resolver = resolver or ParameterResolver(command)
        self.stats = CoverageStats()
        self._names: list[str] = []
        self._domains: dict[str, list[Any]] = {}
        self._position: dict[str, int] = {}

    def generate(self, pairwise_spec: Optional[PairwiseSpec] = None) -> list[Combination]:
        """Return the covering array.

        Raises:
            SpecificationDefectError: Undeclared parameters, missing candidate
                values, or malformed constraints.
            ConstraintPrecedenceError: Overlapping constraints lack priorities.
            UncoverablePairError: A non-forbidden pair has no valid completion.
        """
        spec = pairwise_spec or self._command.pairwise
        self.stats = CoverageStats()
        if spec is None or not spec.enabled:
            return []

        self._names = list(spec.parameters or spec.parameter_values)
        self._domains = self._candidates(spec)
        self._position = {name: i for i, name in enumerate(self._names)}
        constraints = ConstraintSet(spec.constraints, self._domains, command=self._command.name)
        scopes = self._scopes(spec, constraints)
        scoped = scopes != [None]

        uncovered = self._required_pairs(constraints, scopes)
        freedom = {key: self._freedom(constraints, *key) for key in uncovered}
        order = {key: i for i, key in enumerate(uncovered)}

        rows: list[Combination] = []
        remaining = set(uncovered)
        while remaining:
            scope, pair = min(remaining, key=lambda k: (freedom[k], order[k]))
            (p, v), (q, w) = pair
            seed = {p: self._value(p, v), q: self._value(q, w)}
            row = self._search(constraints, seed, scope, self._gain(constraints, remaining, scopes))
            if row is None:
                # Existence was proven when the pair was enumerated.
                raise UncoverablePairError(
                    ((p, v), (q, w)), model=scope, command=self._command.name
                )
            valid_on = [m for m in scopes if constraints.is_valid(row, m)]
            covered = {
                (m, pr) for m in valid_on for pr in self._pairs_of(row)
            } & remaining
            remaining -= covered
            rows.append(
                Combination(
                    values={n: row[n] for n in self._names},
                    models=[m for m in valid_on if m is not None] if scoped else [],
                )
            )

        self.stats.combinations = len(rows)
        self.stats.covered_pairs = len(uncovered)
        logger.debug(
            "'%s': %d rows cover %d pairs (%d forbidden)",
            self._command.name, len(rows), len(uncovered), self.stats.forbidden_pairs,
        )
        return rows

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def _candidates(self, spec: PairwiseSpec) -> dict[str, list[Any]]:
        defects: list[str] = []
        domains: dict[str, list[Any]] = {}
        if len(self._names) < 2:
            defects.append("pairwise generation needs at least two parameters")
        for name in self._names:
            param = self._command.parameters.get(name)
            if param is None:
                defects.append(f"pairwise parameter '{name}' is not declared")
                continue
            if name in spec.parameter_values:
                values = list(spec.parameter_values[name])
                if param.enum_values:
                    stray = [v for v in values if as_token(v) not in param.enum_tokens]
                    if stray:
                        defects.append(
                            f"pairwise values {stray!r} of '{name}' are not enum members"
                        )
            elif param.enum_values:
                values = list(param.enum_tokens)
            elif param.type.lower() in BOOL_TYPES:
                values = ["on", "off"]
            else:
                domain = self._resolver.resolve(name)
                values = [domain.range_min, domain.range_max] if domain.has_range else []
            unique: dict[str, Any] = {}
            for value in values:
                unique.setdefault(as_token(value), value)
            if not unique:
                defects.append(f"pairwise parameter '{name}' has no candidate values")
            domains[name] = list(unique.values())
        if defects:
            raise SpecificationDefectError(
                f"Invalid pairwise declaration in '{self._command.name}'",
                defects=defects,
                command=self._command.name,
            )
        self.stats.parameters = len(self._names)
        self.stats.exhaustive_combinations = math.prod(len(v) for v in domains.values())
        return domains

    def _scopes(self, spec: PairwiseSpec, constraints: ConstraintSet) -> list[Scope]:
        """Models the matrix is generated for; ``[None]`` when unscoped.

        ``pairwise.models`` wins.  Otherwise ``invalid_for`` rules scope the
        matrix to every model the command is generated for, so a rule naming
        one model leaves the others unrestricted.
        """
        defects = unknown_pairwise_models(spec, self._resolver.known_models())
        if spec.models:
            scopes: list[Scope] = list(spec.models)
        elif not constraints.has_model_rules:
            scopes = [None]
        else:
            scopes = list(self._resolver.models())
            if not scopes:
                defects.append(
                    "model-scoped pairwise constraints need applicable_models, "
                    "a capability catalog or pairwise.models"
                )
        if defects:
            raise SpecificationDefectError(
                f"Invalid pairwise declaration in '{self._command.name}'",
                defects=defects,
                command=self._command.name,
            )
        return scopes

    def _required_pairs(
        self, constraints: ConstraintSet, scopes: list[Scope]
    ) -> list[tuple[Scope, Pair]]:
        required: list[tuple[Scope, Pair]] = []
        for scope in scopes:
            for i, p in enumerate(self._names):
                for q in self._names[i + 1:]:
                    for v in self._domains[p]:
                        for w in self._domains[q]:
                            self.stats.total_pairs += 1
                            partial = {p: v, q: w}
                            pair = ((p, as_token(v)), (q, as_token(w)))
                            if constraints.violated(partial, scope) is True:
                                self.stats.forbidden_pairs += 1
                                continue
                            if self._search(constraints, partial, scope) is None:
                                raise UncoverablePairError(
                                    pair, model=scope, command=self._command.name
                                )
                            required.append((scope, pair))
        self.stats.required_pairs = len(required)
        return required

    def _freedom(self, constraints: ConstraintSet, scope: Scope, pair: Pair) -> int:
        (p, v), (q, w) = pair
        base = {p: self._value(p, v), q: self._value(q, w)}
        count = 0
        for name in self._names:
            if name in base:
                continue
            for value in self._domains[name]:
                if constraints.violated({**base, name: value}, scope) is not True:
                    count += 1
        return count

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def _search(
        self,
        constraints: ConstraintSet,
        assignment: dict[str, Any],
        scope: Scope,
        gain: Optional[Callable[[str, Any, dict[str, Any]], int]] = None,
    ) -> Optional[dict[str, Any]]:
        """Depth-first completion of *assignment*, valid on *scope*."""
        if constraints.violated(assignment, scope) is True:
            return None
        open_names = [n for n in self._names if n not in assignment]
        if not open_names:
            return dict(assignment)

        options: dict[str, list[Any]] = {}
        for name in open_names:
            options[name] = [
                v
                for v in self._domains[name]
                if constraints.violated({**assignment, name: v}, scope) is not True
            ]
            if not options[name]:
                return None

        name = min(open_names, key=lambda n: (len(options[n]), self._position[n]))
        values = options[name]
        if gain is not None:
            values = sorted(values, key=lambda v: -gain(name, v, assignment))
        for value in values:
            result = self._search(constraints, {**assignment, name: value}, scope, gain)
            if result is not None:
                return result
        return None

    def _gain(
        self,
        constraints: ConstraintSet,
        remaining: set[tuple[Scope, Pair]],
        scopes: list[Scope],
    ) -> Callable[[str, Any, dict[str, Any]], int]:
        def gain(name: str, value: Any, assignment: dict[str, Any]) -> int:
            trial = {**assignment, name: value}
            live = [m for m in scopes if constraints.violated(trial, m) is not True]
            token = as_token(value)
            total = 0
            for other, other_value in assignment.items():
                pair = self._ordered((name, token), (other, as_token(other_value)))
                total += sum(1 for m in live if (m, pair) in remaining)
            return total

        return gain

    def _pairs_of(self, row: dict[str, Any]) -> list[Pair]:
        pairs = []
        for i, p in enumerate(self._names):
            for q in self._names[i + 1:]:
                pairs.append(((p, as_token(row[p])), (q, as_token(row[q]))))
        return pairs

    def _ordered(self, a: tuple[str, str], b: tuple[str, str]) -> Pair:
        return (a, b) if self._position[a[0]] < self._position[b[0]] else (b, a)

    def _value(self, name: str, token: str) -> Any:
        for value in self._domains[name]:
            if as_token(value) == token:
                return value
        raise KeyError(f"{name}={token}")


def unknown_pairwise_models(spec: PairwiseSpec, known: set[str]) -> list[str]:
    """Defects for models ``pairwise.models`` or an ``invalid_for`` rule name outside *known*."""
    if not known:
        return []
    defects = [
        f"pairwise models name unknown model '{model}'"
        for model in spec.models
        if model not in known
    ]
    for index, constraint in enumerate(spec.constraints, start=1):
        defects.extend(
            f"pairwise constraint {index} names unknown model '{model}'"
            for model in constraint.invalid_for
            if model not in known
        )
    return defects
