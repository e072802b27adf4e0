"""Constraint expressions for pairwise generation.

A condition or requirement is a conjunction of clauses::

    negotiate_strictly == on and mode == ikev1
    pfs != $peer_pfs
    algorithm in [aes256-cbc, aes128-cbc] and mode not in [ikev2]

``$name`` refers to the value of another parameter in the same combination.
Values compare as strings, so ``on``, ``True`` and ``"on"`` are equal.

Evaluation is three-valued over partial assignments: a clause whose
parameters are not all assigned yet evaluates to ``None``.  This lets the
generator prune a partial combination as soon as any constraint is
definitely violated.

Constraint kinds (see :class:`Rule`):

* ``requires``: the combination is forbidden when ``condition`` holds and
  ``requires`` does not.
* ``invalid_for``: the combination is forbidden on the listed models when
  ``condition`` holds.
* bare ``condition``: the combination is forbidden everywhere.

When a ``requires`` rule and an ``invalid_for`` rule can match the same
combination, the one with the higher ``priority`` wins: a higher-priority
``requires`` rule whose requirement is met exempts the combination from the
``invalid_for`` rule.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from rtxspec.exceptions import ConstraintPrecedenceError, SpecificationDefectError
from rtxspec.generator.validators import as_token
from rtxspec.models import PairwiseConstraint

Assignment = Mapping[str, Any]

_CLAUSE_RE = re.compile(
    r"^\s*(?P<param>[A-Za-z_][\w.-]*)\s*(?P<op>==|!=|not\s+in\b|in\b)\s*(?P<value>.+?)\s*$"
)
_AND_RE = re.compile(r"\s+and\s+", re.IGNORECASE)


def _norm(value: Any) -> str:
    return as_token(value).strip().strip("'\"").lower()


@dataclass(frozen=True)
class Clause:
    """One comparison: ``parameter op value(s)``."""

    parameter: str
    op: str
    values: tuple[str, ...]

    @property
    def parameters(self) -> set[str]:
        refs = {v[1:] for v in self.values if v.startswith("$")}
        return {self.parameter} | refs

    def evaluate(self, assignment: Assignment) -> Optional[bool]:
        if self.parameter not in assignment:
            return None
        resolved = []
        for value in self.values:
            if value.startswith("$"):
                ref = value[1:]
                if ref not in assignment:
                    return None
                resolved.append(_norm(assignment[ref]))
            else:
                resolved.append(value)
        left = _norm(assignment[self.parameter])
        member = left in resolved
        return not member if self.op in ("!=", "not in") else member


@dataclass(frozen=True)
class Expression:
    """A conjunction of :class:`Clause` objects."""

    source: str
    clauses: tuple[Clause, ...]

    @property
    def parameters(self) -> set[str]:
        names: set[str] = set()
        for clause in self.clauses:
            names |= clause.parameters
        return names

    def evaluate(self, assignment: Assignment) -> Optional[bool]:
        result: Optional[bool] = True
        for clause in self.clauses:
            value = clause.evaluate(assignment)
            if value is False:
                return False
            if value is None:
                result = None
        return result


def parse_expression(source: str) -> Expression:
    """Parse a constraint expression.

    Raises:
        SpecificationDefectError: If a clause is malformed.

    Example::

        >>> expr = parse_expression("pfs != $peer_pfs and mode == ikev1")
        >>> expr.evaluate({"pfs": "on", "peer_pfs": "off", "mode": "ikev1"})
        True
    """
    clauses = []
    for part in _AND_RE.split(source.strip()):
        match = _CLAUSE_RE.match(part)
        if match is None:
            raise SpecificationDefectError(f"Malformed constraint clause '{part}' in '{source}'")
        op = " ".join(match.group("op").split())
        raw = match.group("value")
        if op in ("in", "not in"):
            if not (raw.startswith("[") and raw.endswith("]")):
                raise SpecificationDefectError(
                    f"'{op}' needs a [list] of values in '{source}'"
                )
            items = [item.strip() for item in raw[1:-1].split(",") if item.strip()]
        else:
            items = [raw]
        values = tuple(
            item if item.startswith("$") else _norm(item) for item in items
        )
        if not values:
            raise SpecificationDefectError(f"Empty value list in '{source}'")
        clauses.append(Clause(match.group("param"), op, values))
    return Expression(source, tuple(clauses))


@dataclass(frozen=True)
class Rule:
    """A parsed :class:`~rtxspec.models.PairwiseConstraint`."""

    index: int
    condition: Expression
    requires: Optional[Expression] = None
    invalid_for: frozenset[str] = field(default_factory=frozenset)
    priority: Optional[int] = None
    description: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.requires is not None:
            return "requires"
        if self.invalid_for:
            return "invalid_for"
        return "forbid"

    @property
    def parameters(self) -> set[str]:
        names = set(self.condition.parameters)
        if self.requires is not None:
            names |= self.requires.parameters
        return names

    def label(self) -> str:
        return self.description or f"constraint #{self.index + 1} ({self.condition.source})"

    def violated(self, assignment: Assignment, model: Optional[str]) -> Optional[bool]:
        """Three-valued: ``True`` if definitely violated, ``None`` if undecided."""
        if self.kind == "invalid_for" and (model is None or model not in self.invalid_for):
            return False
        matched = self.condition.evaluate(assignment)
        if self.requires is None or matched is False:
            return matched
        met = self.requires.evaluate(assignment)
        if met is True:
            return False
        if matched is True and met is False:
            return True
        return None

    def satisfied(self, assignment: Assignment) -> Optional[bool]:
        """Does the combination match and meet the requirement?  Without one, matching is enough."""
        matched = self.condition.evaluate(assignment)
        met = True if self.requires is None else self.requires.evaluate(assignment)
        if matched is False or met is False:
            return False
        if matched is True and met is True:
            return True
        return None


class ConstraintSet:
    """All rules of one pairwise spec, with precedence resolved.

    Args:
        constraints: Declared constraints, in declaration order.
        domains: Candidate values per participating parameter; used to check
            references and to detect overlapping rules statically.
        command: Command name for error messages.

    Raises:
        SpecificationDefectError: Malformed or contradictory declarations.
        ConstraintPrecedenceError: Overlapping ``requires`` / ``invalid_for``
            rules without distinct priorities.
    """

    def __init__(
        self,
        constraints: Iterable[PairwiseConstraint],
        domains: Mapping[str, list[Any]],
        command: Optional[str] = None,
    ) -> None:
        self._command = command
        self.rules: list[Rule] = []
        defects: list[str] = []
        for index, constraint in enumerate(constraints):
            if constraint.requires and constraint.invalid_for:
                defects.append(
                    f"constraint #{index + 1} declares both 'requires' and 'invalid_for'"
                )
                continue
            rule = Rule(
                index=index,
                condition=parse_expression(constraint.condition),
                requires=parse_expression(constraint.requires) if constraint.requires else None,
                invalid_for=frozenset(constraint.invalid_for),
                priority=constraint.priority,
                description=constraint.description,
            )
            unknown = sorted(rule.parameters - set(domains))
            if unknown:
                defects.append(
                    f"{rule.label()} references non-participating parameter(s): "
                    + ", ".join(unknown)
                )
                continue
            self.rules.append(rule)
        if defects:
            raise SpecificationDefectError(
                "Invalid pairwise constraints", defects=defects, command=command
            )
        self._overrides = self._resolve_precedence(domains)

    @property
    def models(self) -> list[str]:
        """Models named by any ``invalid_for`` rule, in first-seen order."""
        seen: dict[str, None] = {}
        for rule in self.rules:
            for model in sorted(rule.invalid_for):
                seen.setdefault(model, None)
        return list(seen)

    @property
    def has_model_rules(self) -> bool:
        return any(rule.kind == "invalid_for" for rule in self.rules)

    def violated(self, assignment: Assignment, model: Optional[str] = None) -> Optional[bool]:
        """Three-valued OR of every rule's violation on *model*."""
        result: Optional[bool] = False
        for rule in self.rules:
            value = rule.violated(assignment, model)
            if value is not False and rule.index in self._overrides:
                exempt = _any3(r.satisfied(assignment) for r in self._overrides[rule.index])
                if exempt is True:
                    value = False
                elif exempt is None and value is True:
                    value = None
            if value is True:
                return True
            if value is None:
                result = None
        return result

    def is_valid(self, assignment: Assignment, model: Optional[str] = None) -> bool:
        return self.violated(assignment, model) is not True

    # ------------------------------------------------------------------ #

    def _resolve_precedence(self, domains: Mapping[str, list[Any]]) -> dict[int, list[Rule]]:
        overrides: dict[int, list[Rule]] = {}
        conflicts: list[str] = []
        requires = [r for r in self.rules if r.kind == "requires"]
        invalid = [r for r in self.rules if r.kind == "invalid_for"]
        for inv in invalid:
            for req in requires:
                if not _can_overlap(req.condition, inv.condition, domains):
                    continue
                if req.priority is None or inv.priority is None or req.priority == inv.priority:
                    conflicts.append(
                        f"{req.label()} and {inv.label()} can match the same "
                        "combination; give them distinct priorities"
                    )
                elif req.priority > inv.priority:
                    overrides.setdefault(inv.index, []).append(req)
        if conflicts:
            raise ConstraintPrecedenceError(
                "Ambiguous constraint precedence", defects=conflicts, command=self._command
            )
        return overrides


def _can_overlap(a: Expression, b: Expression, domains: Mapping[str, list[Any]]) -> bool:
    names = sorted(a.parameters | b.parameters)
    for values in itertools.product(*(domains[n] for n in names)):
        assignment = dict(zip(names, values))
        if a.evaluate(assignment) and b.evaluate(assignment):
            return True
    return False


def _any3(values: Iterable[Optional[bool]]) -> Optional[bool]:
    result: Optional[bool] = False
    for value in values:
        if value is True:
            return True
        if value is None:
            result = None
    return result
