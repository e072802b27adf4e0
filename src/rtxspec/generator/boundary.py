"""Expand a parameter's effective domains into concrete boundary test cases.

Two sources feed the output of :meth:`BoundaryExpander.expand`:

* **Declared cases** from the command's ``boundary_tests``.  A case scoped
  with ``valid_for`` / ``invalid_for`` becomes one case per model, each with
  the validity that applies on that model.
* **Auto-derived cases** from each model's effective domain: ``min-1``,
  ``min``, ``max``, ``max+1`` for ranges (lengths for strings), one case per
  enum member plus an out-of-set token, and a ``limit-1`` / ``limit`` /
  ``limit+1`` triple per license tier.

Declared cases win over auto cases with the same value, model and license
context.  A declared ``valid: true`` value that the resolved domain rejects
is a specification defect; data the expander needs but the command lacks is a
coverage gap.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from rtxspec.exceptions import (
    CoverageGapError,
    SpecificationDefectError,
    UnsupportedOnModelError,
)
from rtxspec.generator.resolver import LicenseContext, ParameterResolver
from rtxspec.generator.validators import INT_TYPES, STRING_TYPES, as_int, as_token
from rtxspec.models import (
    BoundaryCase,
    BoundarySource,
    BoundaryTest,
    EffectiveDomain,
    Param,
)

logger = logging.getLogger(__name__)


class BoundaryExpander:
    """Derive :class:`~rtxspec.models.BoundaryCase` lists from a resolver.

    Args:
        resolver: Resolver for the command being expanded.
        allow_gaps: Log coverage gaps as warnings (and collect them in
            :attr:`gaps`) instead of raising
            :class:`~rtxspec.exceptions.CoverageGapError`.
    """

    def __init__(self, resolver: ParameterResolver, allow_gaps: bool = False) -> None:
        self._resolver = resolver
        self._allow_gaps = allow_gaps
        self.gaps: list[str] = []

    @property
    def command_name(self) -> str:
        return self._resolver.command.name

    def expand(
        self,
        parameter: str,
        declared_boundaries: Optional[list[BoundaryTest]] = None,
        license_context: Optional[LicenseContext] = None,
    ) -> list[BoundaryCase]:
        """Return every boundary case for *parameter*.

        Args:
            parameter: Name of a declared parameter.
            declared_boundaries: Declared cases; defaults to the command's
                ``boundary_tests`` entry for the parameter.
            license_context: License SKU -> quantity applied to auto cases.

        Raises:
            SpecificationDefectError: Unknown parameter, a scoped declared
                case naming an unknown model, or a declared valid value the
                resolved domain rejects.
            CoverageGapError: Derivable cases are missing and gaps are not allowed.
        """
        cases, gaps = self._expand(parameter, declared_boundaries, license_context)
        self._report(gaps)
        return cases

    def expand_command(
        self, license_context: Optional[LicenseContext] = None
    ) -> list[BoundaryCase]:
        """Expand every parameter of the command, reporting all gaps together."""
        cases: list[BoundaryCase] = []
        gaps: list[str] = []
        for name in self._resolver.command.parameters:
            param_cases, param_gaps = self._expand(name, None, license_context)
            cases.extend(param_cases)
            gaps.extend(param_gaps)
        self._report(gaps)
        return cases

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _report(self, gaps: list[str]) -> None:
        gaps = list(dict.fromkeys(gaps))
        if not gaps:
            return
        if not self._allow_gaps:
            raise CoverageGapError(gaps)
        for gap in gaps:
            logger.warning("Coverage gap in '%s': %s", self.command_name, gap)
        self.gaps.extend(gaps)

    def _expand(
        self,
        parameter: str,
        declared: Optional[list[BoundaryTest]],
        license_context: Optional[LicenseContext],
    ) -> tuple[list[BoundaryCase], list[str]]:
        command = self._resolver.command
        param = command.parameters.get(parameter)
        if param is None:
            raise SpecificationDefectError(
                f"Boundary tests reference undeclared parameter '{parameter}'",
                command=command.name,
            )
        if declared is None:
            declared = command.boundary_tests.get(parameter, [])
        context = dict(license_context or {})

        gaps: list[str] = []
        auto: list[BoundaryCase] = []
        models: list[Optional[str]] = list(self._resolver.models()) or [None]
        for model in models:
            domain = self._try_resolve(parameter, model, context)
            if domain is None:
                continue
            auto.extend(self._auto_cases(param, domain, context, gaps))

        defects: list[str] = []
        explicit = self._declared_cases(parameter, declared, context, defects)
        if defects:
            raise SpecificationDefectError(
                f"Invalid boundary tests for '{parameter}' in '{command.name}'",
                defects=defects,
                command=command.name,
            )
        return _merge(explicit, auto), gaps

    def _try_resolve(
        self, parameter: str, model: Optional[str], context: LicenseContext
    ) -> Optional[EffectiveDomain]:
        try:
            return self._resolver.resolve(parameter, model, context)
        except UnsupportedOnModelError as exc:
            logger.debug("Skipping %s: %s", model, exc)
            return None

    # -- declared -----------------------------------------------------------

    def _declared_cases(
        self,
        parameter: str,
        declared: list[BoundaryTest],
        context: LicenseContext,
        defects: list[str],
    ) -> list[BoundaryCase]:
        cases: list[BoundaryCase] = []
        for test in declared:
            if not test.is_model_scoped:
                cases.append(self._uniform_case(parameter, test, context, defects))
                continue
            unknown = unknown_model_defects(parameter, test, self._resolver.known_models())
            if unknown:
                defects.extend(unknown)
                continue
            models = self._resolver.models() or _scoped_models(test)
            for model in models:
                valid = _scoped_validity(test, model)
                domain = self._try_resolve(parameter, model, context)
                if domain is None and valid:
                    defects.append(
                        f"{test.value!r} is declared valid on {model}, "
                        f"where '{parameter}' is unsupported"
                    )
                elif domain is not None and valid and not domain.contains(test.value):
                    defects.append(
                        f"{test.value!r} is declared valid on {model} but lies "
                        f"outside the effective domain"
                    )
                cases.append(
                    BoundaryCase(
                        parameter=parameter,
                        value=test.value,
                        expected_valid=valid,
                        model=model,
                        license_context=context,
                        source=BoundarySource.DECLARED,
                        description=test.description,
                        error_contains=test.error_contains,
                        domain=domain,
                    )
                )
        return cases

    def _uniform_case(
        self,
        parameter: str,
        test: BoundaryTest,
        context: LicenseContext,
        defects: list[str],
    ) -> BoundaryCase:
        domain = self._resolver.resolve(parameter, None, context)
        if test.valid:
            scopes = [domain] + [
                d
                for d in (self._try_resolve(parameter, m, context) for m in self._resolver.models())
                if d is not None
            ]
            if not any(d.contains(test.value) for d in scopes):
                defects.append(
                    f"{test.value!r} is declared valid but lies outside every "
                    "effective domain"
                )
        return BoundaryCase(
            parameter=parameter,
            value=test.value,
            expected_valid=test.valid,
            license_context=context,
            source=BoundarySource.DECLARED,
            description=test.description,
            error_contains=test.error_contains,
            domain=domain,
        )

    # -- auto-derived -------------------------------------------------------

    def _auto_cases(
        self,
        param: Param,
        domain: EffectiveDomain,
        context: LicenseContext,
        gaps: list[str],
    ) -> list[BoundaryCase]:
        cases: list[BoundaryCase] = []
        name = domain.parameter
        scope = f" on {domain.model}" if domain.model else ""

        def _case(value: Any, valid: bool, source: BoundarySource, **extra: Any) -> None:
            extra.setdefault("license_context", context)
            extra.setdefault("domain", domain)
            cases.append(
                BoundaryCase(
                    parameter=name,
                    value=value,
                    expected_valid=valid,
                    model=domain.model,
                    source=source,
                    **extra,
                )
            )

        tag = domain.type.lower()

        if domain.variants:
            for variant in domain.variants:
                if variant.range_min is None or variant.range_max is None:
                    continue
                prefix = f"{variant.keyword} " if variant.keyword else ""
                for value, valid in _range_points(variant.range_min, variant.range_max):
                    shown: Any = f"{prefix}{value}" if prefix else value
                    _case(shown, valid, BoundarySource.RANGE, variant=variant.name)
            return cases

        if domain.enum_values or tag == "enum":
            if not domain.enum_values:
                gaps.append(f"'{name}'{scope} is an enum without values")
                return cases
            for value in domain.enum_values:
                description = None
                if value in domain.deferred:
                    description = "deferred to " + ", ".join(domain.deferred[value])
                _case(value, True, BoundarySource.ENUM, description=description)
            _case(_out_of_set(domain.enum_values), False, BoundarySource.ENUM)
            return cases

        if param.boundaries is not None:
            for value in param.boundaries:
                _case(value, domain.contains(value), BoundarySource.OVERRIDE)
            return cases

        low, high = domain.range_min, domain.range_max
        if tag in INT_TYPES:
            if low is None or high is None:
                gaps.append(f"'{name}'{scope} is a range parameter without bounds")
                return cases
            for value, valid in _range_points(low, high):
                _case(value, valid, BoundarySource.RANGE)
            self._license_cases(domain, gaps, _case)
        elif tag in STRING_TYPES and low is not None and high is not None:
            for length, valid in _range_points(low, high):
                if length < 0:
                    continue
                _case("a" * length, valid, BoundarySource.LENGTH)
        return cases

    def _license_cases(self, domain: EffectiveDomain, gaps: list[str], emit: Any) -> None:
        table = self._resolver.license_table(domain.parameter, domain.model)
        for sku, rows in table.items():
            if not rows:
                gaps.append(f"license {sku} for '{domain.parameter}' on {domain.model} has no tiers")
                continue
            for index, raw in enumerate(rows):
                if as_int(raw) is None:
                    gaps.append(
                        f"license {sku} tier {index + 1} for '{domain.parameter}' on "
                        f"{domain.model} is malformed ({raw!r})"
                    )
        for tier in domain.license_tiers:
            context = {tier.sku: tier.quantity}
            description = f"{tier.sku} x{tier.quantity}"
            emit(tier.limit - 1, True, BoundarySource.LICENSE,
                 license_context=context, description=description)
            emit(tier.limit, True, BoundarySource.LICENSE,
                 license_context=context, description=description)
            emit(tier.limit + 1, False, BoundarySource.LICENSE,
                 license_context=context, description=description)


def unknown_model_defects(parameter: str, test: BoundaryTest, known: set[str]) -> list[str]:
    """Defects for models a scoped boundary test names outside *known*.

    Nothing is reported while no model is known at all.
    """
    if not known:
        return []
    return [
        f"boundary test {test.value!r} of '{parameter}' names unknown model '{model}'"
        for model in _scoped_models(test)
        if model not in known
    ]


def _scoped_models(test: BoundaryTest) -> list[str]:
    return list(dict.fromkeys(test.valid_for + test.invalid_for))


def _scoped_validity(test: BoundaryTest, model: str) -> bool:
    if model in test.invalid_for:
        return False
    if model in test.valid_for:
        return True
    if test.valid_for and not test.invalid_for:
        return False
    if test.invalid_for and not test.valid_for:
        return True
    return test.valid


def _range_points(low: int, high: int) -> list[tuple[int, bool]]:
    points = [(low - 1, False), (low, True), (high, True), (high + 1, False)]
    return list(dict.fromkeys(points))


def _out_of_set(values: list[str]) -> str:
    token = "invalid"
    suffix = 0
    while token in values:
        suffix += 1
        token = f"invalid{suffix}"
    return token


def _key(case: BoundaryCase) -> tuple[Any, ...]:
    return (
        as_token(case.value),
        case.model,
        tuple(sorted(case.license_context.items())),
    )


def _merge(declared: list[BoundaryCase], auto: list[BoundaryCase]) -> list[BoundaryCase]:
    """Declared cases first; auto cases are dropped when a declared case covers them."""
    seen: set[tuple[Any, ...]] = set()
    result: list[BoundaryCase] = []
    for case in declared:
        key = _key(case)
        if key not in seen:
            seen.add(key)
            result.append(case)
    uniform = {(k[0], k[2]) for k in seen if k[1] is None}
    for case in auto:
        key = _key(case)
        if key in seen or (key[0], key[2]) in uniform:
            continue
        seen.add(key)
        result.append(case)
    return result
