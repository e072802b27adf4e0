"""Resolve a parameter's effective domain on a model under a license context.

The effective domain of a parameter is what the router actually accepts on
one model: the declared base range/enum/variants, narrowed or replaced by the
parameter's per-model override, with the upper bound extended by whatever
license tiers the context holds.

Resolution order:

1. Base range, enum values and variants come from the :class:`~rtxspec.models.Param`.
2. A :class:`~rtxspec.models.ModelOverride` for the model may mark the
   parameter unavailable, require a license or a minimum firmware, replace the
   range, take the upper bound from a catalog capability, or restrict the enum
   values and variants.
3. The license table (the override's ``license_limits``, else the catalog's
   ``licenses[capability]``) is consulted for each SKU in the context; the
   highest matching limit becomes the upper bound.

Results are memoized per ``(parameter, model, license context)``.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, Optional

from rtxspec.exceptions import SpecificationDefectError, UnsupportedOnModelError
from rtxspec.generator.validators import as_int
from rtxspec.models import (
    CapabilityCatalog,
    CommandSpec,
    EffectiveDomain,
    LicenseTier,
    ModelOverride,
    ModelProfile,
    Param,
    VariantDomain,
)

logger = logging.getLogger(__name__)

LicenseContext = dict[str, int]


def firmware_key(version: str) -> tuple[int, ...]:
    """Turn a firmware string such as ``"Rev.14.01.42"`` into a comparable tuple."""
    return tuple(int(part) for part in re.findall(r"\d+", version))


class ParameterResolver:
    """Compute :class:`~rtxspec.models.EffectiveDomain` objects for one command.

    Args:
        command: The command whose parameters are resolved.
        catalog: Static per-model capability and license tables.  Optional;
            without it only the command's own overrides apply.

    Example::

        resolver = ParameterResolver(command, catalog)
        domain = resolver.resolve("gateway_id", "RTX1210", {"YSL-VPN-EX2": 2})
        domain.range_max   # 500
        domain.contains(501)  # False
    """

    def __init__(
        self,
        command: CommandSpec,
        catalog: Optional[CapabilityCatalog] = None,
    ) -> None:
        self._command = command
        self._catalog = catalog or CapabilityCatalog()
        self._memo: dict[tuple[Any, ...], EffectiveDomain] = {}
        self._lock = threading.Lock()

    @property
    def command(self) -> CommandSpec:
        return self._command

    @property
    def catalog(self) -> CapabilityCatalog:
        return self._catalog

    def models(self) -> list[str]:
        """Models the command is generated for: its applicable models, else the catalog's."""
        if self._command.applicable_models:
            return list(self._command.applicable_models)
        return list(self._catalog.models)

    def known_models(self) -> set[str]:
        """Every model a spec may name: the applicable models plus the catalog's."""
        return set(self._command.applicable_models) | set(self._catalog.models)

    def resolve(
        self,
        parameter: str,
        model: Optional[str] = None,
        license_context: Optional[LicenseContext] = None,
    ) -> EffectiveDomain:
        """Return the effective domain of *parameter* on *model*.

        Raises:
            SpecificationDefectError: Unknown parameter or model, malformed
                range, or an override naming values the base does not declare.
            UnsupportedOnModelError: The parameter is unavailable on *model*
                (or needs a license or firmware the context lacks).
        """
        context = {sku: qty for sku, qty in (license_context or {}).items() if qty}
        key = (parameter, model, tuple(sorted(context.items())))
        with self._lock:
            cached = self._memo.get(key)
        if cached is not None:
            return cached

        domain = self._resolve(parameter, model, context)
        with self._lock:
            return self._memo.setdefault(key, domain)

    def license_table(self, parameter: str, model: Optional[str]) -> dict[str, list[Any]]:
        """Return the raw license table that extends *parameter* on *model*."""
        if model is None:
            return {}
        param = self._param(parameter)
        override = param.model_constraints.get(model)
        if override is None:
            return {}
        if override.license_limits:
            return dict(override.license_limits)
        profile = self._catalog.models.get(model)
        if override.capability and profile is not None:
            return dict(profile.licenses.get(override.capability, {}))
        return {}

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _param(self, parameter: str) -> Param:
        param = self._command.parameters.get(parameter)
        if param is None:
            raise SpecificationDefectError(
                f"Parameter '{parameter}' is not declared in '{self._command.name}'",
                command=self._command.name,
            )
        return param

    def _check_model(self, model: Optional[str]) -> None:
        if model is None:
            return
        known = self.known_models()
        if known and model not in known:
            raise SpecificationDefectError(
                f"Unknown model '{model}' for '{self._command.name}'",
                command=self._command.name,
            )

    def _resolve(
        self, parameter: str, model: Optional[str], context: LicenseContext
    ) -> EffectiveDomain:
        param = self._param(parameter)
        self._check_model(model)

        override = param.model_constraints.get(model) if model else None
        profile = self._catalog.models.get(model) if model else None

        range_min, range_max = self._parse_range(param.range, parameter)
        enum_values = param.enum_tokens
        variants = list(param.variants)

        if model and override is not None:
            self._check_availability(parameter, model, override, profile, context)
            if override.range is not None:
                range_min, range_max = self._parse_range(
                    override.range, f"{parameter} on {model}"
                )
            if override.capability:
                if profile is None or override.capability not in profile.capabilities:
                    raise SpecificationDefectError(
                        f"Capability '{override.capability}' for '{parameter}' is "
                        f"missing from the catalog entry of {model}",
                        command=self._command.name,
                    )
                range_max = profile.capabilities[override.capability]
            if override.enum_values is not None:
                enum_values = self._restrict(
                    parameter, model, "enum value", enum_values, override.enum_values
                )
            if override.variants is not None:
                names = self._restrict(
                    parameter, model, "variant",
                    [v.name or "" for v in variants], override.variants,
                )
                variants = [v for v in variants if v.name in names]

        tiers = self._tiers(self.license_table(parameter, model))
        tier = _select_tier(tiers, context)
        base_max = range_max
        if tier is not None:
            logger.debug(
                "'%s' on %s extended to %d by %s x%d",
                parameter, model, tier.limit, tier.sku, tier.quantity,
            )
            range_max = tier.limit

        if range_min is not None and range_max is not None and range_min > range_max:
            raise SpecificationDefectError(
                f"Effective range of '{parameter}' on {model} is empty "
                f"({range_min} > {range_max})",
                command=self._command.name,
            )

        return EffectiveDomain(
            parameter=parameter,
            type=param.type,
            model=model,
            range_min=range_min,
            range_max=range_max,
            base_max=base_max,
            license_tier=tier,
            license_tiers=tiers,
            enum_values=enum_values,
            deferred={
                e.value: list(e.defers_to or [])
                for e in param.enum_values
                if e.is_deferred and e.value in enum_values
            },
            variants=[self._variant_domain(parameter, v) for v in variants],
        )

    def _check_availability(
        self,
        parameter: str,
        model: str,
        override: ModelOverride,
        profile: Optional[ModelProfile],
        context: LicenseContext,
    ) -> None:
        if override.unavailable:
            raise UnsupportedOnModelError(parameter, model, "not available on this model")
        if override.requires_license and not context.get(override.requires_license):
            raise UnsupportedOnModelError(
                parameter, model, f"requires license {override.requires_license}"
            )
        if override.min_firmware:
            if profile is None or not profile.firmware:
                logger.debug(
                    "No firmware known for %s; skipping min_firmware check on '%s'",
                    model, parameter,
                )
            elif firmware_key(profile.firmware) < firmware_key(override.min_firmware):
                raise UnsupportedOnModelError(
                    parameter, model,
                    f"requires firmware {override.min_firmware} (have {profile.firmware})",
                )

    def _parse_range(
        self, raw: Optional[list[Any]], label: str
    ) -> tuple[Optional[int], Optional[int]]:
        if raw is None:
            return None, None
        bounds = [as_int(v) for v in raw] if isinstance(raw, list) else []
        if len(bounds) != 2 or None in bounds:
            raise SpecificationDefectError(
                f"Range of '{label}' must be [low, high] integers (got {raw!r})",
                command=self._command.name,
            )
        low, high = bounds
        if low > high:
            raise SpecificationDefectError(
                f"Range of '{label}' has low > high ({low} > {high})",
                command=self._command.name,
            )
        return low, high

    def _restrict(
        self,
        parameter: str,
        model: Optional[str],
        kind: str,
        base: list[str],
        allowed: list[str],
    ) -> list[str]:
        unknown = [a for a in allowed if a not in base]
        if unknown:
            raise SpecificationDefectError(
                f"Override of '{parameter}' on {model} names undeclared {kind}(s): "
                + ", ".join(unknown),
                command=self._command.name,
            )
        return [b for b in base if b in allowed]

    def _variant_domain(self, parameter: str, variant: Any) -> VariantDomain:
        low, high = self._parse_range(variant.range, f"{parameter}.{variant.name}")
        return VariantDomain(
            name=variant.name or variant.type,
            type=variant.type,
            keyword=variant.value,
            pattern=variant.pattern,
            range_min=low,
            range_max=high,
        )

    @staticmethod
    def _tiers(table: dict[str, list[Any]]) -> list[LicenseTier]:
        tiers = []
        for sku, rows in table.items():
            for index, raw in enumerate(rows or []):
                limit = as_int(raw)
                if limit is None:
                    logger.debug("Ignoring malformed license row %s[%d]=%r", sku, index, raw)
                    continue
                tiers.append(LicenseTier(sku=sku, quantity=index + 1, limit=limit))
        return tiers


def _select_tier(tiers: list[LicenseTier], context: LicenseContext) -> Optional[LicenseTier]:
    """Pick the tier giving the highest limit; quantities past the table clamp to its last row."""
    best: Optional[LicenseTier] = None
    for sku, quantity in context.items():
        rows = [t for t in tiers if t.sku == sku and t.quantity <= quantity]
        if not rows:
            continue
        tier = max(rows, key=lambda t: t.quantity)
        if best is None or tier.limit > best.limit:
            best = tier
    return best
