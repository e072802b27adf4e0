"""Canonical Pydantic models shared across all rtxspec modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON/YAML in the user's config
directory or supplied as static tables:
    :class:`OutputConfig`, :class:`CacheConfig`, :class:`GlobalConfig`,
    :class:`ModelProfile`, and :class:`CapabilityCatalog`.

**Spec models** -- produced by the extractor from one command document
and consumed, read-only, by every generator:
    :class:`CommandSpec`, :class:`SyntaxSpec`, :class:`Param`,
    :class:`EnumValue`, :class:`ParamVariant`, :class:`ModelOverride`,
    :class:`ModelConstraints`, :class:`BoundaryTest`, :class:`PairwiseSpec`,
    :class:`PairwiseConstraint`, :class:`SyntaxTest`,
    :class:`SingleMapping`, :class:`MultiMapping`, :class:`TerraformSpec`,
    and :class:`StructField`.

**Artifact models** -- produced by the generators:
    :class:`EffectiveDomain`, :class:`BoundaryCase`, :class:`Combination`,
    :class:`CoverageStats`, :class:`RoundTripResult`, :class:`FieldMapping`,
    :class:`CommandArtifacts`, and :class:`BatchOutcome`.

All models use Pydantic v2. Document keys that are not valid or idiomatic
Python names (``set``, ``delete``) are mapped with aliases, and flexible
document shapes (string-or-list, map-or-list-of-maps) are normalised by
``mode="before"`` validators so that downstream code sees one shape only.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# --- Configuration ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class CacheConfig(BaseModel):
    """Generated-artifact cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable artifact caching")
    ttl_seconds: int = Field(default=86400, description="Cache TTL in seconds")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/rtxspec/config.json``.

    Loaded by :func:`~rtxspec.config.load_global_config`. Fields here have
    the lowest precedence and can be overridden by project config,
    environment variables, or CLI flags. See
    :func:`~rtxspec.config.resolve_config` for the full precedence chain.
    """

    catalog: Optional[str] = Field(
        default=None, description="Path to the model/license capability catalog"
    )
    default_models: list[str] = Field(
        default_factory=list,
        description="Models to generate for when a command declares none",
    )
    allow_coverage_gaps: bool = Field(
        default=False, description="Downgrade boundary coverage gaps to warnings"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class ModelProfile(BaseModel):
    """Static capability data for one router model.

    ``licenses`` maps a capability name to a license table; each table maps
    a license SKU to the extended limit per purchased quantity (row ``i`` is
    the limit at quantity ``i + 1``).
    """

    firmware: Optional[str] = None
    capabilities: dict[str, int] = Field(default_factory=dict)
    licenses: dict[str, dict[str, list[int]]] = Field(default_factory=dict)


class CapabilityCatalog(BaseModel):
    """Per-model base capability limits and license-extension tables.

    Supplied as static configuration (see
    :func:`~rtxspec.config.load_catalog`) and passed explicitly to the
    :class:`~rtxspec.generator.resolver.ParameterResolver`.

    Example::

        CapabilityCatalog(models={
            "RTX1210": ModelProfile(
                firmware="14.01.42",
                capabilities={"ipsec_tunnels": 100},
                licenses={"ipsec_tunnels": {"YSL-VPN-EX1": [200, 300]}},
            ),
        })
    """

    models: dict[str, ModelProfile] = Field(default_factory=dict)


# --- Spec Model ---


class EnumValue(BaseModel):
    """One legal token of an enum parameter.

    A member with ``defers_to`` is a *deferred* member (for example the
    keepalive switch ``auto``): it is accepted as-is on the command line, and
    its concrete meaning is one of ``defers_to``, chosen by runtime context.
    """

    value: str
    description: Optional[str] = None
    defers_to: Optional[list[str]] = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # YAML turns bare on/off/yes/no into booleans.
        if isinstance(value, bool):
            return "on" if value else "off"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @property
    def is_deferred(self) -> bool:
        """Whether this member defers its meaning to runtime context."""
        return bool(self.defers_to)


class ParamVariant(BaseModel):
    """A named alternative shape of a parameter.

    Variants are disjoint: a token is matched by a variant's leading keyword
    (``value``), its ``pattern``, or its ``type``/``range``. Each variant
    may bind its own target-schema field.
    """

    name: Optional[str] = None
    type: str = "string"
    value: Optional[str] = Field(
        default=None, description="Leading keyword, e.g. 'text' in 'text <key>'"
    )
    pattern: Optional[str] = None
    description: Optional[str] = None
    range: Optional[list[Any]] = None
    terraform_field: Optional[str] = None
    terraform_fields: dict[str, str] = Field(default_factory=dict)
    terraform_value: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _default_name(self) -> "ParamVariant":
        if not self.name:
            self.name = self.value or self.type
        return self


class ModelOverride(BaseModel):
    """Model-specific constraint override for one :class:`Param`.

    Documents may use shorthand: ``RTX830: unavailable`` or ``RTX830: false``
    marks the parameter unavailable, and ``RTX830: [1, 20]`` sets a range.
    """

    range: Optional[list[Any]] = None
    unavailable: bool = False
    min_firmware: Optional[str] = None
    requires_license: Optional[str] = None
    capability: Optional[str] = Field(
        default=None, description="Catalog capability supplying the upper bound"
    )
    license_limits: dict[str, list[Any]] = Field(
        default_factory=dict,
        description="License SKU -> extended limit per quantity (row i = qty i+1)",
    )
    enum_values: Optional[list[str]] = None
    variants: Optional[list[str]] = None

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        if data is False or data == "unavailable":
            return {"unavailable": True}
        if data is None or data is True:
            return {}
        if isinstance(data, list):
            return {"range": data}
        return data


class Param(BaseModel):
    """One named input slot of a command.

    ``type`` is the semantic type tag (``int``, ``string``, ``enum``,
    ``bool``, ``ip``, ``ipv6``, ``ip-range``, ``hex``).  ``range`` bounds
    integers (or string lengths).  ``boundaries`` overrides the auto-derived
    boundary values.  ``terraform_fields`` binds differing fields per
    selector, where the selector is the value of ``terraform_selector`` (a
    sibling parameter) or, when that is absent, the matched variant name.
    """

    description: Optional[str] = None
    required: bool = False
    type: str = "string"
    range: Optional[list[Any]] = None
    default: Any = None
    boundaries: Optional[list[Any]] = None
    enum_values: list[EnumValue] = Field(default_factory=list)
    variants: list[ParamVariant] = Field(default_factory=list)
    terraform_field: Optional[str] = None
    terraform_fields: dict[str, str] = Field(default_factory=dict)
    terraform_selector: Optional[str] = None
    model_constraints: dict[str, ModelOverride] = Field(default_factory=dict)
    note: Optional[str] = None

    @field_validator("enum_values", mode="before")
    @classmethod
    def _coerce_enum_values(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{"value": v} if not isinstance(v, dict) else v for v in value]
        return value

    @field_validator("default", mode="before")
    @classmethod
    def _coerce_bool_default(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "on" if value else "off"
        return value

    @property
    def enum_tokens(self) -> list[str]:
        """The declared enum tokens, in declaration order."""
        return [e.value for e in self.enum_values]


class ModelConstraints(BaseModel):
    """Model applicability for a declared test."""

    valid_for: list[str] = Field(default_factory=list)
    invalid_for: list[str] = Field(default_factory=list)
    requires_license: Optional[str] = None
    unavailable: list[str] = Field(default_factory=list)

    def applies_to(self, model: Optional[str]) -> bool:
        """Return ``True`` when a test scoped by these constraints runs on *model*."""
        if model is None:
            return True
        if model in self.invalid_for or model in self.unavailable:
            return False
        if self.valid_for:
            return model in self.valid_for
        return True


class BoundaryTest(BaseModel):
    """One declared boundary value for one parameter."""

    value: Any
    valid: bool = True
    description: Optional[str] = None
    error_contains: Optional[str] = None
    valid_for: list[str] = Field(default_factory=list)
    invalid_for: list[str] = Field(default_factory=list)

    @property
    def is_model_scoped(self) -> bool:
        return bool(self.valid_for or self.invalid_for)


class PairwiseConstraint(BaseModel):
    """A conditional constraint over pairwise parameters.

    ``condition`` and ``requires`` use the expression syntax of
    :mod:`rtxspec.generator.constraints`.  ``priority`` is the explicit
    precedence annotation required when a ``requires`` constraint and an
    ``invalid_for`` constraint can match the same combination.
    """

    condition: str
    requires: Optional[str] = None
    invalid_for: list[str] = Field(default_factory=list)
    priority: Optional[int] = None
    description: Optional[str] = None


class PairwiseSpec(BaseModel):
    """Declares which parameters participate in combinatorial coverage."""

    enabled: bool = True
    parameters: list[str] = Field(default_factory=list)
    parameter_values: dict[str, list[Any]] = Field(default_factory=dict)
    constraints: list[PairwiseConstraint] = Field(default_factory=list)
    models: list[str] = Field(
        default_factory=list, description="Model scope; defaults to applicable_models"
    )


class SingleMapping(BaseModel):
    """Structured equivalent made of one field mapping."""

    kind: Literal["single"] = "single"
    fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def mappings(self) -> list[dict[str, Any]]:
        return [self.fields]


class MultiMapping(BaseModel):
    """Structured equivalent made of several field mappings (one per command line)."""

    kind: Literal["multi"] = "multi"
    items: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def mappings(self) -> list[dict[str, Any]]:
        return list(self.items)


StructuredMapping = Annotated[
    Union[SingleMapping, MultiMapping], Field(discriminator="kind")
]


class SyntaxForm(str, enum.Enum):
    """Which syntax family a command line belongs to."""

    SET = "set"
    DELETE = "delete"


class SyntaxTest(BaseModel):
    """One declared (command text, structured equivalent) pair.

    The document's ``terraform`` key may hold a map or a list of maps; it is
    resolved once here into :class:`SingleMapping` or :class:`MultiMapping`.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    rtx: str
    structured: StructuredMapping = Field(
        default_factory=SingleMapping, alias="terraform"
    )
    bidirectional: bool = True
    parse_only: bool = False
    build_only: bool = False
    form: Optional[SyntaxForm] = None
    note: Optional[str] = None
    description: Optional[str] = None
    model_constraints: Optional[ModelConstraints] = None

    @model_validator(mode="before")
    @classmethod
    def _tag_structured(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("terraform", "structured"):
            if key not in data:
                continue
            raw = data.pop(key)
            if raw is None:
                raw = {}
            if isinstance(raw, (SingleMapping, MultiMapping)):
                data["terraform"] = raw
            elif isinstance(raw, list):
                data["terraform"] = {"kind": "multi", "items": raw}
            elif isinstance(raw, dict) and raw.get("kind") in ("single", "multi"):
                data["terraform"] = raw
            else:
                data["terraform"] = {"kind": "single", "fields": raw}
        if data.get("bidirectional") is None:
            data.pop("bidirectional", None)
        return data

    @property
    def lines(self) -> list[str]:
        """Non-blank command lines of :attr:`rtx`."""
        return [line.strip() for line in self.rtx.splitlines() if line.strip()]

    @property
    def checks_parse(self) -> bool:
        return not self.build_only

    @property
    def checks_build(self) -> bool:
        return not self.parse_only and (self.bidirectional or self.build_only)


class SyntaxSpec(BaseModel):
    """Set/delete command templates plus keyword synonyms.

    ``set`` and ``delete`` may each be a single template or a list of
    alternative templates in the document.
    """

    model_config = ConfigDict(populate_by_name=True)

    set_forms: list[str] = Field(default_factory=list, alias="set")
    delete_forms: list[str] = Field(default_factory=list, alias="delete")
    synonyms: dict[str, str] = Field(
        default_factory=dict, description="Accepted alias -> canonical keyword"
    )

    @field_validator("set_forms", "delete_forms", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    def forms(self, form: SyntaxForm) -> list[str]:
        return self.set_forms if form == SyntaxForm.SET else self.delete_forms


class StructField(BaseModel):
    """A target-schema struct field declared by the command."""

    name: str
    type: str
    json_tag: Optional[str] = None
    description: Optional[str] = None
    enum: list[str] = Field(default_factory=list)


class TerraformSpec(BaseModel):
    """Terraform resource metadata attached to a command."""

    resource_name: Optional[str] = None
    struct_name: Optional[str] = None
    package: Optional[str] = None
    struct_additions: dict[str, list[StructField]] = Field(default_factory=dict)
    struct_definition: dict[str, list[StructField]] = Field(default_factory=dict)


class CommandSpec(BaseModel):
    """Full specification of one CLI command family.

    Produced by :func:`~rtxspec.parser.extractor.extract_command` and checked
    by :func:`~rtxspec.parser.validator.validate_command`.  Parameter
    declaration order is preserved and drives every tie-break in the
    generators.

    See Also:
        :class:`Param`: Individual parameter definitions.
        :class:`SyntaxSpec`: Command templates.
    """

    name: str
    description: Optional[str] = None
    reference: Optional[str] = None
    applicable_models: list[str] = Field(default_factory=list)
    syntax: SyntaxSpec = Field(default_factory=SyntaxSpec)
    terraform: TerraformSpec = Field(default_factory=TerraformSpec)
    parameters: dict[str, Param] = Field(default_factory=dict)
    syntax_tests: list[SyntaxTest] = Field(default_factory=list)
    boundary_tests: dict[str, list[BoundaryTest]] = Field(default_factory=dict)
    pairwise: Optional[PairwiseSpec] = None
    multiline_tests: list[SyntaxTest] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    implementation_status: Optional[str] = None

    @field_validator("parameters", "boundary_tests", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


# --- Generated artifacts ---


class LicenseTier(BaseModel):
    """One row of a license-extension table."""

    sku: str
    quantity: int
    limit: int


class VariantDomain(BaseModel):
    """Effective shape of one variant on one model."""

    name: str
    type: str = "string"
    keyword: Optional[str] = None
    pattern: Optional[str] = None
    range_min: Optional[int] = None
    range_max: Optional[int] = None


class EffectiveDomain(BaseModel):
    """Concrete allowed range/enum/variant set for one (parameter, model, license) triple.

    Produced by :meth:`~rtxspec.generator.resolver.ParameterResolver.resolve`.
    ``license_tiers`` lists every tier of the applicable license table (empty
    when the range is not license-extended); ``license_tier`` is the tier
    selected by the license context, if any.
    """

    model_config = ConfigDict(frozen=True)

    parameter: str
    type: str
    model: Optional[str] = None
    range_min: Optional[int] = None
    range_max: Optional[int] = None
    base_max: Optional[int] = None
    license_tier: Optional[LicenseTier] = None
    license_tiers: list[LicenseTier] = Field(default_factory=list)
    enum_values: list[str] = Field(default_factory=list)
    deferred: dict[str, list[str]] = Field(default_factory=dict)
    variants: list[VariantDomain] = Field(default_factory=list)

    @property
    def has_range(self) -> bool:
        return self.range_min is not None and self.range_max is not None

    def concrete_values(self, token: str) -> list[str]:
        """Resolve *token* to the concrete values it may stand for.

        Deferred members (e.g. ``auto``) resolve to their ``defers_to`` list;
        every other token stands for itself.
        """
        return list(self.deferred.get(token, [token]))

    def check(self, value: Any) -> None:
        """Raise :class:`~rtxspec.exceptions.ParameterValidationError` if *value* is outside the domain."""
        from rtxspec.generator.validators import check_value

        check_value(self, value)

    def contains(self, value: Any) -> bool:
        """Return ``True`` when *value* lies inside the domain."""
        from rtxspec.generator.validators import rejection_reason

        return rejection_reason(self, value) is None


class BoundarySource(str, enum.Enum):
    """Where a concrete boundary case came from."""

    DECLARED = "declared"
    RANGE = "range"
    ENUM = "enum"
    LICENSE = "license"
    OVERRIDE = "override"
    LENGTH = "length"


class BoundaryCase(BaseModel):
    """One concrete boundary test instance."""

    parameter: str
    value: Any
    expected_valid: bool
    model: Optional[str] = None
    license_context: dict[str, int] = Field(default_factory=dict)
    source: BoundarySource
    description: Optional[str] = None
    error_contains: Optional[str] = None
    variant: Optional[str] = None
    domain: Optional[EffectiveDomain] = Field(default=None, exclude=True)


class Combination(BaseModel):
    """One row of a pairwise covering array.

    ``models`` lists the models the combination is valid on; an empty list
    means the matrix was generated without model scoping.
    """

    values: dict[str, Any]
    models: list[str] = Field(default_factory=list)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]


class CoverageStats(BaseModel):
    """Summary of a generated covering array."""

    parameters: int = 0
    total_pairs: int = 0
    forbidden_pairs: int = 0
    required_pairs: int = 0
    covered_pairs: int = 0
    combinations: int = 0
    exhaustive_combinations: int = 0

    @property
    def coverage(self) -> float:
        if self.required_pairs == 0:
            return 1.0
        return self.covered_pairs / self.required_pairs


class Direction(str, enum.Enum):
    """Direction of a round-trip check."""

    PARSE = "parse"
    BUILD = "build"


class DirectionFailure(BaseModel):
    """One failed direction of a round-trip check."""

    direction: Direction
    expected: Any = None
    actual: Any = None
    message: str


class RoundTripStatus(str, enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RoundTripResult(BaseModel):
    """Verification result for one declared :class:`SyntaxTest` on one model."""

    test_name: str
    model: Optional[str] = None
    status: RoundTripStatus
    failures: list[DirectionFailure] = Field(default_factory=list)
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == RoundTripStatus.PASSED


class FieldMapping(BaseModel):
    """Target-schema field descriptor for one parameter or variant.

    When ``selector`` is set, ``variants`` holds a discriminated mapping
    keyed by the selector value (or variant name).
    """

    parameter: str
    variant: Optional[str] = None
    field_name: str
    field_type: str
    enum_values: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    required: bool = False
    default: Any = None
    selector: Optional[str] = None
    variants: dict[str, "FieldMapping"] = Field(default_factory=dict)


class CommandArtifacts(BaseModel):
    """Every generated artifact for one command."""

    command: str
    boundary_cases: list[BoundaryCase] = Field(default_factory=list)
    combinations: list[Combination] = Field(default_factory=list)
    coverage: Optional[CoverageStats] = None
    roundtrip: list[RoundTripResult] = Field(default_factory=list)
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class BatchOutcome(BaseModel):
    """Result of generating one command inside a batch.

    Exactly one of ``artifacts`` and ``error`` is set.
    """

    command: str
    artifacts: Optional[CommandArtifacts] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None
