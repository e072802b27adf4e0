"""Map command parameters and variants to target-schema field descriptors.

This module bridges the gap between the command spec and the Terraform-style
schema consumed downstream.  It converts :class:`~rtxspec.models.Param` and
:class:`~rtxspec.models.ParamVariant` definitions into
:class:`~rtxspec.models.FieldMapping` descriptors.

**Mapping rules:**

* **Field names** come from ``terraform_field`` when declared, otherwise from
  the parameter name sanitised to snake_case via :func:`sanitize_field_name`.
* **Spec types** map to schema types: ``int`` to ``int``, ``bool`` to
  ``bool``, everything else (``enum``, ``ip``, ``hex``, ...) to ``string``.
  A parameter bound to a repeating template placeholder (``<name>...``)
  becomes a ``list``.
* **Variants with differing bindings** (or a ``terraform_fields`` table keyed
  by a selector parameter, e.g. the AH vs. ESP branches of ``ipsec sa
  policy``) produce a discriminated mapping keyed by the selector value.
* **Collisions** -- the same field name emitted with incompatible types by
  two sources -- raise :class:`~rtxspec.exceptions.FieldCollisionError`.
"""

from __future__ import annotations

import keyword
import logging
import re
from typing import Optional

from rtxspec.exceptions import FieldCollisionError, SpecificationDefectError
from rtxspec.models import CommandSpec, FieldMapping, Param, ParamVariant, StructField

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Type mapping
# ---------------------------------------------------------------------------

_TYPE_MAP: dict[str, str] = {
    "int": "int",
    "integer": "int",
    "number": "int",
    "bool": "bool",
    "boolean": "bool",
    "switch": "bool",
}

_STRUCT_TYPE_MAP: dict[str, str] = {
    "int": "int",
    "int32": "int",
    "int64": "int",
    "uint": "int",
    "bool": "bool",
    "string": "string",
}


def spec_type_to_schema(type_tag: str) -> str:
    """Map a spec type tag to a target-schema type.

    Example::

        >>> spec_type_to_schema("int")
        'int'
        >>> spec_type_to_schema("ip-range")
        'string'
    """
    return _TYPE_MAP.get(type_tag.lower(), "string")


def struct_type_to_schema(type_name: str) -> str:
    """Map a declared struct field type (``int``, ``[]string``, ``*bool``) to a schema type."""
    name = type_name.strip().lstrip("*")
    if name.startswith("[]"):
        return "list"
    return _STRUCT_TYPE_MAP.get(name.lower(), "string")


# ---------------------------------------------------------------------------
# Name sanitisation
# ---------------------------------------------------------------------------

_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_field_name(name: str) -> str:
    """Convert a parameter name to a snake_case schema field name.

    1. CamelCase boundaries are split with underscores.
    2. The string is lowercased.
    3. Hyphens, dots and spaces become underscores.
    4. Consecutive and leading/trailing underscores are collapsed.
    5. An empty result defaults to ``"field"``; a leading digit gets an
       underscore prefix; Python keywords get a trailing underscore.

    Example::

        >>> sanitize_field_name("gatewayId")
        'gateway_id'
        >>> sanitize_field_name("negotiate-strictly")
        'negotiate_strictly'
    """
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", result)
    result = result.lower()
    result = result.replace("-", "_").replace(".", "_").replace(" ", "_")
    result = _INVALID_IDENT_RE.sub("_", result)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        result = "field"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def field_name_for(name: str, param: Param) -> str:
    """Return the single field a parameter binds when it has no per-selector fields."""
    return param.terraform_field or sanitize_field_name(name)


def variant_field_name(name: str, param: Param, variant: ParamVariant) -> str:
    """Return the field a variant binds, falling back to its parameter's field."""
    return variant.terraform_field or field_name_for(name, param)


def is_discriminated(param: Param) -> bool:
    """Whether *param* binds different fields depending on a selector."""
    if param.terraform_fields:
        return True
    fields = {v.terraform_field for v in param.variants if v.terraform_field}
    return len(fields) > 1


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class FieldMappingEmitter:
    """Emit field descriptors for every parameter of one command.

    Args:
        command: The command whose parameters are mapped.
        list_parameters: Names of parameters bound to repeating template
            placeholders.  When ``None`` they are discovered from the
            command's syntax templates.

    Example::

        emitter = FieldMappingEmitter(command)
        for mapping in emitter.emit_all():
            print(mapping.field_name, mapping.field_type)
    """

    def __init__(
        self,
        command: CommandSpec,
        list_parameters: Optional[set[str]] = None,
    ) -> None:
        self._command = command
        if list_parameters is None:
            list_parameters = _repeated_placeholders(command)
        self._list_parameters = list_parameters

    def emit(self, parameter: str, variant: Optional[str] = None) -> FieldMapping:
        """Emit the field descriptor for *parameter* (or one of its variants).

        Raises:
            SpecificationDefectError: If the parameter or variant is not declared.
        """
        param = self._command.parameters.get(parameter)
        if param is None:
            raise SpecificationDefectError(
                f"Parameter '{parameter}' is not declared",
                command=self._command.name,
            )

        if variant is not None:
            for candidate in param.variants:
                if candidate.name == variant:
                    return self._emit_variant(parameter, param, candidate)
            raise SpecificationDefectError(
                f"Parameter '{parameter}' has no variant '{variant}'",
                command=self._command.name,
            )

        if is_discriminated(param):
            return self._emit_discriminated(parameter, param)

        return FieldMapping(
            parameter=parameter,
            field_name=field_name_for(parameter, param),
            field_type=self._schema_type(parameter, param.type),
            enum_values=param.enum_tokens,
            description=param.description,
            required=param.required,
            default=param.default,
        )

    def emit_all(self) -> list[FieldMapping]:
        """Emit descriptors for every parameter, checking for collisions.

        Raises:
            FieldCollisionError: If two sources bind one field name with
                incompatible types.
        """
        mappings = [self.emit(name) for name in self._command.parameters]
        self.check_collisions(mappings)
        return mappings

    def check_collisions(self, mappings: list[FieldMapping]) -> None:
        """Check leaf mappings and declared struct fields for type collisions."""
        seen: dict[str, tuple[str, str]] = {}
        conflicts: list[str] = []

        def _record(field: str, field_type: str, source: str) -> None:
            previous = seen.get(field)
            if previous is None:
                seen[field] = (field_type, source)
                return
            if previous[0] != field_type:
                conflicts.append(
                    f"field '{field}' is {previous[0]} in {previous[1]} "
                    f"but {field_type} in {source}"
                )
            else:
                logger.debug("Field '%s' shared by %s and %s", field, previous[1], source)

        for mapping in mappings:
            for leaf in _leaves(mapping):
                source = f"parameter '{leaf.parameter}'"
                if leaf.variant:
                    source += f" variant '{leaf.variant}'"
                _record(leaf.field_name, leaf.field_type, source)

        terraform = self._command.terraform
        for section in (terraform.struct_definition, terraform.struct_additions):
            for struct_name, fields in section.items():
                for field in fields:
                    _record(
                        _struct_field_key(field),
                        struct_type_to_schema(field.type),
                        f"struct '{struct_name}' field '{field.name}'",
                    )

        if conflicts:
            raise FieldCollisionError(
                f"Colliding field bindings in '{self._command.name}'",
                defects=conflicts,
                command=self._command.name,
            )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _schema_type(self, parameter: str, type_tag: str) -> str:
        if parameter in self._list_parameters:
            return "list"
        return spec_type_to_schema(type_tag)

    def _emit_variant(
        self, parameter: str, param: Param, variant: ParamVariant
    ) -> FieldMapping:
        enum_values = list(dict.fromkeys(variant.terraform_value.values()))
        field_type = self._schema_type(parameter, variant.type)
        if variant.type == "keyword":
            field_type = "string"
        return FieldMapping(
            parameter=parameter,
            variant=variant.name,
            field_name=variant_field_name(parameter, param, variant),
            field_type=field_type,
            enum_values=enum_values,
            description=variant.description or param.description,
            required=False,
            default=None,
        )

    def _emit_discriminated(self, parameter: str, param: Param) -> FieldMapping:
        branches: dict[str, FieldMapping] = {}
        if param.terraform_fields:
            selector = param.terraform_selector or "variant"
            for key, field in param.terraform_fields.items():
                branches[key] = FieldMapping(
                    parameter=parameter,
                    field_name=field,
                    field_type=self._schema_type(parameter, param.type),
                    enum_values=param.enum_tokens,
                    description=param.description,
                )
        else:
            selector = "variant"
            for variant in param.variants:
                branches[variant.name or ""] = self._emit_variant(parameter, param, variant)

        branch_types = {b.field_type for b in branches.values()}
        field_type = branch_types.pop() if len(branch_types) == 1 else "union"
        return FieldMapping(
            parameter=parameter,
            field_name=sanitize_field_name(parameter),
            field_type=field_type,
            description=param.description,
            required=param.required,
            default=param.default,
            selector=selector,
            variants=branches,
        )


def _leaves(mapping: FieldMapping) -> list[FieldMapping]:
    if mapping.variants:
        return [leaf for branch in mapping.variants.values() for leaf in _leaves(branch)]
    return [mapping]


def _struct_field_key(field: StructField) -> str:
    if field.json_tag:
        return field.json_tag.split(",")[0]
    return sanitize_field_name(field.name)


def _repeated_placeholders(command: CommandSpec) -> set[str]:
    from rtxspec.generator.syntax import parse_template

    names: set[str] = set()
    for template in command.syntax.set_forms + command.syntax.delete_forms:
        names.update(parse_template(template).repeated)
    return names
