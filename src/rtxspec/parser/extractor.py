"""Extract a :class:`~rtxspec.models.CommandSpec` from a raw spec document.

This module walks the ``command`` mapping of a loaded document and builds the
immutable spec model every generator consumes.  Flexible document shapes are
normalised here, once, so that nothing downstream has to re-inspect them:

* ``syntax`` given as a bare string becomes ``{"set": [string]}``.
* ``parameters`` given as a list of ``{name: ...}`` entries becomes an
  ordered mapping keyed by name.
* ``boundary_tests`` entries given as bare values become ``{value: v}``
  entries marked valid.
* Each syntax test's ``terraform`` map-or-list becomes a tagged
  :class:`~rtxspec.models.SingleMapping` / :class:`~rtxspec.models.MultiMapping`
  (see :class:`~rtxspec.models.SyntaxTest`).

The single public entry point is :func:`extract_command`.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from rtxspec.exceptions import SpecParseError
from rtxspec.models import CommandSpec


def extract_command(raw_spec: dict[str, Any]) -> CommandSpec:
    """Extract a :class:`~rtxspec.models.CommandSpec` from a raw document.

    Args:
        raw_spec: The document as returned by
            :func:`~rtxspec.parser.loader.load_spec`, with a top-level
            ``command`` mapping.  A bare command mapping (already unwrapped)
            is accepted too.

    Returns:
        The populated command spec.

    Raises:
        SpecParseError: If the document does not validate against the model.

    Example::

        raw = load_spec("specs/ipsec_ike_encryption.yaml")
        command = extract_command(raw)
        print(command.name, list(command.parameters))
    """
    command = raw_spec.get("command", raw_spec)
    if not isinstance(command, dict):
        raise SpecParseError(
            f"'command' must be a mapping (got {type(command).__name__})"
        )

    data = dict(command)
    data["syntax"] = _extract_syntax(data.get("syntax"))
    data["parameters"] = _extract_parameters(data.get("parameters"))
    data["boundary_tests"] = _extract_boundary_tests(data.get("boundary_tests"))
    if data.get("pairwise") is None:
        data.pop("pairwise", None)
    for key in ("applicable_models", "notes", "syntax_tests", "multiline_tests"):
        if data.get(key) is None:
            data.pop(key, None)

    try:
        return CommandSpec.model_validate(data)
    except ValidationError as exc:
        name = data.get("name", "<unnamed>")
        raise SpecParseError(f"Invalid command spec '{name}': {exc}") from exc


def _extract_syntax(syntax: Any) -> dict[str, Any]:
    """Normalise the ``syntax`` section into a mapping."""
    if syntax is None:
        return {}
    if isinstance(syntax, (str, list)):
        return {"set": syntax}
    if not isinstance(syntax, dict):
        raise SpecParseError(
            f"'syntax' must be a string, list, or mapping (got {type(syntax).__name__})"
        )
    return syntax


def _extract_parameters(parameters: Any) -> dict[str, Any]:
    """Normalise ``parameters`` into an ordered name -> definition mapping.

    Raises:
        SpecParseError: If a list entry has no name or a name is repeated.
    """
    if parameters is None:
        return {}
    if isinstance(parameters, dict):
        return {
            str(name): ({} if definition is None else definition)
            for name, definition in parameters.items()
        }
    if not isinstance(parameters, list):
        raise SpecParseError(
            f"'parameters' must be a mapping or list (got {type(parameters).__name__})"
        )

    result: dict[str, Any] = {}
    for entry in parameters:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise SpecParseError(f"Parameter list entry without a name: {entry!r}")
        definition = dict(entry)
        name = str(definition.pop("name"))
        if name in result:
            raise SpecParseError(f"Parameter '{name}' is declared twice")
        result[name] = definition
    return result


def _extract_boundary_tests(boundary_tests: Any) -> dict[str, list[dict[str, Any]]]:
    """Normalise ``boundary_tests`` so every entry is a mapping with a ``value``."""
    if boundary_tests is None:
        return {}
    if not isinstance(boundary_tests, dict):
        raise SpecParseError(
            "'boundary_tests' must map parameter names to lists "
            f"(got {type(boundary_tests).__name__})"
        )

    result: dict[str, list[dict[str, Any]]] = {}
    for param_name, entries in boundary_tests.items():
        normalised: list[dict[str, Any]] = []
        for entry in entries or []:
            if isinstance(entry, dict):
                normalised.append(entry)
            else:
                normalised.append({"value": entry, "valid": True})
        result[str(param_name)] = normalised
    return result
