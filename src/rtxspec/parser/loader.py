"""Read command spec documents from a local file, an HTTP(S) URL, or stdin.

Reading and decoding are separate steps.  :func:`read_source` returns the raw
text together with the format the source announces (file suffix or
``Content-Type``), and :func:`decode_document` turns that text into a dict.
YAML is the native format; JSON documents are accepted because every JSON
object is also valid YAML, but a source that announces JSON is held to it.

Every error names the source it came from, so a batch run over many spec
files points at the right one.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from rtxspec.exceptions import SpecParseError
from rtxspec.models import CommandSpec

logger = logging.getLogger(__name__)

STDIN_SOURCE = "-"
FETCH_TIMEOUT = 30.0

_SUFFIX_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def load_spec(source: str) -> dict[str, Any]:
    """Load one command spec document.

    Args:
        source: A file path, an ``http://`` / ``https://`` URL, or ``-``
            for stdin.

    Returns:
        The decoded document.

    Raises:
        SpecParseError: If the source cannot be read or does not decode to a
            mapping.
    """
    text, fmt = read_source(source)
    document = decode_document(text, fmt, origin=_origin(source))
    logger.debug("Loaded spec document from %s", _origin(source))
    return document


def load_command(source: str) -> CommandSpec:
    """Load, shape-check and extract the :class:`~rtxspec.models.CommandSpec` at *source*."""
    from rtxspec.parser.extractor import extract_command

    document = load_spec(source)
    validate_spec_document(document, origin=_origin(source))
    return extract_command(document)


def read_source(source: str) -> tuple[str, Optional[str]]:
    """Return ``(text, announced_format)`` for *source*.

    The format is ``"json"``, ``"yaml"`` or ``None`` when the source gives no
    hint.  Blank input is rejected here so every source reports it the same
    way.
    """
    if source == STDIN_SOURCE:
        text, fmt = sys.stdin.read(), None
    elif source.startswith(("http://", "https://")):
        text, fmt = _fetch(source)
    else:
        text, fmt = _read_file(Path(source))
    if not text.strip():
        raise SpecParseError(f"{_sentence(_origin(source))} is empty")
    return text, fmt


def _fetch(url: str) -> tuple[str, Optional[str]]:
    try:
        response = httpx.get(url, timeout=FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching spec from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Cannot fetch spec from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        return response.text, "json"
    if "yaml" in content_type or "yml" in content_type:
        return response.text, "yaml"
    return response.text, None


def _read_file(path: Path) -> tuple[str, Optional[str]]:
    if not path.is_file():
        raise SpecParseError(f"Spec file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SpecParseError(f"Cannot read spec file {path}: {exc}") from exc
    return text, _SUFFIX_FORMATS.get(path.suffix.lower())


def decode_document(text: str, fmt: Optional[str] = None, origin: str = "document") -> dict[str, Any]:
    """Decode *text* into a mapping.

    Args:
        text: Raw document text.
        fmt: ``"json"`` to require strict JSON; anything else parses as YAML.
        origin: Where the text came from, used in error messages.

    Raises:
        SpecParseError: On a syntax error or a non-mapping root.
    """
    if fmt == "json":
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SpecParseError(f"Invalid JSON in {origin}: {exc}") from exc
    else:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SpecParseError(f"Invalid YAML in {origin}: {exc}") from exc

    if not isinstance(document, dict):
        kind = "nothing" if document is None else type(document).__name__
        raise SpecParseError(f"{_sentence(origin)} must hold a mapping, got {kind}")
    return document


def validate_spec_document(document: dict[str, Any], origin: str = "document") -> dict[str, Any]:
    """Check the root shape and return the ``command`` mapping.

    Only the envelope is checked: a ``command`` mapping with a non-empty
    ``name``.  Everything inside it is left to the extractor and to
    :func:`~rtxspec.parser.validator.validate_command`.

    Raises:
        SpecParseError: If ``command`` is missing, not a mapping, or unnamed.
    """
    command = document.get("command")
    if command is None:
        raise SpecParseError(f"{_sentence(origin)} has no 'command' section")
    if not isinstance(command, dict):
        raise SpecParseError(
            f"'command' in {origin} must be a mapping, got {type(command).__name__}"
        )
    name = command.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SpecParseError(f"'command.name' is required in {origin}")
    return command


def _origin(source: str) -> str:
    if source == STDIN_SOURCE:
        return "stdin"
    if source.startswith(("http://", "https://")):
        return f"spec at {source}"
    return f"spec file {source}"


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]
