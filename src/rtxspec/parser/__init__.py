"""Command spec parser -- load documents and extract :class:`~rtxspec.models.CommandSpec`.

Typical usage::

    from rtxspec.parser import load_command, validate_command

    command = load_command("specs/ipsec_ike_encryption.yaml")
    validate_command(command, catalog)

Sub-modules:

* :mod:`~rtxspec.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection and document shape checks.
* :mod:`~rtxspec.parser.extractor` -- Normalises flexible document shapes
  and builds the :class:`~rtxspec.models.CommandSpec`.
* :mod:`~rtxspec.parser.validator` -- Semantic checks that report every
  specification defect at once.
"""

from rtxspec.parser.extractor import extract_command
from rtxspec.parser.loader import load_command, load_spec, validate_spec_document
from rtxspec.parser.validator import validate_command

__all__ = [
    "load_spec",
    "load_command",
    "validate_spec_document",
    "extract_command",
    "validate_command",
]
