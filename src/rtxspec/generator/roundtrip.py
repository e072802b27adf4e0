"""Bidirectional syntax round-trip verification.

Each declared :class:`~rtxspec.models.SyntaxTest` pairs command text with its
structured equivalent.  :class:`RoundTripValidator` checks that:

* **parse**: parsing the text yields the declared fields (only declared
  fields are compared, after :func:`~rtxspec.generator.syntax.normalize_value`);
* **build**: serializing the declared fields yields the text (compared after
  whitespace and synonym canonicalization).

Bidirectional tests check both; ``parse_only`` / ``build_only`` tests check
one.  Multi-line tests pair line *i* with mapping *i*.  Tests scoped by
``model_constraints`` are skipped on models they do not apply to.
Mismatches are reported in the :class:`~rtxspec.models.RoundTripResult`,
never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from rtxspec.exceptions import SpecificationDefectError, SyntaxMismatchError
from rtxspec.generator.syntax import CommandSyntax, normalize_value
from rtxspec.models import (
    CommandSpec,
    Direction,
    DirectionFailure,
    RoundTripResult,
    RoundTripStatus,
    SingleMapping,
    SyntaxTest,
)

logger = logging.getLogger(__name__)


class RoundTripValidator:
    """Verify the syntax tests of one command.

    Args:
        command: The command whose templates and tests are used.
        syntax: A prebuilt template engine; created from *command* if omitted.
    """

    def __init__(self, command: CommandSpec, syntax: Optional[CommandSyntax] = None) -> None:
        self._command = command
        self._syntax = syntax or CommandSyntax(command)

    def verify(self, test: SyntaxTest, model: Optional[str] = None) -> RoundTripResult:
        """Verify one test on *model*.

        Raises:
            SpecificationDefectError: The test's lines and mappings do not pair up.
        """
        name = test.name or test.rtx.strip()
        if test.model_constraints is not None and not test.model_constraints.applies_to(model):
            return RoundTripResult(
                test_name=name,
                model=model,
                status=RoundTripStatus.SKIPPED,
                reason=f"not applicable to {model}",
            )

        lines = test.lines
        mappings = test.structured.mappings
        if isinstance(test.structured, SingleMapping) and len(lines) > 1:
            raise SpecificationDefectError(
                f"Syntax test '{name}' has {len(lines)} lines but a single mapping",
                command=self._command.name,
            )
        if len(lines) != len(mappings):
            raise SpecificationDefectError(
                f"Syntax test '{name}' has {len(lines)} lines and {len(mappings)} mappings",
                command=self._command.name,
            )

        failures: list[DirectionFailure] = []
        for line, expected in zip(lines, mappings):
            form = test.form or self._syntax.infer_form(line)
            if test.checks_parse:
                failures.extend(self._check_parse(line, expected, form))
            if test.checks_build:
                failures.extend(self._check_build(line, expected, form))

        status = RoundTripStatus.FAILED if failures else RoundTripStatus.PASSED
        if failures:
            logger.info("Round-trip '%s' failed (%d mismatches)", name, len(failures))
        return RoundTripResult(test_name=name, model=model, status=status, failures=failures)

    def verify_command(self, models: Optional[list[str]] = None) -> list[RoundTripResult]:
        """Verify every syntax and multi-line test.

        Unscoped tests run once; model-scoped tests run once per model.
        """
        models = models or self._command.applicable_models
        results = []
        for test in self._command.syntax_tests + self._command.multiline_tests:
            if test.model_constraints is None or not models:
                results.append(self.verify(test))
                continue
            for model in models:
                results.append(self.verify(test, model))
        return results

    # ------------------------------------------------------------------ #

    def _check_parse(self, line: str, expected: dict[str, Any], form: Any) -> list[DirectionFailure]:
        try:
            actual = self._syntax.parse(line, form)
        except SyntaxMismatchError as exc:
            return [
                DirectionFailure(
                    direction=Direction.PARSE, expected=expected, actual=None, message=str(exc)
                )
            ]
        mismatched = [
            key
            for key, value in expected.items()
            if key not in actual or normalize_value(actual[key]) != normalize_value(value)
        ]
        if not mismatched:
            return []
        return [
            DirectionFailure(
                direction=Direction.PARSE,
                expected={k: expected[k] for k in mismatched},
                actual={k: actual.get(k) for k in mismatched},
                message=f"'{line}' parsed with differing fields: {', '.join(mismatched)}",
            )
        ]

    def _check_build(self, line: str, expected: dict[str, Any], form: Any) -> list[DirectionFailure]:
        try:
            built = self._syntax.serialize(expected, form)
        except SyntaxMismatchError as exc:
            return [
                DirectionFailure(
                    direction=Direction.BUILD, expected=line, actual=None, message=str(exc)
                )
            ]
        if self._syntax.canonical_text(built) == self._syntax.canonical_text(line):
            return []
        return [
            DirectionFailure(
                direction=Direction.BUILD,
                expected=line,
                actual=built,
                message="built command differs from declared text",
            )
        ]
