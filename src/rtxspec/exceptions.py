"""Exception hierarchy for rtxspec.

All exceptions inherit from :class:`RtxSpecError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`rtxspec.exit_codes`.
The top-level error handler in :func:`rtxspec.app.main` catches
``RtxSpecError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The generation core distinguishes three failure classes:

* **Specification defects** -- the authoritative command description is wrong
  (unknown model, undeclared parameter, colliding field bindings, uncoverable
  pairwise constraint).  Always surfaced, never patched.
* **Coverage gaps** -- boundary cases that should be derived cannot be, because
  the command document lacks the data.  Block generation unless explicitly suppressed.
* **Validation failures** -- a concrete value falls outside its effective
  domain.  Reported per value.

Subclass hierarchy::

    RtxSpecError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- SpecParseError             (exit 7)
    +-- ConfigError                (exit 1)
    +-- SpecificationDefectError   (exit 8)
    |   +-- UncoverablePairError
    |   +-- ConstraintPrecedenceError
    |   +-- FieldCollisionError
    +-- UnsupportedOnModelError    (exit 9)
    +-- CoverageGapError           (exit 11)
    +-- ParameterValidationError   (exit 12)
    +-- SyntaxMismatchError        (exit 12)
"""

from __future__ import annotations

from typing import Any, Optional

from rtxspec.exit_codes import (
    EXIT_COVERAGE_GAP,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_DEFECT,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_UNSUPPORTED_ON_MODEL,
    EXIT_VALIDATION_FAILURE,
)


class RtxSpecError(Exception):
    """Base exception for all rtxspec errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`rtxspec.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(RtxSpecError):
    """Raised for invalid CLI arguments (e.g. a malformed ``--license`` flag)."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(RtxSpecError):
    """Raised when a spec document cannot be loaded or has the wrong shape."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class ConfigError(RtxSpecError):
    """Raised for configuration problems (invalid JSON, unreadable capability catalog)."""

    exit_code = EXIT_GENERIC_FAILURE


class SpecificationDefectError(RtxSpecError):
    """Raised when a command specification is malformed or internally inconsistent.

    Carries every defect found so that authors can fix them in one pass.

    Args:
        message: Summary line.
        defects: Individual defect descriptions.  Defaults to ``[message]``.
        command: Name of the command the defects belong to, if known.
    """

    exit_code = EXIT_SPEC_DEFECT

    def __init__(
        self,
        message: str,
        defects: Optional[list[str]] = None,
        command: Optional[str] = None,
    ):
        self.defects = list(defects) if defects else [message]
        self.command = command
        if defects and len(defects) > 1:
            message = message + "\n" + "\n".join(f"  - {d}" for d in defects)
        super().__init__(message)


class UncoverablePairError(SpecificationDefectError):
    """Raised when a parameter-value pair admits no constraint-satisfying combination."""

    def __init__(
        self,
        pair: tuple[tuple[str, Any], tuple[str, Any]],
        model: Optional[str] = None,
        command: Optional[str] = None,
    ):
        (p, v), (q, w) = pair
        scope = f" on model {model}" if model else ""
        self.pair = pair
        self.model = model
        super().__init__(
            f"Uncoverable pair ({p}={v}, {q}={w}){scope}: every completion "
            "violates a constraint",
            command=command,
        )


class ConstraintPrecedenceError(SpecificationDefectError):
    """Raised when ``requires`` and ``invalid_for`` constraints overlap without priorities."""


class FieldCollisionError(SpecificationDefectError):
    """Raised when two sources emit the same target field with incompatible types."""


class UnsupportedOnModelError(RtxSpecError):
    """Raised when a parameter is resolved against a model it is not available on.

    This is an expected outcome for per-model generation, not a crash:
    callers typically skip the model for that parameter.
    """

    exit_code = EXIT_UNSUPPORTED_ON_MODEL

    def __init__(self, parameter: str, model: str, reason: str):
        self.parameter = parameter
        self.model = model
        self.reason = reason
        super().__init__(f"Parameter '{parameter}' is unsupported on {model}: {reason}")


class CoverageGapError(RtxSpecError):
    """Raised when boundary cases that should be derived cannot be.

    Args:
        gaps: Human-readable descriptions of each gap.
    """

    exit_code = EXIT_COVERAGE_GAP

    def __init__(self, gaps: list[str]):
        self.gaps = list(gaps)
        lines = "\n".join(f"  - {g}" for g in self.gaps)
        super().__init__(f"{len(self.gaps)} coverage gap(s):\n{lines}")


class ParameterValidationError(RtxSpecError):
    """Raised when a value falls outside a parameter's effective domain."""

    exit_code = EXIT_VALIDATION_FAILURE

    def __init__(self, parameter: str, value: Any, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value {value!r} for '{parameter}': {reason}")


class SyntaxMismatchError(RtxSpecError):
    """Raised when command text cannot be parsed, or fields cannot be rendered, by any template.

    Args:
        direction: ``"parse"`` or ``"build"``.
        message: What failed.
    """

    exit_code = EXIT_VALIDATION_FAILURE

    def __init__(self, direction: str, message: str):
        self.direction = direction
        super().__init__(message)
