"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~rtxspec.exceptions.RtxSpecError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ rtxspec generate pairwise specs/ipsec_ike_pfs.yaml
    $ echo $?
    8   # EXIT_SPEC_DEFECT -- the command specification is inconsistent
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""The specification document could not be loaded or has the wrong shape."""

EXIT_SPEC_DEFECT = 8
"""The specification is internally inconsistent (unknown model, bad reference, ...)."""

EXIT_UNSUPPORTED_ON_MODEL = 9
"""A parameter was resolved against a model on which it is unavailable."""

EXIT_COVERAGE_GAP = 11
"""Boundary coverage could not be derived and gaps were not suppressed."""

EXIT_VALIDATION_FAILURE = 12
"""A value failed validation against its effective parameter domain."""

EXIT_INTERRUPTED = 130
"""The run was cancelled with Ctrl-C (128 + SIGINT)."""
