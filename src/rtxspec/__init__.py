"""rtxspec -- Derive tests and schema mappings from declarative router command specs.

This package models a router's command-line configuration surface as one
declarative specification per command (syntax forms, parameters, variants,
per-model limits, license-tier capacity extensions, declared tests) and
mechanically derives from it:

* parameter validators,
* syntax round-trip checks (command text <-> structured fields),
* boundary-value test cases,
* pairwise combinatorial test matrices under explicit constraints,
* structured field mappings for a Terraform-style target schema.

Typical workflow::

    rtxspec validate specs/ipsec_ike_encryption.yaml
    rtxspec generate all specs/*.yaml --catalog models.yaml

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and capability catalog loading.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    pipeline: Per-command artifact generation and batch fan-out.
"""

__version__ = "0.3.0"
