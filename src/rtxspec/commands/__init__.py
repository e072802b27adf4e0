"""Built-in CLI sub-commands for rtxspec.

* :mod:`~rtxspec.commands.validate` -- check command specs for defects.
* :mod:`~rtxspec.commands.inspect` -- show effective parameter domains.
* :mod:`~rtxspec.commands.generate` -- emit boundary cases, pairwise
  matrices, round-trip results and field mappings.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app.
"""
