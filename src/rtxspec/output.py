"""Where rtxspec writes what.

Artifacts (boundary cases, covering arrays, round-trip results, field
mappings, inspection tables) go to stdout, or to the ``-o`` file.  Status
lines, warnings and errors go to stderr, so piping ``rtxspec generate ...``
into ``jq`` only ever sees artifacts.

The format is chosen once per run:

* ``json`` -- indented JSON documents.
* ``plain`` -- tab-separated lines; a list of records gets a header row.
* ``rich`` -- highlighted JSON and boxed tables.
* ``auto`` -- ``rich`` on an interactive terminal with colour, ``plain``
  otherwise.

Colour is off when ``--no-color`` is passed, ``NO_COLOR`` is set to any
value, or ``TERM=dumb``.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def color_disabled_by_env() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    """Turn ``AUTO`` into a concrete format for this process."""
    if requested != OutputFormat.AUTO:
        return requested
    interactive = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    return OutputFormat.RICH if interactive and not no_color else OutputFormat.PLAIN


def to_jsonable(data: Any) -> Any:
    """Dump pydantic models (also inside lists and dicts) to JSON-ready values."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_jsonable(item) for item in data]
    return data


class OutputManager:
    """Writes artifacts and diagnostics for one CLI run.

    Args:
        format: Requested format; ``AUTO`` is resolved immediately.
        no_color: Disable colour regardless of the environment.
        quiet: Drop informational and success lines.  Warnings and errors
            are always written.
        output_file: Write artifacts to this path instead of stdout.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        self.no_color = no_color or color_disabled_by_env()
        self.quiet = quiet
        self.output_file = output_file
        self.format = resolve_format(format, self.no_color)
        self._console = Console(
            file=sys.stdout,
            no_color=self.no_color,
            force_terminal=self.format == OutputFormat.RICH,
            highlight=False,
        )
        self._err_console = Console(
            file=sys.stderr, no_color=self.no_color, highlight=False, soft_wrap=True
        )

    # -- artifacts ----------------------------------------------------------

    def emit(self, data: Any) -> None:
        """Write one artifact document: a model, a record, or a list of either."""
        payload = to_jsonable(data)
        if self.output_file:
            Path(self.output_file).write_text(_dumps(payload) + "\n", encoding="utf-8")
        elif self.format == OutputFormat.JSON:
            self._write(_dumps(payload))
        elif self.format == OutputFormat.PLAIN:
            for line in plain_lines(payload):
                self._write(line)
        else:
            self._console.print_json(_dumps(payload))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write an inspection table; JSON mode writes one object per row."""
        if self.format == OutputFormat.JSON:
            self._write(_dumps([dict(zip(headers, row)) for row in rows]))
        elif self.format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self._write("\t".join(row))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._console.print(table)

    # -- diagnostics --------------------------------------------------------

    def info(self, message: str) -> None:
        if not self.quiet:
            self._notice(message)

    def success(self, message: str) -> None:
        if not self.quiet:
            self._notice(message, style="green")

    def warning(self, message: str) -> None:
        self._notice(message, label="Warning: ", style="yellow")

    def error(self, message: str) -> None:
        self._notice(message, label="Error: ", style="bold red")

    def _notice(self, message: str, label: str = "", style: Optional[str] = None) -> None:
        if self.no_color:
            print(f"{label}{message}", file=sys.stderr, flush=True)
            return
        # Text, not markup: messages quote templates such as "[<method>]".
        if label:
            text = Text.assemble((label, style or ""), message)
        else:
            text = Text(message, style=style or "")
        self._err_console.print(text)

    @staticmethod
    def _write(line: str) -> None:
        print(line, file=sys.stdout, flush=True)


def plain_lines(payload: Any) -> Iterator[str]:
    """Render a JSON-ready payload as tab-separated lines.

    A list of records becomes a header row of every key seen (first-seen
    order) followed by one row per record; a mapping becomes
    ``key<TAB>value`` lines; anything else is one value per line.
    """
    if isinstance(payload, list) and payload and all(isinstance(i, dict) for i in payload):
        columns: list[str] = []
        for record in payload:
            columns.extend(k for k in record if k not in columns)
        yield "\t".join(columns)
        for record in payload:
            yield "\t".join(_cell(record.get(column)) for column in columns)
    elif isinstance(payload, dict):
        for key, value in payload.items():
            yield f"{key}\t{_cell(value)}"
    elif isinstance(payload, list):
        for item in payload:
            yield _cell(item)
    else:
        yield _cell(payload)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


# -- process-wide instance, installed by the root callback -------------------

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None
