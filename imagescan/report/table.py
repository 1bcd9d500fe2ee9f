"""Tabular report: one Rich table per scan target with a severity total line."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import IO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from imagescan.config import settings
from imagescan.errors import ReportWriteError
from imagescan.models import Result, Results
from imagescan.report.base import Writer
from imagescan.severity import SEVERITY_NAMES, colorize, count_by_severity

COLUMNS = ("Library", "Vulnerability ID", "Severity", "Installed Version", "Fixed Version", "Title")
SEVERITY_COLUMN = COLUMNS.index("Severity")
TRUNCATION_MARKER = "..."


def truncate_title(title: str, description: str = "", limit: int = 0) -> str:
    """Shorten a title to ``limit`` words, falling back to the description when empty."""
    limit = limit or settings.title_word_limit
    text = title or description
    words = text.split()
    if len(words) > limit:
        return " ".join(words[:limit]) + TRUNCATION_MARKER
    return text


def merge_cells(rows: Sequence[Sequence[str]]) -> list[list[str]]:
    """Blank cells that repeat the value directly above them in the same column."""
    merged: list[list[str]] = []
    previous: Sequence[str] | None = None
    for row in rows:
        merged.append([
            "" if previous is not None and value and value == previous[i] else value
            for i, value in enumerate(row)
        ])
        previous = row
    return merged


def format_total(result: Result) -> str:
    counts = count_by_severity(v.severity for v in result.vulnerabilities)
    parts = ", ".join(f"{severity.value}: {counts[severity]}" for severity in SEVERITY_NAMES)
    return f"Total: {len(result.vulnerabilities)} ({parts})"


def _is_interactive(stream: IO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class TableWriter(Writer):
    """Writes human readable tables.

    Severity is colored only when writing to the process's interactive
    standard output; any other sink gets plain text.
    """

    def __init__(self, output: IO[str] | None = None, *, width: int = 0):
        self.output = output if output is not None else sys.stdout
        self.supports_color = self.output is sys.stdout and _is_interactive(sys.stdout)
        if self.supports_color:
            self.console = Console(file=self.output, force_terminal=True, highlight=False)
        else:
            self.console = Console(
                file=self.output,
                color_system=None,
                force_terminal=False,
                highlight=False,
                width=width or settings.table_width,
            )

    def write(self, os_family: str, os_version: str, results: Results) -> None:
        try:
            for result in results:
                self._write_result(result)
        except OSError as exc:
            raise ReportWriteError("failed to write table", cause=exc) from exc

    def _write_result(self, result: Result) -> None:
        header = f"\n{result.target}\n{'=' * len(result.target)}\n{format_total(result)}\n"
        self.console.print(header, markup=False, highlight=False, emoji=False, soft_wrap=True)

        if not result.vulnerabilities:
            return

        rows = [
            [
                v.pkg_name,
                v.vulnerability_id,
                v.severity,
                v.installed_version,
                v.fixed_version,
                truncate_title(v.title, v.description),
            ]
            for v in result.vulnerabilities
        ]

        table = Table(show_lines=True)
        for column in COLUMNS:
            table.add_column(column, overflow="fold")

        for row in merge_cells(rows):
            cells = [Text(value) for value in row]
            if self.supports_color and row[SEVERITY_COLUMN]:
                cells[SEVERITY_COLUMN] = colorize(row[SEVERITY_COLUMN])
            table.add_row(*cells)

        self.console.print(table)
