"""Writer selection by output format."""

from __future__ import annotations

from typing import IO

from imagescan.errors import UsageError
from imagescan.report.base import Writer
from imagescan.report.json_writer import JsonWriter
from imagescan.report.table import TableWriter

FORMATS = ("table", "json")


def new_writer(output_format: str, output: IO[str] | None = None) -> Writer:
    """Return the writer for ``output_format``."""
    if output_format == "table":
        return TableWriter(output)
    if output_format == "json":
        return JsonWriter(output)
    raise UsageError(f"unknown format {output_format!r}; expected one of {', '.join(FORMATS)}")
