"""Structured report: JSON summary over all targets plus the full detail."""

from __future__ import annotations

import sys
from typing import IO

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from imagescan.errors import ReportWriteError, SerializationError
from imagescan.models import ReportSummary, Results, StructuredReport
from imagescan.report.base import Writer
from imagescan.severity import Severity, count_by_severity


def build_summary(os_family: str, os_version: str, results: Results) -> ReportSummary:
    """Count findings per severity across every target."""
    counts = count_by_severity(v.severity for result in results for v in result.vulnerabilities)
    return ReportSummary(
        os_family=os_family,
        os_version=os_version,
        critical=counts[Severity.CRITICAL],
        high=counts[Severity.HIGH],
        medium=counts[Severity.MEDIUM],
        low=counts[Severity.LOW],
        unknown=counts[Severity.UNKNOWN],
    )


def report_to_json(os_family: str, os_version: str, results: Results) -> str:
    """Serialize the structured report to JSON."""
    try:
        report = StructuredReport(summary=build_summary(os_family, os_version, results), detail=results)
        return report.model_dump_json(indent=2, by_alias=True)
    except (PydanticSerializationError, ValidationError, ValueError, TypeError) as exc:
        raise SerializationError("failed to marshal json", cause=exc) from exc


def load_report(content: str | bytes) -> StructuredReport:
    """Parse a report produced by :class:`JsonWriter`."""
    return StructuredReport.model_validate_json(content)


class JsonWriter(Writer):
    def __init__(self, output: IO[str] | None = None):
        self.output = output if output is not None else sys.stdout

    def write(self, os_family: str, os_version: str, results: Results) -> None:
        payload = report_to_json(os_family, os_version, results)
        try:
            self.output.write(payload + "\n")
            self.output.flush()
        except OSError as exc:
            raise ReportWriteError("failed to write json", cause=exc) from exc
