"""Canonical severity levels, display order and terminal styles."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from types import MappingProxyType
from typing import Any

from cvss import CVSS2, CVSS3, CVSS4
from cvss.exceptions import CVSSError
from rich.text import Text

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


# Display order for summary lines and count tables.
SEVERITY_NAMES: tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.UNKNOWN,
)

SEVERITY_STYLES = MappingProxyType({
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.UNKNOWN: "blue",
})

_KNOWN = MappingProxyType({s.value: s for s in SEVERITY_NAMES if s is not Severity.UNKNOWN})


def classify(raw: str | None) -> Severity:
    """Map a raw severity label to a canonical level.

    Anything outside CRITICAL/HIGH/MEDIUM/LOW, including an empty label,
    is UNKNOWN.
    """
    if not raw:
        return Severity.UNKNOWN
    return _KNOWN.get(raw, Severity.UNKNOWN)


def count_by_severity(severities: Iterable[str | None]) -> dict[Severity, int]:
    """Count raw severity labels per canonical level, in display order."""
    counts = {severity: 0 for severity in SEVERITY_NAMES}
    for raw in severities:
        counts[classify(raw)] += 1
    return counts


def colorize(raw: str) -> Text:
    """Return the label styled for its canonical level."""
    return Text(raw, style=SEVERITY_STYLES[classify(raw)])


# OSV severity types scored from a CVSS vector.
_CVSS_TYPES = MappingProxyType({"CVSS_V2": CVSS2, "CVSS_V3": CVSS3, "CVSS_V4": CVSS4})

# Distro ratings that do not spell a canonical level.
_LABEL_ALIASES = MappingProxyType({"MODERATE": "MEDIUM", "NEGLIGIBLE": "LOW", "IMPORTANT": "HIGH"})


def _from_score(score: float) -> str:
    if score >= 9.0:
        return Severity.CRITICAL.value
    if score >= 7.0:
        return Severity.HIGH.value
    if score >= 4.0:
        return Severity.MEDIUM.value
    if score > 0.0:
        return Severity.LOW.value
    return Severity.UNKNOWN.value


def _from_label(label: Any) -> str:
    label = str(label or "").strip().upper()
    return classify(_LABEL_ALIASES.get(label, label)).value


def cvss_base_score(severity_type: str, score: str) -> float | None:
    """Base score of an OSV ``severity`` entry, or None when it cannot be scored.

    ``score`` is normally a CVSS vector; a bare number is accepted as-is.
    """
    try:
        return float(score)
    except (TypeError, ValueError):
        pass
    cvss_class = _CVSS_TYPES.get(severity_type)
    if cvss_class is None or not score:
        return None
    try:
        return float(cvss_class(score).base_score)
    except CVSSError as exc:
        logger.debug("Unparseable %s vector %r: %s", severity_type, score, exc)
        return None


def severity_from_osv(record: dict[str, Any]) -> str:
    """Extract a canonical severity label from an OSV vulnerability record.

    CVSS vectors win over distro labels; the highest-versioned vector is
    scored first. Ubuntu entries carry a plain rating such as ``high``.
    """
    entries = record.get("severity", []) or []
    by_type = sorted(entries, key=lambda e: str(e.get("type", "")), reverse=True)
    for entry in by_type:
        base = cvss_base_score(str(entry.get("type", "")), entry.get("score", ""))
        if base is not None:
            label = _from_score(base)
            if label != Severity.UNKNOWN.value:
                return label

    for entry in entries:
        if entry.get("type") == "Ubuntu":
            label = _from_label(entry.get("score"))
            if label != Severity.UNKNOWN.value:
                return label

    # Distro feeds put their own rating under database_specific
    db_specific = record.get("database_specific") or {}
    return _from_label(db_specific.get("severity"))
