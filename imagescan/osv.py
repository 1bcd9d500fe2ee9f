"""OSV.dev advisory client used by the OS detectors and the library scanner."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from imagescan.config import settings
from imagescan.models import DetectedVulnerability
from imagescan.severity import severity_from_osv

logger = logging.getLogger(__name__)


def extract_fixed_version(record: dict[str, Any], pkg_name: str, ecosystem: str = "") -> str:
    """Extract the fixed version for ``pkg_name`` from an OSV record."""
    for affected in record.get("affected", []) or []:
        pkg = affected.get("package", {}) or {}
        if pkg.get("name", "").lower() != pkg_name.lower():
            continue
        if ecosystem and not str(pkg.get("ecosystem", "")).startswith(ecosystem.split(":")[0]):
            continue
        for rng in affected.get("ranges", []) or []:
            for event in rng.get("events", []) or []:
                if "fixed" in event:
                    return event["fixed"]
    return ""


def to_detected(
    record: dict[str, Any],
    *,
    pkg_name: str,
    installed_version: str,
    query_name: str = "",
    ecosystem: str = "",
) -> DetectedVulnerability:
    """Build a finding from an OSV record matched against one package."""
    references = [ref.get("url", "") for ref in record.get("references", []) or [] if ref.get("url")]
    return DetectedVulnerability(
        vulnerability_id=record.get("id", ""),
        pkg_name=pkg_name,
        installed_version=installed_version,
        fixed_version=extract_fixed_version(record, query_name or pkg_name, ecosystem),
        title=record.get("summary", ""),
        description=record.get("details", ""),
        severity=severity_from_osv(record),
        references=references,
    )


class OSVClient:
    """Context manager wrapping httpx.Client for the OSV.dev API."""

    def __init__(self, api_url: str = "", timeout: float = 0.0, batch_size: int = 0):
        self.api_url = (api_url or settings.osv_api_url).rstrip("/")
        self.timeout = timeout or settings.osv_timeout_seconds
        self.batch_size = batch_size or settings.osv_batch_size
        self._client: httpx.Client | None = None
        self._records: dict[str, dict[str, Any]] = {}

    def __enter__(self) -> OSVClient:
        self._client = httpx.Client(base_url=self.api_url, timeout=self.timeout)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            raise RuntimeError("OSVClient must be used as context manager")
        return self._client

    def query_batch(self, ecosystem: str, queries: Sequence[tuple[str, str]]) -> list[list[str]]:
        """Return the advisory IDs affecting each ``(name, version)`` query.

        The returned list is parallel to ``queries``. Queries whose result
        carries a ``next_page_token`` are re-sent until every page is read.
        """
        ids: list[list[str]] = []
        for start in range(0, len(queries), self.batch_size):
            chunk = queries[start:start + self.batch_size]
            chunk_ids: list[list[str]] = [[] for _ in chunk]
            pending = {i: "" for i in range(len(chunk))}
            while pending:
                indexes = list(pending)
                results = self._post_batch(ecosystem, [(*chunk[i], pending[i]) for i in indexes])
                pending = {}
                for pos, i in enumerate(indexes):
                    result = results[pos] if pos < len(results) else {}
                    chunk_ids[i].extend(v.get("id", "") for v in result.get("vulns", []) or [] if v.get("id"))
                    if result.get("next_page_token"):
                        pending[i] = result["next_page_token"]
                if pending:
                    logger.debug("Fetching another OSV page for %d %s packages", len(pending), ecosystem)
            ids.extend(chunk_ids)
        return ids

    def _post_batch(self, ecosystem: str, queries: Sequence[tuple[str, str, str]]) -> list[dict[str, Any]]:
        batch = []
        for name, version, page_token in queries:
            query: dict[str, Any] = {"package": {"name": name, "ecosystem": ecosystem}, "version": version}
            if page_token:
                query["page_token"] = page_token
            batch.append(query)
        resp = self.client.post("/querybatch", json={"queries": batch})
        resp.raise_for_status()
        return resp.json().get("results", []) or []

    def get_vuln(self, vuln_id: str) -> dict[str, Any]:
        """Fetch the full advisory record; falls back to a stub on HTTP failure."""
        if vuln_id in self._records:
            return self._records[vuln_id]
        try:
            resp = self.client.get(f"/vulns/{vuln_id}")
            resp.raise_for_status()
            record = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch advisory %s: %s", vuln_id, exc)
            record = {"id": vuln_id}
        self._records[vuln_id] = record
        return record

    def lookup(self, ecosystem: str, queries: Sequence[tuple[str, str]]) -> list[list[dict[str, Any]]]:
        """Return full advisory records affecting each query, parallel to ``queries``."""
        if not queries:
            return []
        logger.debug("Querying OSV ecosystem %s for %d packages", ecosystem, len(queries))
        return [
            [self.get_vuln(vuln_id) for vuln_id in vuln_ids]
            for vuln_ids in self.query_batch(ecosystem, queries)
        ]


ClientFactory = Callable[[], OSVClient]
