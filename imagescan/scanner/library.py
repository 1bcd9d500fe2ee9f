"""Application dependency scanning across discovered manifests."""

from __future__ import annotations

import logging
import posixpath
from typing import IO

import httpx

from imagescan.analyzer.extractor import FileMap
from imagescan.analyzer.lockfiles import ManifestType, manifest_type
from imagescan.errors import LibraryScanError
from imagescan.models import DetectedVulnerability, ScanOptions
from imagescan.osv import ClientFactory, OSVClient, to_detected

logger = logging.getLogger(__name__)


class LibraryScanner:
    """Parses dependency manifests and looks their libraries up in OSV.dev."""

    def __init__(self, client_factory: ClientFactory | None = None):
        self._client_factory = client_factory or OSVClient

    def scan(self, files: FileMap, options: ScanOptions | None = None) -> dict[str, list[DetectedVulnerability]]:
        """Scan every manifest in ``files``, keyed by path in discovery order."""
        options = options or ScanOptions()
        manifests = [
            (path, mtype)
            for path in files
            if (mtype := manifest_type(path)) is not None and not options.skips(path)
        ]
        logger.debug("the number of dependency manifests: %d", len(manifests))
        if not manifests:
            return {}

        results: dict[str, list[DetectedVulnerability]] = {}
        with self._client_factory() as client:
            for path, mtype in manifests:
                results[path] = self._scan_manifest(client, path, mtype, files[path])
        return results

    def scan_file(self, stream: IO) -> list[DetectedVulnerability]:
        """Scan a single opened manifest; its type comes from the file name."""
        name = posixpath.basename(str(getattr(stream, "name", "")))
        mtype = manifest_type(name)
        if mtype is None:
            raise LibraryScanError(f"unsupported dependency manifest: {name or '<stream>'}")

        with self._client_factory() as client:
            return self._scan_manifest(client, name, mtype, stream.read())

    def _scan_manifest(
        self,
        client: OSVClient,
        path: str,
        mtype: ManifestType,
        content: bytes | str,
    ) -> list[DetectedVulnerability]:
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
        try:
            libs = mtype.parse(text)
        except Exception as exc:
            raise LibraryScanError(f"failed to parse {path}", cause=exc) from exc
        logger.debug("%s: %d libraries", path, len(libs))

        queries = [(lib.name, lib.version) for lib in libs]
        try:
            records = client.lookup(mtype.ecosystem, queries)
        except httpx.HTTPError as exc:
            raise LibraryScanError(f"failed to look up libraries in {path}", cause=exc) from exc

        vulns: list[DetectedVulnerability] = []
        for lib, matched in zip(libs, records):
            for record in matched:
                vulns.append(to_detected(
                    record,
                    pkg_name=lib.name,
                    installed_version=lib.version,
                    ecosystem=mtype.ecosystem,
                ))
        return vulns
