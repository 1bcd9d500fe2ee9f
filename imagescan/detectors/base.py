"""Detector contract and the OSV-backed base detector."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from imagescan.models import DetectedVulnerability, Package
from imagescan.osv import ClientFactory, OSVClient, to_detected

logger = logging.getLogger(__name__)


class Detector(ABC):
    """Matches the installed packages of one OS family against known vulnerabilities."""

    @abstractmethod
    def detect(self, os_version: str, packages: Sequence[Package]) -> list[DetectedVulnerability]:
        """Return the findings for ``packages`` installed on ``os_version``."""


class OSVDetector(Detector):
    """Detector backed by an OSV.dev distribution ecosystem.

    Subclasses pick the ecosystem for an OS version and the name/version
    each package is queried under. Version matching happens server side.
    """

    def __init__(self, client_factory: ClientFactory | None = None):
        self._client_factory = client_factory or OSVClient

    @abstractmethod
    def ecosystem(self, os_version: str) -> str:
        ...

    def query_name(self, pkg: Package) -> str:
        return pkg.src_name or pkg.name

    def query_version(self, pkg: Package) -> str:
        return pkg.src_version or pkg.full_version

    def detect(self, os_version: str, packages: Sequence[Package]) -> list[DetectedVulnerability]:
        ecosystem = self.ecosystem(os_version)
        queries = [(self.query_name(pkg), self.query_version(pkg)) for pkg in packages]

        with self._client_factory() as client:
            records = client.lookup(ecosystem, queries)

        vulns: list[DetectedVulnerability] = []
        for pkg, (query_name, _), matched in zip(packages, queries, records):
            for record in matched:
                vulns.append(to_detected(
                    record,
                    pkg_name=pkg.name,
                    installed_version=pkg.full_version,
                    query_name=query_name,
                    ecosystem=ecosystem,
                ))
        logger.debug("%s: %d vulnerabilities in %d packages", ecosystem, len(vulns), len(packages))
        return vulns


def major_minor(os_version: str) -> tuple[str, str]:
    parts = os_version.split(".")
    return parts[0], parts[1] if len(parts) > 1 else "0"
