"""OS package scanning: identify the OS, pick its detector, run it."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from imagescan.analyzer.extractor import FileMap
from imagescan.analyzer.layer_analyzer import FilesystemAnalyzer
from imagescan.detectors.registry import DetectorRegistry
from imagescan.errors import DetectionError, OSDetectionError, PackageEnumerationError
from imagescan.models import DetectedVulnerability

logger = logging.getLogger(__name__)


class OSScanResult(BaseModel):
    """OS identity and findings. An empty family means the OS scan did not apply."""
    family: str = ""
    version: str = ""
    vulnerabilities: list[DetectedVulnerability] = []


class OSPackageScanner:
    def __init__(self, analyzer: FilesystemAnalyzer, registry: DetectorRegistry):
        self.analyzer = analyzer
        self.registry = registry

    def scan(self, files: FileMap) -> OSScanResult:
        """Scan the installed OS packages in ``files``.

        A filesystem without a recognizable OS yields an empty result.

        Raises:
            UnsupportedOSError: the OS family has no registered detector.
            PackageEnumerationError: the package database could not be read.
            DetectionError: the detector failed.
        """
        try:
            os_info = self.analyzer.identify_os(files)
        except OSDetectionError as exc:
            logger.info("No OS detected, skipping OS package scan: %s", exc)
            return OSScanResult()
        logger.debug("OS family: %s, OS version: %s", os_info.family, os_info.name)

        detector = self.registry.get(os_info.family)

        try:
            pkgs = self.analyzer.list_packages(files)
        except PackageEnumerationError:
            raise
        except Exception as exc:
            raise PackageEnumerationError("failed to analyze OS packages", cause=exc) from exc
        logger.debug("the number of packages: %d", len(pkgs))

        try:
            vulns = detector.detect(os_info.name, pkgs)
        except Exception as exc:
            raise DetectionError("failed to detect vulnerabilities", cause=exc) from exc

        return OSScanResult(family=os_info.family, version=os_info.name, vulnerabilities=vulns)
