"""Scan entry points: extract a target, run the OS and library scans, merge results."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from typing import IO

from imagescan.analyzer.extractor import FileMap
from imagescan.analyzer.layer_analyzer import FilesystemAnalyzer, LayerAnalyzer
from imagescan.config import DockerSettings, get_docker_options
from imagescan.detectors.registry import DetectorRegistry, default_registry
from imagescan.errors import DuplicateTargetError, ExtractionError, LibraryScanError, ScanError, UsageError
from imagescan.models import DetectedVulnerability, Result, Results, ScanOptions, ScanReport
from imagescan.scanner.library import LibraryScanner
from imagescan.scanner.ospkg import OSPackageScanner, OSScanResult

logger = logging.getLogger(__name__)

STDIN_PATH = "-"


def os_target_name(target: str, family: str, version: str) -> str:
    return f"{target} ({family} {version})"


def aggregate(
    target: str,
    os_result: OSScanResult | None,
    library_results: Mapping[str, Sequence[DetectedVulnerability]] | None,
) -> Results:
    """Merge OS and library findings into the ordered result set.

    The OS target comes first (only when an OS was identified), then one
    target per manifest in discovery order. Findings are kept as returned.

    Raises:
        DuplicateTargetError: two targets would share a name.
    """
    results: Results = []
    seen: set[str] = set()

    def add(name: str, vulns: Sequence[DetectedVulnerability]) -> None:
        if name in seen:
            raise DuplicateTargetError(name)
        seen.add(name)
        results.append(Result(target=name, vulnerabilities=list(vulns)))

    if os_result is not None and os_result.family:
        add(os_target_name(target, os_result.family, os_result.version), os_result.vulnerabilities)

    for path, vulns in (library_results or {}).items():
        add(path, vulns)

    return results


def open_stream(path: str, stdin: IO | None = None) -> IO[bytes]:
    """Open ``path`` for reading; ``-`` is standard input.

    Raises:
        UsageError: ``-`` was given but standard input is an interactive terminal.
        ExtractionError: the file could not be opened.
    """
    if path == STDIN_PATH:
        stdin = stdin or sys.stdin
        if stdin.isatty():
            raise UsageError("standard input is a terminal; pipe an image archive or pass a file path")
        return getattr(stdin, "buffer", stdin)
    try:
        return open(path, "rb")
    except OSError as exc:
        raise ExtractionError(f"failed to open {path}", cause=exc) from exc


class ScanService:
    """High level service wiring the analyzer, the OS package scan and the library scan."""

    def __init__(
        self,
        *,
        analyzer: FilesystemAnalyzer | None = None,
        registry: DetectorRegistry | None = None,
        library_scanner: LibraryScanner | None = None,
        docker_options: Callable[[], DockerSettings] | None = None,
        stdin: IO | None = None,
    ) -> None:
        self.analyzer = analyzer or LayerAnalyzer()
        self.os_scanner = OSPackageScanner(self.analyzer, registry or default_registry())
        self.library_scanner = library_scanner or LibraryScanner()
        self._docker_options = docker_options or get_docker_options
        self._stdin = stdin

    def scan_image(self, image_ref: str = "", file_path: str = "", options: ScanOptions | None = None) -> ScanReport:
        """Scan a container image by reference, or an image archive at ``file_path``.

        Exactly one of ``image_ref`` and ``file_path`` must be given. Any
        failure fails the whole scan; no partial result set is returned.
        """
        options = options or ScanOptions()
        if bool(image_ref) == bool(file_path):
            raise UsageError("exactly one of image name or image file must be specified")

        target = image_ref or file_path
        files = self._extract(image_ref, file_path)
        logger.debug("Extracted %d files from %s", len(files), target)

        os_result: OSScanResult | None = None
        if options.scans("os"):
            os_result = self.os_scanner.scan(files)
        else:
            logger.info("Skipping OS package scan")

        library_results: dict[str, list[DetectedVulnerability]] = {}
        if options.scans("library"):
            try:
                library_results = self.library_scanner.scan(files, options)
            except ScanError:
                raise
            except Exception as exc:
                raise LibraryScanError("failed to scan libraries", cause=exc) from exc
        else:
            logger.info("Skipping library scan")

        results = aggregate(target, os_result, library_results)
        family = os_result.family if os_result else ""
        version = os_result.version if os_result else ""
        return ScanReport(os_family=family, os_version=version, results=results)

    def scan_file(self, stream: IO) -> Results:
        """Scan one dependency manifest; the target is named after the stream."""
        try:
            vulns = self.library_scanner.scan_file(stream)
        except ScanError:
            raise
        except Exception as exc:
            raise LibraryScanError("failed to scan libraries in file", cause=exc) from exc
        name = str(getattr(stream, "name", "")) or "<stream>"
        return [Result(target=name, vulnerabilities=vulns)]

    def _extract(self, image_ref: str, file_path: str) -> FileMap:
        if image_ref:
            return self._guard(lambda: self.analyzer.extract_image(image_ref, self._docker_options()))

        stream = open_stream(file_path, self._stdin)
        try:
            return self._guard(lambda: self.analyzer.extract_file(stream))
        finally:
            if file_path != STDIN_PATH:
                stream.close()

    @staticmethod
    def _guard(extract: Callable[[], FileMap]) -> FileMap:
        try:
            return extract()
        except ScanError:
            raise
        except Exception as exc:
            raise ExtractionError("failed to analyze image", cause=exc) from exc
