"""Filesystem analyzer contract and the default layer-based implementation."""

from __future__ import annotations

from typing import IO, Protocol

from imagescan.analyzer import lockfiles, os_release, packages
from imagescan.analyzer.extractor import FileMap, extract_archive, save_image
from imagescan.config import DockerSettings
from imagescan.models import OS, Package


class FilesystemAnalyzer(Protocol):
    """Capability the scan orchestrators consume to read an extracted filesystem."""

    def identify_os(self, files: FileMap) -> OS: ...

    def list_packages(self, files: FileMap) -> list[Package]: ...

    def extract_image(self, image_ref: str, docker: DockerSettings) -> FileMap: ...

    def extract_file(self, stream: IO[bytes]) -> FileMap: ...


def is_required(path: str) -> bool:
    """Whether any analyzer needs ``path`` kept during extraction."""
    return (
        path in os_release.REQUIRED_FILES
        or packages.is_required(path)
        or lockfiles.is_required(path)
    )


class LayerAnalyzer:
    """Default analyzer backed by `docker save` archives and on-disk release/package files."""

    def identify_os(self, files: FileMap) -> OS:
        return os_release.identify_os(files)

    def list_packages(self, files: FileMap) -> list[Package]:
        return packages.list_packages(files)

    def extract_image(self, image_ref: str, docker: DockerSettings) -> FileMap:
        with save_image(image_ref, docker) as archive:
            return extract_archive(archive, is_required)

    def extract_file(self, stream: IO[bytes]) -> FileMap:
        return extract_archive(stream, is_required)


