"""Shared test configuration and fixtures."""

import io
import json
import tarfile
from pathlib import Path

import pytest

from imagescan.detectors.base import Detector
from imagescan.detectors.registry import DetectorRegistry
from imagescan.errors import OSDetectionError
from imagescan.models import DetectedVulnerability, OS

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def build_tar(files):
    """Build an uncompressed tar archive from ``{path: bytes}``."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def build_image_archive(layers):
    """Build a `docker save` style archive with one tarball per layer, bottom first."""
    entries = {}
    layer_names = []
    for i, layer in enumerate(layers):
        name = f"{i:04d}/layer.tar"
        entries[name] = build_tar(layer)
        layer_names.append(name)
    entries["manifest.json"] = json.dumps(
        [{"Config": "config.json", "RepoTags": ["test:latest"], "Layers": layer_names}]
    ).encode()
    return build_tar(entries)


class FakeOSVClient:
    """Answers lookups from a ``{query name: [records]}`` map and records every call."""

    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None

    def lookup(self, ecosystem, queries):
        self.calls.append((ecosystem, list(queries)))
        if self.error is not None:
            raise self.error
        return [list(self.records.get(name, [])) for name, _ in queries]


class FakeAnalyzer:
    """In-memory FilesystemAnalyzer."""

    def __init__(self, files=None, os_info=None, packages=None, packages_error=None, extract_error=None):
        self.files = files or {}
        self.os_info = os_info
        self.packages = packages or []
        self.packages_error = packages_error
        self.extract_error = extract_error
        self.extracted = []

    def identify_os(self, files):
        if self.os_info is None:
            raise OSDetectionError("unknown OS")
        return self.os_info

    def list_packages(self, files):
        if self.packages_error is not None:
            raise self.packages_error
        return list(self.packages)

    def extract_image(self, image_ref, docker):
        if self.extract_error is not None:
            raise self.extract_error
        self.extracted.append(image_ref)
        return dict(self.files)

    def extract_file(self, stream):
        if self.extract_error is not None:
            raise self.extract_error
        self.extracted.append(stream.read())
        return dict(self.files)


class FakeDetector(Detector):
    def __init__(self, vulns=None, error=None):
        self.vulns = vulns or []
        self.error = error
        self.calls = []

    def detect(self, os_version, packages):
        self.calls.append((os_version, list(packages)))
        if self.error is not None:
            raise self.error
        return list(self.vulns)


def make_vuln(vuln_id="CVE-2019-1549", pkg_name="openssl", severity="HIGH", installed="1.1.1c-r0", fixed="1.1.1d-r0",
              title="openssl: information disclosure in fork()", description=""):
    return DetectedVulnerability(
        vulnerability_id=vuln_id,
        pkg_name=pkg_name,
        installed_version=installed,
        fixed_version=fixed,
        title=title,
        description=description,
        severity=severity,
    )


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def tar_builder():
    return build_tar


@pytest.fixture
def image_archive_builder():
    return build_image_archive


@pytest.fixture
def vuln_factory():
    return make_vuln


@pytest.fixture
def alpine_os():
    return OS(family="alpine", name="3.10.2")


@pytest.fixture
def fake_detector():
    return FakeDetector()


@pytest.fixture
def registry_for():
    """Build a registry that serves ``detector`` for the given families."""
    def build(detector, *families):
        registry = DetectorRegistry()
        for family in families or ("alpine",):
            registry.register(family, lambda: detector)
        return registry
    return build


@pytest.fixture
def analyzer_factory():
    return FakeAnalyzer


@pytest.fixture
def detector_factory():
    return FakeDetector


@pytest.fixture
def osv_client_factory():
    return FakeOSVClient
