"""Tests for the imagescan command line."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from imagescan.cli import main
from imagescan.cli.main import app
from imagescan.errors import ExtractionError
from imagescan.models import Package
from imagescan.scanner.library import LibraryScanner
from imagescan.scanner.service import ScanService

FIXTURES = Path(__file__).parent / "fixtures"

runner = CliRunner()

DJANGO_RECORD = {
    "id": "GHSA-test-1234-abcd",
    "summary": "SQL Injection in Django",
    "severity": [{"type": "CVSS_V3", "score": "9.8"}],
}


class _TerminalStdin:
    def isatty(self):
        return True


@pytest.fixture
def install_service(monkeypatch, registry_for, osv_client_factory):
    """Make the CLI build its ScanService around the given analyzer and detector."""
    def install(analyzer, detector, stdin=None):
        client = osv_client_factory({"django": [DJANGO_RECORD]})
        monkeypatch.setattr(main, "ScanService", lambda: ScanService(
            analyzer=analyzer,
            registry=registry_for(detector),
            library_scanner=LibraryScanner(lambda: client),
            stdin=stdin,
        ))
    return install


@pytest.fixture
def vulnerable_image(install_service, analyzer_factory, alpine_os, detector_factory, vuln_factory):
    analyzer = analyzer_factory(
        files={"app/Pipfile.lock": (FIXTURES / "Pipfile.lock").read_bytes()},
        os_info=alpine_os,
        packages=[Package(name="libcrypto1.1", version="1.1.1c-r0", src_name="openssl")],
    )
    install_service(analyzer, detector_factory([vuln_factory()]))
    return analyzer


@pytest.fixture
def clean_image(install_service, analyzer_factory, alpine_os, fake_detector):
    analyzer = analyzer_factory(os_info=alpine_os)
    install_service(analyzer, fake_detector)
    return analyzer


class TestScanCommand:
    def test_json_report(self, vulnerable_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "--format", "json", "--quiet"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["summary"]["osFamily"] == "alpine"
        assert data["summary"]["CRITICAL"] == 1
        assert data["summary"]["HIGH"] == 1
        assert [d["Target"] for d in data["detail"]] == ["alpine:3.10 (alpine 3.10.2)", "app/Pipfile.lock"]

    def test_table_report(self, vulnerable_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "-q"])
        assert result.exit_code == 0, result.output
        assert "alpine:3.10 (alpine 3.10.2)" in result.stdout
        assert "Total: 1 (CRITICAL: 0, HIGH: 1, MEDIUM: 0, LOW: 0, UNKNOWN: 0)" in result.stdout

    def test_output_file(self, vulnerable_image, tmp_path):
        report = tmp_path / "report.json"
        result = runner.invoke(app, ["scan", "alpine:3.10", "-f", "json", "-o", str(report), "-q"])
        assert result.exit_code == 0, result.output
        assert json.loads(report.read_text())["summary"]["osVersion"] == "3.10.2"

    def test_exit_code_on_findings(self, vulnerable_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "--exit-code", "3", "-q"])
        assert result.exit_code == 3

    def test_exit_code_without_findings(self, clean_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "--exit-code", "3", "-q"])
        assert result.exit_code == 0, result.output

    def test_vuln_type_os(self, vulnerable_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "-f", "json", "--vuln-type", "os", "-q"])
        assert result.exit_code == 0, result.output
        assert [d["Target"] for d in json.loads(result.stdout)["detail"]] == ["alpine:3.10 (alpine 3.10.2)"]

    def test_skip_dir(self, vulnerable_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "-f", "json", "--skip-dir", "app", "-q"])
        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)["detail"]) == 1

    def test_image_archive(self, clean_image, tmp_path):
        archive = tmp_path / "alpine.tar"
        archive.write_bytes(b"tar-bytes")
        result = runner.invoke(app, ["scan", "--input", str(archive), "-f", "json", "-q"])
        assert result.exit_code == 0, result.output
        assert clean_image.extracted == [b"tar-bytes"]

    def test_no_image_is_usage_error(self, clean_image):
        result = runner.invoke(app, ["scan", "-q"])
        assert result.exit_code == main.EXIT_USAGE
        assert "exactly one of image name or image file" in result.output

    def test_stdin_terminal_is_usage_error(self, install_service, analyzer_factory, alpine_os, fake_detector):
        analyzer = analyzer_factory(os_info=alpine_os)
        install_service(analyzer, fake_detector, stdin=_TerminalStdin())
        result = runner.invoke(app, ["scan", "--input", "-", "-q"])
        assert result.exit_code == main.EXIT_USAGE
        assert "standard input is a terminal" in result.output
        assert analyzer.extracted == []

    def test_unknown_vuln_type(self, clean_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "--vuln-type", "os,kernel", "-q"])
        assert result.exit_code == main.EXIT_USAGE
        assert "kernel" in result.output

    def test_unknown_format(self, clean_image):
        result = runner.invoke(app, ["scan", "alpine:3.10", "-f", "xml", "-q"])
        assert result.exit_code == main.EXIT_USAGE

    def test_scan_failure(self, install_service, analyzer_factory, fake_detector):
        analyzer = analyzer_factory(extract_error=ExtractionError("docker client not found at 'docker'"))
        install_service(analyzer, fake_detector)
        result = runner.invoke(app, ["scan", "alpine:3.10", "-q"])
        assert result.exit_code == main.EXIT_FAILURE
        assert "docker client not found" in result.output


class TestScanFileCommand:
    def test_manifest(self, clean_image):
        path = FIXTURES / "Pipfile.lock"
        result = runner.invoke(app, ["scan-file", str(path), "-f", "json", "-q"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["summary"]["osFamily"] == ""
        assert data["detail"][0]["Target"] == str(path)
        assert data["detail"][0]["Vulnerabilities"][0]["PkgName"] == "django"

    def test_missing_file(self, clean_image, tmp_path):
        result = runner.invoke(app, ["scan-file", str(tmp_path / "Pipfile.lock"), "-q"])
        assert result.exit_code == main.EXIT_USAGE

    def test_unsupported_manifest(self, clean_image, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        result = runner.invoke(app, ["scan-file", str(path), "-q"])
        assert result.exit_code == main.EXIT_FAILURE
        assert "unsupported dependency manifest" in result.output
