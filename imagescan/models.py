"""Shared Pydantic models for imagescan."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from imagescan.config import settings


class OSFamily(str, Enum):
    ALPINE = "alpine"
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    REDHAT = "redhat"
    CENTOS = "centos"


class OS(BaseModel):
    """Operating system identity found in a filesystem."""
    family: str
    name: str


class Package(BaseModel):
    """An installed OS package."""
    name: str
    version: str
    release: str = ""
    epoch: int = 0
    src_name: str = ""
    src_version: str = ""

    @property
    def full_version(self) -> str:
        version = self.version
        if self.release:
            version = f"{version}-{self.release}"
        if self.epoch:
            version = f"{self.epoch}:{version}"
        return version


class Library(BaseModel):
    """A dependency pinned in a library manifest."""
    name: str
    version: str


class DetectedVulnerability(BaseModel):
    """One vulnerability matched against one installed package or library."""

    model_config = ConfigDict(populate_by_name=True)

    vulnerability_id: str = Field(alias="VulnerabilityID")
    pkg_name: str = Field(alias="PkgName")
    installed_version: str = Field(alias="InstalledVersion")
    fixed_version: str = Field(default="", alias="FixedVersion")
    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")
    # Raw label as reported by the source; see imagescan.severity.classify
    severity: str = Field(default="UNKNOWN", alias="Severity")
    references: list[str] = Field(default_factory=list, alias="References")


class Result(BaseModel):
    """Findings for one scan target."""

    model_config = ConfigDict(populate_by_name=True)

    target: str = Field(alias="Target")
    vulnerabilities: list[DetectedVulnerability] = Field(default_factory=list, alias="Vulnerabilities")


Results = list[Result]


class ScanOptions(BaseModel):
    """Per-run scan options."""
    vuln_type: list[str] = Field(default_factory=lambda: list(settings.vuln_type))
    # Directories whose dependency manifests are ignored
    skip_dirs: list[str] = []

    def scans(self, kind: str) -> bool:
        return kind in self.vuln_type

    def skips(self, path: str) -> bool:
        path = path.lstrip("/")
        return any(path.startswith(d.strip("/") + "/") for d in self.skip_dirs if d.strip("/"))


class ScanReport(BaseModel):
    """Outcome of a scan run: OS identity plus the ordered result set."""
    os_family: str = ""
    os_version: str = ""
    results: list[Result] = []


class ReportSummary(BaseModel):
    """Severity counts over every target in a report."""

    model_config = ConfigDict(populate_by_name=True)

    os_family: str = Field(alias="osFamily")
    os_version: str = Field(alias="osVersion")
    critical: int = Field(default=0, alias="CRITICAL")
    high: int = Field(default=0, alias="HIGH")
    medium: int = Field(default=0, alias="MEDIUM")
    low: int = Field(default=0, alias="LOW")
    unknown: int = Field(default=0, alias="UNKNOWN")

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.unknown


class StructuredReport(BaseModel):
    """Document emitted by the JSON writer."""
    summary: ReportSummary
    detail: list[Result]
