"""Installed package enumeration for apk, dpkg and rpm databases."""

from __future__ import annotations

import logging
import re
import subprocess
import tempfile
from pathlib import Path

from imagescan.analyzer.extractor import FileMap
from imagescan.config import settings
from imagescan.errors import PackageEnumerationError
from imagescan.models import Package

logger = logging.getLogger(__name__)

APK_DB = "lib/apk/db/installed"
DPKG_STATUS = "var/lib/dpkg/status"
DPKG_STATUS_DIR = "var/lib/dpkg/status.d/"
RPM_DIR = "var/lib/rpm/"
RPM_DBS = ("var/lib/rpm/Packages", "var/lib/rpm/rpmdb.sqlite")

_DPKG_SOURCE = re.compile(r"^(?P<name>\S+)(?:\s+\((?P<version>[^)]+)\))?$")
_RPM_QUERY_FORMAT = r"%{NAME}\t%{EPOCHNUM}\t%{VERSION}\t%{RELEASE}\t%{SOURCERPM}\n"


def is_required(path: str) -> bool:
    return path in (APK_DB, DPKG_STATUS) or path.startswith(DPKG_STATUS_DIR) or path.startswith(RPM_DIR)


# --- apk ---

def parse_apk_installed(content: str) -> list[Package]:
    pkgs: list[Package] = []
    name = version = origin = ""
    for line in content.splitlines() + [""]:
        if not line.strip():
            if name and version:
                pkgs.append(Package(name=name, version=version, src_name=origin or name, src_version=version))
            name = version = origin = ""
            continue
        if line.startswith("P:"):
            name = line[2:].strip()
        elif line.startswith("V:"):
            version = line[2:].strip()
        elif line.startswith("o:"):
            origin = line[2:].strip()
    return pkgs


# --- dpkg ---

def split_debian_version(full: str) -> tuple[int, str, str]:
    """Split ``[epoch:]upstream[-revision]`` into its parts."""
    epoch = 0
    if ":" in full:
        raw_epoch, full = full.split(":", 1)
        try:
            epoch = int(raw_epoch)
        except ValueError as exc:
            raise PackageEnumerationError(f"invalid epoch in version {raw_epoch}:{full}") from exc
    version, _, release = full.rpartition("-")
    if not version:
        return epoch, release, ""
    return epoch, version, release


def parse_dpkg_status(content: str) -> list[Package]:
    pkgs: list[Package] = []
    for paragraph in re.split(r"\n\s*\n", content):
        fields: dict[str, str] = {}
        for line in paragraph.splitlines():
            if not line or line[0].isspace() or ":" not in line:
                continue
            key, value = line.split(":", 1)
            fields[key.strip()] = value.strip()

        name = fields.get("Package")
        full_version = fields.get("Version")
        if not name or not full_version:
            continue
        status = fields.get("Status")
        if status is not None and status != "install ok installed":
            continue

        epoch, version, release = split_debian_version(full_version)
        src_name, src_version = name, full_version
        source = _DPKG_SOURCE.match(fields.get("Source", ""))
        if source:
            src_name = source.group("name")
            src_version = source.group("version") or full_version

        pkgs.append(Package(
            name=name,
            version=version,
            release=release,
            epoch=epoch,
            src_name=src_name,
            src_version=src_version,
        ))
    return pkgs


# --- rpm ---

def parse_rpm_query(output: str) -> list[Package]:
    pkgs: list[Package] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) != 5:
            continue
        name, epoch, version, release, source_rpm = parts
        src_name = ""
        if source_rpm and source_rpm != "(none)":
            # foo-1.2-3.el7.src.rpm -> foo
            src_name = source_rpm.rsplit("-", 2)[0]
        pkgs.append(Package(
            name=name,
            version=version,
            release=release,
            epoch=int(epoch) if epoch.isdigit() else 0,
            src_name=src_name or name,
        ))
    return pkgs


def list_rpm_packages(files: FileMap) -> list[Package]:
    with tempfile.TemporaryDirectory() as tmpdir:
        dbpath = Path(tmpdir) / RPM_DIR
        dbpath.mkdir(parents=True)
        for path, data in files.items():
            if path.startswith(RPM_DIR) and "/" not in path[len(RPM_DIR):]:
                (dbpath / path[len(RPM_DIR):]).write_bytes(data)

        cmd = [settings.rpm_bin, "--dbpath", str(dbpath), "-qa", "--qf", _RPM_QUERY_FORMAT]
        try:
            completed = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as exc:
            raise PackageEnumerationError(f"rpm not found at '{settings.rpm_bin}'", cause=exc) from exc
        except subprocess.CalledProcessError as exc:
            raise PackageEnumerationError(
                f"rpm query exited with code {exc.returncode}: {(exc.stderr or '')[:500]}"
            ) from exc
    return parse_rpm_query(completed.stdout)


def list_packages(files: FileMap) -> list[Package]:
    """Enumerate installed packages from whichever database is present."""
    if APK_DB in files:
        return parse_apk_installed(files[APK_DB].decode("utf-8", errors="replace"))

    dpkg_paths = [p for p in files if p == DPKG_STATUS or p.startswith(DPKG_STATUS_DIR)]
    if dpkg_paths:
        pkgs: list[Package] = []
        for path in dpkg_paths:
            pkgs.extend(parse_dpkg_status(files[path].decode("utf-8", errors="replace")))
        return pkgs

    if any(db in files for db in RPM_DBS):
        return list_rpm_packages(files)

    logger.debug("No package database found")
    return []
