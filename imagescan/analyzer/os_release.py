"""Operating system identification from release files."""

from __future__ import annotations

import re

from imagescan.analyzer.extractor import FileMap
from imagescan.errors import OSDetectionError
from imagescan.models import OS, OSFamily

REQUIRED_FILES = (
    "etc/alpine-release",
    "etc/os-release",
    "usr/lib/os-release",
    "etc/lsb-release",
    "etc/debian_version",
    "etc/redhat-release",
    "etc/centos-release",
)

_OS_RELEASE_IDS = {
    "alpine": OSFamily.ALPINE,
    "debian": OSFamily.DEBIAN,
    "ubuntu": OSFamily.UBUNTU,
    "rhel": OSFamily.REDHAT,
    "redhat": OSFamily.REDHAT,
    "centos": OSFamily.CENTOS,
}

_RELEASE_LINE = re.compile(r"^(?P<name>.+?) release (?P<version>[\d.]+)")


def parse_key_values(content: str) -> dict[str, str]:
    """Parse an os-release style ``KEY=value`` file."""
    values: dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip("\"'")
    return values


def _decode(files: FileMap, path: str) -> str | None:
    data = files.get(path)
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def _from_alpine_release(files: FileMap) -> OS | None:
    content = _decode(files, "etc/alpine-release")
    if content is None:
        return None
    return OS(family=OSFamily.ALPINE.value, name=content.strip())


def _from_os_release(files: FileMap) -> OS | None:
    for path in ("etc/os-release", "usr/lib/os-release"):
        content = _decode(files, path)
        if content is None:
            continue
        values = parse_key_values(content)
        os_id = values.get("ID", "").lower()
        version = values.get("VERSION_ID", "")
        if not os_id or not version:
            continue
        # Unlisted IDs pass through so the detector registry can reject them
        family = _OS_RELEASE_IDS.get(os_id)
        return OS(family=family.value if family else os_id, name=version)
    return None


def _from_redhat_release(files: FileMap) -> OS | None:
    for path in ("etc/centos-release", "etc/redhat-release"):
        content = _decode(files, path)
        if content is None:
            continue
        match = _RELEASE_LINE.match(content.strip())
        if not match:
            continue
        name = match.group("name").lower()
        if name.startswith("centos"):
            family = OSFamily.CENTOS
        elif name.startswith("red hat"):
            family = OSFamily.REDHAT
        else:
            continue
        return OS(family=family.value, name=match.group("version"))
    return None


def _from_debian_version(files: FileMap) -> OS | None:
    content = _decode(files, "etc/debian_version")
    if content is None:
        return None
    version = content.strip()
    # Ubuntu ships a codename-style debian_version ("bullseye/sid"); leave it to lsb-release
    if not version or not version[0].isdigit():
        lsb = _decode(files, "etc/lsb-release")
        if lsb is not None:
            values = parse_key_values(lsb)
            if values.get("DISTRIB_ID", "").lower() == "ubuntu" and values.get("DISTRIB_RELEASE"):
                return OS(family=OSFamily.UBUNTU.value, name=values["DISTRIB_RELEASE"])
        return None
    return OS(family=OSFamily.DEBIAN.value, name=version)


def identify_os(files: FileMap) -> OS:
    """Identify the OS family and version.

    Raises:
        OSDetectionError: when no release file is recognized.
    """
    for probe in (_from_alpine_release, _from_redhat_release, _from_os_release, _from_debian_version):
        found = probe(files)
        if found is not None:
            return found
    raise OSDetectionError("unknown OS")
