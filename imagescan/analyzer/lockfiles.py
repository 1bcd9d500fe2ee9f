"""Dependency manifest parsers: Pipfile.lock, poetry.lock, package-lock.json, etc."""

from __future__ import annotations

import json
import posixpath
import re
import tomllib
from collections.abc import Callable
from dataclasses import dataclass

from imagescan.models import Library

Parser = Callable[[str], list[Library]]


@dataclass(frozen=True)
class ManifestType:
    """A dependency manifest format and the OSV ecosystem its libraries belong to."""
    filename: str
    ecosystem: str
    parse: Parser


def _dedupe(libs: list[Library]) -> list[Library]:
    seen: set[tuple[str, str]] = set()
    unique: list[Library] = []
    for lib in libs:
        key = (lib.name, lib.version)
        if key in seen:
            continue
        seen.add(key)
        unique.append(lib)
    return unique


# --- Python ---

def parse_requirements_txt(content: str) -> list[Library]:
    """Parse pinned (``==``) requirements; unpinned lines can't be matched."""
    libs: list[Library] = []
    for line in content.splitlines():
        line = line.split("#", 1)[0].strip()
        # Skip blank lines and options
        if not line or line.startswith("-"):
            continue
        match = re.match(r"^([a-zA-Z0-9_.-]+)(?:\[[^\]]*\])?\s*===?\s*([^\s;,]+)", line)
        if match:
            libs.append(Library(name=match.group(1).lower(), version=match.group(2)))
    return _dedupe(libs)


def parse_pipfile_lock(content: str) -> list[Library]:
    data = json.loads(content)
    libs: list[Library] = []
    for section in ("default", "develop"):
        for name, spec in (data.get(section) or {}).items():
            version = str(spec.get("version", "")).lstrip("=")
            if version:
                libs.append(Library(name=name, version=version))
    return _dedupe(libs)


def parse_poetry_lock(content: str) -> list[Library]:
    data = tomllib.loads(content)
    return _dedupe([
        Library(name=pkg["name"], version=pkg["version"])
        for pkg in data.get("package", [])
        if pkg.get("name") and pkg.get("version")
    ])


# --- JavaScript ---

def _walk_npm_v1(deps: dict, libs: list[Library]) -> None:
    for name, spec in deps.items():
        if spec.get("version"):
            libs.append(Library(name=name, version=spec["version"]))
        _walk_npm_v1(spec.get("dependencies") or {}, libs)


def parse_package_lock(content: str) -> list[Library]:
    data = json.loads(content)
    libs: list[Library] = []
    packages = data.get("packages")
    if packages:
        for path, spec in packages.items():
            if not path or spec.get("link"):
                continue
            name = spec.get("name") or path.rsplit("node_modules/", 1)[-1]
            if spec.get("version"):
                libs.append(Library(name=name, version=spec["version"]))
    else:
        _walk_npm_v1(data.get("dependencies") or {}, libs)
    return _dedupe(libs)


_YARN_VERSION = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?')


def parse_yarn_lock(content: str) -> list[Library]:
    libs: list[Library] = []
    name = ""
    for line in content.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        if not line[0].isspace():
            # "@scope/pkg@^1.0.0", "@scope/pkg@~1.0":
            first = line.rstrip(":").split(",")[0].strip().strip('"')
            name = first[: first.rindex("@")] if first.rfind("@") > 0 else first
            continue
        match = _YARN_VERSION.match(line)
        if match and name and not name.startswith("__"):
            libs.append(Library(name=name, version=match.group(1)))
            name = ""
    return _dedupe(libs)


# --- Ruby / Rust / PHP ---

_GEM_SPEC = re.compile(r"^    (?P<name>[^\s(]+) \((?P<version>[^)]+)\)$")


def parse_gemfile_lock(content: str) -> list[Library]:
    libs: list[Library] = []
    in_specs = False
    for line in content.splitlines():
        if line.strip() == "specs:":
            in_specs = True
            continue
        if in_specs and line and not line.startswith("  "):
            in_specs = False
        if not in_specs:
            continue
        match = _GEM_SPEC.match(line)
        if match:
            # Platform suffixes like 1.13.1-x86_64-linux
            version = match.group("version").split("-", 1)[0]
            libs.append(Library(name=match.group("name"), version=version))
    return _dedupe(libs)


def parse_cargo_lock(content: str) -> list[Library]:
    data = tomllib.loads(content)
    return _dedupe([
        Library(name=pkg["name"], version=pkg["version"])
        for pkg in data.get("package", [])
        if pkg.get("name") and pkg.get("version")
    ])


def parse_composer_lock(content: str) -> list[Library]:
    data = json.loads(content)
    libs: list[Library] = []
    for section in ("packages", "packages-dev"):
        for pkg in data.get(section) or []:
            if pkg.get("name") and pkg.get("version"):
                libs.append(Library(name=pkg["name"], version=str(pkg["version"]).lstrip("v")))
    return _dedupe(libs)


MANIFEST_TYPES: dict[str, ManifestType] = {
    m.filename: m
    for m in (
        ManifestType("requirements.txt", "PyPI", parse_requirements_txt),
        ManifestType("Pipfile.lock", "PyPI", parse_pipfile_lock),
        ManifestType("poetry.lock", "PyPI", parse_poetry_lock),
        ManifestType("package-lock.json", "npm", parse_package_lock),
        ManifestType("yarn.lock", "npm", parse_yarn_lock),
        ManifestType("Gemfile.lock", "RubyGems", parse_gemfile_lock),
        ManifestType("Cargo.lock", "crates.io", parse_cargo_lock),
        ManifestType("composer.lock", "Packagist", parse_composer_lock),
    )
}


def manifest_type(path: str) -> ManifestType | None:
    """Return the manifest type for ``path``, skipping vendored node_modules trees."""
    if "node_modules" in path.split("/"):
        return None
    return MANIFEST_TYPES.get(posixpath.basename(path))


def is_required(path: str) -> bool:
    return manifest_type(path) is not None
