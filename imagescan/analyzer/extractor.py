"""Layer extraction for `docker save` archives and plain rootfs tarballs.

Only files the analyzers ask for are kept, so a full image never has to
be unpacked to disk.
"""

from __future__ import annotations

import json
import logging
import posixpath
import shutil
import subprocess
import tarfile
import tempfile
from collections.abc import Callable
from typing import IO

from imagescan.config import DockerSettings, settings
from imagescan.errors import ExtractionError

logger = logging.getLogger(__name__)

FileMap = dict[str, bytes]

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"


def normalize_path(name: str) -> str:
    path = posixpath.normpath(name.lstrip("/"))
    if path.startswith("./"):
        path = path[2:]
    return "" if path == "." else path


def _seekable(stream: IO[bytes]) -> IO[bytes]:
    try:
        if stream.seekable():
            return stream
    except (AttributeError, ValueError):
        pass
    spool = tempfile.TemporaryFile()
    shutil.copyfileobj(stream, spool)
    spool.seek(0)
    return spool


def _remove_tree(files: FileMap, path: str, *, keep_dir: bool = False) -> None:
    prefix = f"{path}/" if path else ""
    for name in [n for n in files if n.startswith(prefix) or (not keep_dir and n == path)]:
        del files[name]


def apply_layer(files: FileMap, layer: tarfile.TarFile, wanted: Callable[[str], bool]) -> None:
    """Apply one layer on top of ``files``: whiteouts first, then regular files."""
    members = layer.getmembers()
    for member in members:
        path = normalize_path(member.name)
        dirname, basename = posixpath.split(path)
        if basename == OPAQUE_WHITEOUT:
            _remove_tree(files, dirname, keep_dir=True)
        elif basename.startswith(WHITEOUT_PREFIX):
            _remove_tree(files, posixpath.join(dirname, basename[len(WHITEOUT_PREFIX):]))

    for member in members:
        path = normalize_path(member.name)
        if not member.isfile() or posixpath.basename(path).startswith(WHITEOUT_PREFIX):
            continue
        if not wanted(path):
            continue
        handle = layer.extractfile(member)
        if handle is None:
            continue
        files[path] = handle.read()


def extract_archive(stream: IO[bytes], wanted: Callable[[str], bool]) -> FileMap:
    """Extract wanted files from a `docker save` archive or a rootfs tarball."""
    files: FileMap = {}
    try:
        with tarfile.open(fileobj=_seekable(stream), mode="r:*") as archive:
            try:
                manifest_member = archive.getmember("manifest.json")
            except KeyError:
                logger.debug("No manifest.json, treating archive as a single layer")
                apply_layer(files, archive, wanted)
                return files

            manifest_handle = archive.extractfile(manifest_member)
            manifest = json.loads(manifest_handle.read()) if manifest_handle else []
            if not manifest:
                raise ExtractionError("empty image manifest")

            layers = manifest[0].get("Layers", []) or []
            logger.debug("Image has %d layers", len(layers))
            for layer_name in layers:
                layer_handle = archive.extractfile(layer_name)
                if layer_handle is None:
                    raise ExtractionError(f"layer {layer_name} is not a regular file")
                with tarfile.open(fileobj=_seekable(layer_handle), mode="r:*") as layer:
                    apply_layer(files, layer, wanted)
    except (tarfile.TarError, json.JSONDecodeError, KeyError) as exc:
        raise ExtractionError("failed to read image archive", cause=exc) from exc
    return files


def save_image(image_ref: str, docker: DockerSettings) -> IO[bytes]:
    """Run `docker save` and return the archive as a seekable temporary file."""
    archive = tempfile.TemporaryFile()
    cmd = [settings.docker_bin, "save", image_ref]
    try:
        subprocess.run(
            cmd,
            stdout=archive,
            stderr=subprocess.PIPE,
            env=docker.env(),
            timeout=docker.docker_timeout_seconds,
            check=True,
        )
    except FileNotFoundError as exc:
        archive.close()
        raise ExtractionError(f"docker client not found at '{settings.docker_bin}'", cause=exc) from exc
    except subprocess.TimeoutExpired as exc:
        archive.close()
        raise ExtractionError(f"docker save timed out after {docker.docker_timeout_seconds}s") from exc
    except subprocess.CalledProcessError as exc:
        archive.close()
        stderr = (exc.stderr or b"").decode(errors="replace")[:500]
        raise ExtractionError(f"docker save {image_ref} exited with code {exc.returncode}: {stderr}") from exc
    archive.seek(0)
    return archive
