"""Error taxonomy for scan and report stages.

Every error carries the stage that failed and, where there is one, the
underlying cause. The cause is also chained with ``raise ... from`` so
tracebacks show the full chain.
"""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    USAGE = "usage"
    EXTRACT = "extract"
    OS_DETECTION = "os_detection"
    OS_SUPPORT = "os_support"
    PACKAGE_ENUMERATION = "package_enumeration"
    DETECTION = "detection"
    LIBRARY = "library"
    AGGREGATE = "aggregate"
    SERIALIZE = "serialize"
    WRITE = "write"


class ScanError(Exception):
    """Base error: a message, the failing stage and an optional cause."""

    stage: Stage = Stage.DETECTION

    def __init__(self, message: str, *, cause: BaseException | None = None, stage: Stage | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class UsageError(ScanError):
    stage = Stage.USAGE


class ExtractionError(ScanError):
    stage = Stage.EXTRACT


class OSDetectionError(ScanError):
    """No recognizable OS marker in the filesystem."""

    stage = Stage.OS_DETECTION


class UnsupportedOSError(ScanError):
    stage = Stage.OS_SUPPORT

    def __init__(self, family: str):
        super().__init__(f"unsupported os: {family!r}")
        self.family = family


class PackageEnumerationError(ScanError):
    stage = Stage.PACKAGE_ENUMERATION


class DetectionError(ScanError):
    stage = Stage.DETECTION


class LibraryScanError(ScanError):
    stage = Stage.LIBRARY


class DuplicateTargetError(ScanError):
    stage = Stage.AGGREGATE

    def __init__(self, target: str):
        super().__init__(f"duplicate scan target: {target!r}")
        self.target = target


class SerializationError(ScanError):
    stage = Stage.SERIALIZE


class ReportWriteError(ScanError):
    stage = Stage.WRITE
