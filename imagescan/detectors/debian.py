"""Debian detector."""

from imagescan.detectors.base import OSVDetector, major_minor


class DebianDetector(OSVDetector):
    """Debian advisories are keyed by source package and major release."""

    def ecosystem(self, os_version: str) -> str:
        major, _ = major_minor(os_version)
        return f"Debian:{major}"
