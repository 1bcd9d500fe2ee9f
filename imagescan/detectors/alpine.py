"""Alpine Linux detector."""

from imagescan.detectors.base import OSVDetector, major_minor


class AlpineDetector(OSVDetector):
    """Queries the Alpine secdb feed by origin package, e.g. ``Alpine:v3.10``."""

    def ecosystem(self, os_version: str) -> str:
        major, minor = major_minor(os_version)
        return f"Alpine:v{major}.{minor}"
