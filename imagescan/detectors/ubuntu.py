"""Ubuntu detector."""

from imagescan.detectors.base import OSVDetector, major_minor


class UbuntuDetector(OSVDetector):
    def ecosystem(self, os_version: str) -> str:
        major, minor = major_minor(os_version)
        ecosystem = f"Ubuntu:{major}.{minor}"
        # April releases of even years are LTS
        if minor == "04" and major.isdigit() and int(major) % 2 == 0:
            ecosystem += ":LTS"
        return ecosystem
