"""Red Hat Enterprise Linux / CentOS detector."""

from imagescan.detectors.base import OSVDetector, major_minor


class RedHatDetector(OSVDetector):
    """Shared by RHEL and CentOS; CentOS tracks the RHEL stream of the same major."""

    ecosystem_template = "Red Hat:enterprise_linux:{major}::baseos"

    def ecosystem(self, os_version: str) -> str:
        major, _ = major_minor(os_version)
        return self.ecosystem_template.format(major=major)
