"""Family tag to detector registry."""

from __future__ import annotations

from collections.abc import Callable

from imagescan.detectors.alpine import AlpineDetector
from imagescan.detectors.base import Detector
from imagescan.detectors.debian import DebianDetector
from imagescan.detectors.redhat import RedHatDetector
from imagescan.detectors.ubuntu import UbuntuDetector
from imagescan.errors import UnsupportedOSError
from imagescan.models import OSFamily
from imagescan.osv import ClientFactory

DetectorFactory = Callable[[], Detector]


class DetectorRegistry:
    """Maps an OS family tag to the detector that handles it."""

    def __init__(self) -> None:
        self._factories: dict[str, DetectorFactory] = {}

    def register(self, family: str, factory: DetectorFactory) -> None:
        self._factories[family] = factory

    def families(self) -> list[str]:
        return list(self._factories)

    def get(self, family: str) -> Detector:
        """Return a detector for ``family``.

        Raises:
            UnsupportedOSError: when no detector is registered for the family.
        """
        factory = self._factories.get(family)
        if factory is None:
            raise UnsupportedOSError(family)
        return factory()

    def __contains__(self, family: object) -> bool:
        return family in self._factories


def default_registry(client_factory: ClientFactory | None = None) -> DetectorRegistry:
    """Registry with the built-in Alpine, Debian, Ubuntu and RedHat/CentOS detectors."""
    registry = DetectorRegistry()
    registry.register(OSFamily.ALPINE.value, lambda: AlpineDetector(client_factory))
    registry.register(OSFamily.DEBIAN.value, lambda: DebianDetector(client_factory))
    registry.register(OSFamily.UBUNTU.value, lambda: UbuntuDetector(client_factory))
    registry.register(OSFamily.REDHAT.value, lambda: RedHatDetector(client_factory))
    registry.register(OSFamily.CENTOS.value, lambda: RedHatDetector(client_factory))
    return registry
