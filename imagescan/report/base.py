"""Report writer contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from imagescan.models import Results


class Writer(ABC):
    """Renders an aggregated result set to an output sink."""

    @abstractmethod
    def write(self, os_family: str, os_version: str, results: Results) -> None:
        """Write the report.

        Raises:
            ScanError: rendering or writing failed.
        """
