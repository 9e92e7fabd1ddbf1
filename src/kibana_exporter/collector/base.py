"""
Base status source interface.

A status source is anything that can produce a StatusSnapshot. This keeps
the exporter decoupled from where the data actually comes from (a live
Kibana, a stub in tests).
"""

from abc import ABC, abstractmethod

from kibana_exporter.metrics import StatusSnapshot


class StatusSource(ABC):
    """Interface for all status sources."""

    @abstractmethod
    def scrape(self) -> StatusSnapshot:
        """Fetch one snapshot. Raises ScrapeError on failure."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        ...
