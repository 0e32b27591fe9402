"""
Static table of available scrapers and per-request selection.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from cubrid_exporter.collector.broker_status import BrokerStatusScraper
from cubrid_exporter.collector.scraper import Scraper
from cubrid_exporter.collector.spacedb import SpaceDBScraper
from cubrid_exporter.collector.statdump import StatdumpScraper
from cubrid_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    scraper: Scraper
    enabled_by_default: bool


class ScraperRegistry:
    """
    Name -> (scraper, enabled-by-default) map, in registration order.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}

    def register(self, scraper: Scraper, enabled_by_default: bool = True) -> None:
        if scraper.name in self._entries:
            raise ValueError(f"Scraper already registered: {scraper.name}")
        self._entries[scraper.name] = RegistryEntry(scraper, enabled_by_default)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def all(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def names(self) -> List[str]:
        return list(self._entries)

    def get(self, name: str) -> Optional[Scraper]:
        entry = self._entries.get(name)
        return entry.scraper if entry else None

    def defaults(self) -> List[Scraper]:
        return [e.scraper for e in self._entries.values() if e.enabled_by_default]

    def select(self, requested: Optional[Iterable[str]] = None) -> List[Scraper]:
        """
        Scrapers to run for one request.

        An empty request means the default-enabled set. Otherwise the
        requested names that are registered, in registration order; unknown
        names are ignored.
        """
        wanted = set(requested or ())
        if not wanted:
            return self.defaults()

        unknown = wanted.difference(self._entries)
        if unknown:
            logger.debug(f"Ignoring unknown collectors: {sorted(unknown)}")
        return [e.scraper for name, e in self._entries.items() if name in wanted]

    def with_overrides(self, enabled: Mapping[str, bool]) -> "ScraperRegistry":
        """Copy of this registry with enabled-by-default flags replaced."""
        registry = ScraperRegistry()
        for name, entry in self._entries.items():
            registry.register(entry.scraper, enabled.get(name, entry.enabled_by_default))
        return registry


def build_default_registry(database: str = "demodb") -> ScraperRegistry:
    """All known scrapers and whether they run by default."""
    registry = ScraperRegistry()
    registry.register(BrokerStatusScraper(), enabled_by_default=True)
    registry.register(StatdumpScraper(database), enabled_by_default=True)
    registry.register(SpaceDBScraper(database), enabled_by_default=True)
    return registry
