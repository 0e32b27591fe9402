"""
Scraper contract and helpers shared by the concrete scrapers.
"""
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from cubrid_exporter.collector.connection import BoundedConnection
from cubrid_exporter.collector.context import ScrapeContext
from cubrid_exporter.collector.sink import SampleSink
from cubrid_exporter.common.exceptions import SampleParseError, ScrapeError
from cubrid_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


class Scraper(ABC):
    """
    One category of CUBRID data turned into samples.

    Subclasses set ``name`` (unique, used for ``collect[]`` selection and the
    ``collect.<name>`` error label), ``help`` and ``version``, the lowest
    CUBRID version the query works on.
    """

    name: str = ""
    help: str = ""
    version: float = 10.2

    @property
    def label(self) -> str:
        return "collect." + self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @abstractmethod
    def scrape(self, ctx: ScrapeContext, connection: BoundedConnection, sink: SampleSink) -> None:
        """
        Query the server and emit samples to *sink*.

        Must not keep *connection* after returning. Raises on failure; the
        orchestrator records the error against this scraper only.
        """


def query_rows(
    ctx: ScrapeContext,
    connection: BoundedConnection,
    sql: str,
    columns: Optional[int] = None,
) -> List[Sequence[Any]]:
    """
    Run *sql* on the shared connection and return all rows.

    Args:
        ctx: Scrape context bounding the wait for the connection
        connection: Cycle connection
        sql: Query text
        columns: Expected column count; mismatching rows raise ScrapeError
    """
    with connection.cursor(ctx) as cur:
        cur.execute(sql)
        rows = list(cur.fetchall())
    ctx.check(sql)

    if columns is not None:
        for row in rows:
            if len(row) != columns:
                raise ScrapeError(
                    f"{sql}: expected {columns} columns, got {len(row)}"
                )
    return rows


def parse_float(raw: Any, field: str, required: bool = False) -> Optional[float]:
    """
    Convert a text column to float.

    Best-effort fields return None on failure so the caller omits the
    sample; required fields raise SampleParseError.
    """
    try:
        return float(raw)
    except (TypeError, ValueError):
        if required:
            raise SampleParseError(f"cannot parse {field}={raw!r} as a number")
        logger.debug(f"Skipping unparseable value {field}={raw!r}")
        return None


def used_percentage(used: float, free: float) -> float:
    """``used / (used + free) * 100``, 0 when nothing is used."""
    if used == 0:
        return 0.0
    return used / (used + free) * 100
