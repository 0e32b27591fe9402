"""
Scrape orchestration.

``Exporter`` is a ``prometheus_client`` custom collector built for a single
request. ``collect()`` runs one scrape cycle:

    IDLE -> CONNECTION_OPENING -> (FAILED | READY) -> SCRAPERS_RUNNING
         -> DRAINING -> DONE

Every selected scraper runs in its own thread against the shared bounded
connection and writes to a shared ``SampleSink``. The sink is closed only
after all threads have joined (or the deadline has written off the
stragglers), then its samples are handed to the encoder followed by the
bookkeeping metrics.
"""
import contextvars
import threading
import time
from enum import Enum
from typing import Iterator, List, Optional

from prometheus_client.core import Metric

from cubrid_exporter.collector.connection import (
    BoundedConnection,
    ConnectionManager,
    server_version,
)
from cubrid_exporter.collector.context import ScrapeContext
from cubrid_exporter.collector.sample import Sample, families_from_samples
from cubrid_exporter.collector.scraper import Scraper
from cubrid_exporter.collector.sink import SampleSink
from cubrid_exporter.common.exceptions import DeadlineExceededError
from cubrid_exporter.common.logging_config import get_logger
from cubrid_exporter.monitoring.metrics import SCRAPE_DURATION, ExporterMetrics

logger = get_logger(__name__)

# Upper bound on waiting for a unit that finished after the deadline to
# record its own result.
RECORD_GRACE = 1.0


class CycleState(Enum):
    IDLE = "idle"
    CONNECTION_OPENING = "connection_opening"
    FAILED = "failed"
    READY = "ready"
    SCRAPERS_RUNNING = "scrapers_running"
    DRAINING = "draining"
    DONE = "done"


class _ScrapeUnit:
    """One scraper's thread plus a once-only completion record."""

    def __init__(self, scraper: Scraper):
        self.scraper = scraper
        self.started = time.monotonic()
        self.thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._finished = False
        self.recorded = threading.Event()

    def claim_finish(self) -> bool:
        """True for the first caller only; the thread and the deadline race for it."""
        with self._lock:
            if self._finished:
                return False
            self._finished = True
            return True


class Exporter:
    """
    Collects CUBRID metrics for one HTTP request.

    Args:
        ctx: Request scrape context (deadline and selected scrapers)
        connection_manager: Opens the cycle's bounded connection
        metrics: Process-wide bookkeeping metrics
        check_server_version: Log scrapers whose minimum version exceeds the server's
    """

    def __init__(
        self,
        ctx: ScrapeContext,
        connection_manager: ConnectionManager,
        metrics: ExporterMetrics,
        check_server_version: bool = False,
    ):
        self.ctx = ctx
        self.connection_manager = connection_manager
        self.metrics = metrics
        self.check_server_version = check_server_version
        self.state = CycleState.IDLE

    # -- prometheus_client collector protocol --------------------------------

    def describe(self) -> Iterator[Metric]:
        """Bookkeeping families only; describing must not trigger a scrape."""
        return self.metrics.collect()

    def collect(self) -> Iterator[Metric]:
        samples = self.scrape()
        yield from families_from_samples(samples)
        yield from self.metrics.collect()

    # -- Scrape cycle --------------------------------------------------------

    def scrape(self) -> List[Sample]:
        """Run one full cycle and return every sample it produced."""
        self.metrics.inc_total_scrapes()
        sink = SampleSink()

        self.state = CycleState.CONNECTION_OPENING
        started = time.monotonic()
        try:
            connection = self.connection_manager.open(self.ctx)
        except Exception as e:
            logger.error(f"Error opening connection to database: {e}")
            self.metrics.set_error(True)
            self.metrics.set_up(False)
            self.state = CycleState.FAILED
            return []

        try:
            self.state = CycleState.READY
            self.metrics.set_up(True)
            self.metrics.set_error(False)
            sink.emit(SCRAPE_DURATION.gauge(time.monotonic() - started, "connection"))

            if self.check_server_version:
                self._warn_unsupported(connection)

            self._run_scrapers(connection, sink)
        finally:
            sink.close()
            connection.close()

        self.state = CycleState.DONE
        return sink.drain()

    def _warn_unsupported(self, connection: BoundedConnection) -> None:
        version = server_version(connection, self.ctx)
        for scraper in self.ctx.scrapers:
            if scraper.version > version:
                logger.warning(
                    f"{scraper.label} requires CUBRID {scraper.version}, "
                    f"server reports {version}; running anyway",
                    extra={"collector": scraper.label},
                )

    def _run_scrapers(self, connection: BoundedConnection, sink: SampleSink) -> None:
        self.state = CycleState.SCRAPERS_RUNNING
        units = []
        for scraper in self.ctx.scrapers:
            unit = _ScrapeUnit(scraper)
            # Fresh context copy per thread so the correlation ID follows.
            run_in_context = contextvars.copy_context().run
            unit.thread = threading.Thread(
                target=run_in_context,
                args=(self._scrape_one, unit, connection, sink),
                name=f"scrape-{scraper.name}",
                daemon=True,
            )
            unit.thread.start()
            units.append(unit)

        self.state = CycleState.DRAINING
        for unit in units:
            unit.thread.join(self.ctx.remaining())

        for unit in units:
            if not unit.thread.is_alive():
                continue
            if unit.claim_finish():
                self._record(
                    unit,
                    sink,
                    DeadlineExceededError(
                        f"still running at the {self.ctx.timeout:.3f}s deadline"
                    ),
                )
            elif not unit.recorded.wait(RECORD_GRACE):
                # Finished just after the deadline but has not recorded yet.
                logger.warning(
                    f"Duration for {unit.scraper.label} not recorded in time",
                    extra={"collector": unit.scraper.label},
                )

    def _scrape_one(self, unit: _ScrapeUnit, connection: BoundedConnection, sink: SampleSink) -> None:
        error: Optional[Exception] = None
        try:
            unit.scraper.scrape(self.ctx, connection, sink)
        except Exception as e:
            error = e
        if unit.claim_finish():
            self._record(unit, sink, error)

    def _record(self, unit: _ScrapeUnit, sink: SampleSink, error: Optional[Exception]) -> None:
        label = unit.scraper.label
        try:
            if error is not None:
                logger.error(f"Error scraping for {label}: {error}", extra={"collector": label})
                self.metrics.inc_scrape_error(label)
                self.metrics.set_error(True)
            sink.emit(SCRAPE_DURATION.gauge(time.monotonic() - unit.started, label))
        finally:
            unit.recorded.set()
