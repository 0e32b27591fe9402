"""
Exporter bookkeeping metrics.

``ExporterMetrics`` holds the state that must survive between scrape requests
(total scrapes, per-collector errors, last-scrape-error and up flags). Its
counters and gauges are created outside any registry and are emitted by the
per-request ``Exporter`` collector, so they always appear next to the samples
of the cycle that updated them.

Process-level metrics (build info, metrics-handler instrumentation) live in
the default ``prometheus_client`` registry.

Usage:
    from cubrid_exporter.monitoring.metrics import get_exporter_metrics

    metrics = get_exporter_metrics()
    metrics.inc_total_scrapes()
    metrics.inc_scrape_error("collect.statdump")
"""
import platform
import threading
from typing import Iterator, Optional

from prometheus_client import Counter, Gauge, Info
from prometheus_client.core import Metric

from cubrid_exporter import __version__
from cubrid_exporter.collector.sample import NAMESPACE, MetricDesc, build_fq_name

EXPORTER = "exporter"

# ---------------------------------------------------------------------------
# Process-level metrics (default registry)
# ---------------------------------------------------------------------------

BUILD_INFO = Info(
    "cubrid_exporter_build",
    "CUBRID exporter build / version info",
)
BUILD_INFO.info({
    "version": __version__,
    "python_version": platform.python_version(),
})

HANDLER_REQUESTS_TOTAL = Counter(
    "cubrid_exporter_metric_handler_requests",
    "Total number of scrapes by HTTP status code",
    ["code"],
)

HANDLER_REQUESTS_IN_FLIGHT = Gauge(
    "cubrid_exporter_metric_handler_requests_in_flight",
    "Current number of scrapes being served",
)

# Emitted per cycle as a const sample, never stored.
SCRAPE_DURATION = MetricDesc(
    build_fq_name(NAMESPACE, EXPORTER, "collector_duration_seconds"),
    "Collector time duration.",
    ["collector"],
)


class ExporterMetrics:
    """
    Bookkeeping metrics carried between HTTP requests.

    Only the orchestrator writes them, through the prometheus_client
    primitives, whose own locks make the updates thread-safe.
    """

    def __init__(self) -> None:
        self.total_scrapes = Counter(
            build_fq_name(NAMESPACE, EXPORTER, "scrapes"),
            "Total number of times CUBRID was scraped for metrics.",
            registry=None,
        )
        self.scrape_errors = Counter(
            build_fq_name(NAMESPACE, EXPORTER, "scrape_errors"),
            "Total number of times an error occurred scraping a CUBRID.",
            ["collector"],
            registry=None,
        )
        self.error = Gauge(
            build_fq_name(NAMESPACE, EXPORTER, "last_scrape_error"),
            "Whether the last scrape of metrics from CUBRID resulted in an error "
            "(1 for error, 0 for success).",
            registry=None,
        )
        self.up = Gauge(
            build_fq_name(NAMESPACE, "", "up"),
            "Whether the CUBRID server is up.",
            registry=None,
        )

    # -- Writers ------------------------------------------------------------

    def inc_total_scrapes(self) -> None:
        self.total_scrapes.inc()

    def inc_scrape_error(self, collector: str) -> None:
        """Increment the error counter for one ``collect.<name>`` label."""
        self.scrape_errors.labels(collector=collector).inc()

    def set_error(self, flag: bool) -> None:
        self.error.set(1 if flag else 0)

    def set_up(self, flag: bool) -> None:
        self.up.set(1 if flag else 0)

    # -- Emission -----------------------------------------------------------

    def collect(self) -> Iterator[Metric]:
        """Yield all bookkeeping families in a stable order."""
        yield from self.total_scrapes.collect()
        yield from self.error.collect()
        yield from self.scrape_errors.collect()
        yield from self.up.collect()

    # -- Accessors for testing ----------------------------------------------

    def get_total_scrapes(self) -> float:
        return self.total_scrapes._value.get()

    def get_scrape_errors(self, collector: str) -> float:
        return self.scrape_errors.labels(collector=collector)._value.get()

    def get_error(self) -> float:
        return self.error._value.get()

    def get_up(self) -> float:
        return self.up._value.get()


_exporter_metrics: Optional[ExporterMetrics] = None
_metrics_lock = threading.Lock()


def get_exporter_metrics() -> ExporterMetrics:
    """
    Return the process-wide ``ExporterMetrics`` instance.
    Creates one on first call (thread-safe).
    """
    global _exporter_metrics
    if _exporter_metrics is None:
        with _metrics_lock:
            if _exporter_metrics is None:
                _exporter_metrics = ExporterMetrics()
    return _exporter_metrics


def reset_metrics() -> None:
    """Drop the process-wide instance and clear handler counters (tests)."""
    global _exporter_metrics
    with _metrics_lock:
        _exporter_metrics = None
    HANDLER_REQUESTS_TOTAL._metrics.clear()
    HANDLER_REQUESTS_IN_FLIGHT._value.set(0)
