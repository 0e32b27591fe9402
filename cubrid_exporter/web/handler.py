"""
Metrics request handling, independent of the HTTP server.

Turns the ``collect[]`` query parameters and the Prometheus scrape-timeout
header into a scrape context, runs one ``Exporter`` cycle and encodes the
result together with the process-wide default registry.
"""
import math
from typing import Iterable, Mapping, Optional, Set, Tuple
from urllib.parse import parse_qs

from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.exposition import choose_encoder

from cubrid_exporter.collector.connection import ConnectionManager
from cubrid_exporter.collector.context import ScrapeContext
from cubrid_exporter.collector.exporter import Exporter
from cubrid_exporter.collector.registry import ScraperRegistry
from cubrid_exporter.common.correlation import CorrelationContext, set_component
from cubrid_exporter.common.logging_config import get_logger
from cubrid_exporter.monitoring.metrics import (
    HANDLER_REQUESTS_IN_FLIGHT,
    HANDLER_REQUESTS_TOTAL,
    ExporterMetrics,
)

logger = get_logger(__name__)

COLLECT_PARAM = "collect[]"
TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"
DEFAULT_TIMEOUT_OFFSET = 0.25
COMPONENT = "exporter"


def parse_collect_params(query_string: str) -> Set[str]:
    """Names given as repeated ``collect[]`` parameters."""
    params = parse_qs(query_string or "", keep_blank_values=False)
    return set(params.get(COLLECT_PARAM, []))


def effective_timeout(header_value: Optional[str], offset: float) -> Optional[float]:
    """
    Seconds the cycle may take, derived from the Prometheus timeout header.

    Returns None (no deadline) when the header is missing or unusable. The
    offset is subtracted only when it leaves a positive budget; otherwise the
    caller's timeout is used unadjusted.
    """
    if header_value is None or header_value.strip() == "":
        return None

    try:
        timeout = float(header_value)
    except ValueError as e:
        logger.error(f"Failed to parse timeout from Prometheus header: {e}")
        return None

    if not math.isfinite(timeout) or timeout <= 0:
        logger.error(f"Ignoring non-positive Prometheus scrape timeout: {header_value!r}")
        return None

    if offset >= timeout:
        logger.error(
            f"Timeout offset (--timeout-offset={offset:.2f}) should be lower than "
            f"prometheus scrape time ({TIMEOUT_HEADER}={timeout:.2f})."
        )
        return timeout

    return timeout - offset


class _Gatherers:
    """Presents several registries to an encoder as one."""

    def __init__(self, registries: Iterable):
        self._registries = list(registries)

    def collect(self):
        for registry in self._registries:
            yield from registry.collect()


class MetricsEndpoint:
    """
    Drives one scrape cycle per metrics request.

    Args:
        registry: Available scrapers
        connection_manager: Opens the per-cycle connection
        metrics: Process-wide bookkeeping metrics
        timeout_offset: Seconds subtracted from the Prometheus scrape timeout
        default_registry: Process-level registry merged into every response
        check_server_version: Passed through to the Exporter
    """

    def __init__(
        self,
        registry: ScraperRegistry,
        connection_manager: ConnectionManager,
        metrics: ExporterMetrics,
        timeout_offset: float = DEFAULT_TIMEOUT_OFFSET,
        default_registry: Optional[CollectorRegistry] = REGISTRY,
        check_server_version: bool = False,
    ):
        self.registry = registry
        self.connection_manager = connection_manager
        self.metrics = metrics
        self.timeout_offset = timeout_offset
        self.default_registry = default_registry
        self.check_server_version = check_server_version

    def build_context(self, query_string: str, headers: Mapping[str, str]) -> ScrapeContext:
        requested = parse_collect_params(query_string)
        logger.debug(f"collect query: {sorted(requested)}")
        timeout = effective_timeout(headers.get(TIMEOUT_HEADER), self.timeout_offset)
        return ScrapeContext(timeout=timeout, scrapers=self.registry.select(requested))

    def handle(self, query_string: str, headers: Mapping[str, str]) -> Tuple[int, str, bytes]:
        """
        Serve one metrics request.

        Returns:
            (status code, content type, body). Scrape failures are reported
            as metric values; only an encoding failure yields a 500.
        """
        HANDLER_REQUESTS_IN_FLIGHT.inc()
        # Request threads start with an empty context.
        set_component(COMPONENT)
        try:
            with CorrelationContext():
                status, content_type, body = self._handle(query_string, headers)
        finally:
            HANDLER_REQUESTS_IN_FLIGHT.dec()
        HANDLER_REQUESTS_TOTAL.labels(code=str(status)).inc()
        return status, content_type, body

    def _handle(self, query_string: str, headers: Mapping[str, str]) -> Tuple[int, str, bytes]:
        ctx = self.build_context(query_string, headers)
        exporter = Exporter(
            ctx,
            self.connection_manager,
            self.metrics,
            check_server_version=self.check_server_version,
        )

        request_registry = CollectorRegistry(auto_describe=False)
        request_registry.register(exporter)
        registries = [request_registry]
        if self.default_registry is not None:
            registries.insert(0, self.default_registry)

        encoder, content_type = choose_encoder(headers.get("Accept", ""))
        try:
            body = encoder(_Gatherers(registries))
        except Exception as e:
            logger.exception(f"Error encoding metrics: {e}")
            return 500, "text/plain; charset=utf-8", f"Error encoding metrics: {e}\n".encode("utf-8")
        finally:
            ctx.cancel()
        return 200, content_type, body
