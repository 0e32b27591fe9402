"""
Monitoring module - exporter bookkeeping and process-level metrics.
"""
from cubrid_exporter.monitoring.metrics import (
    ExporterMetrics,
    SCRAPE_DURATION,
    get_exporter_metrics,
)

__all__ = [
    "ExporterMetrics",
    "SCRAPE_DURATION",
    "get_exporter_metrics",
]
