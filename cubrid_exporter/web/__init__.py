"""
Web module - metrics endpoint and HTTP server.
"""
from cubrid_exporter.web.handler import MetricsEndpoint, effective_timeout
from cubrid_exporter.web.server import ExporterServer

__all__ = [
    "MetricsEndpoint",
    "ExporterServer",
    "effective_timeout",
]
