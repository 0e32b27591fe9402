"""
Unit tests for ExporterServer HTTP endpoints and listen-address parsing.
"""
import unittest
import urllib.error
import urllib.request

import pytest

from cubrid_exporter.collector.connection import ConnectionManager
from cubrid_exporter.collector.registry import build_default_registry
from cubrid_exporter.monitoring.metrics import ExporterMetrics
from cubrid_exporter.web.handler import MetricsEndpoint
from cubrid_exporter.web.server import ExporterServer, parse_listen_address


class TestParseListenAddress(unittest.TestCase):

    def test_host_and_port(self):
        self.assertEqual(parse_listen_address("127.0.0.1:9177"), ("127.0.0.1", 9177))

    def test_empty_host_listens_everywhere(self):
        self.assertEqual(parse_listen_address(":9177"), ("0.0.0.0", 9177))

    def test_bracketed_ipv6(self):
        self.assertEqual(parse_listen_address("[::1]:9177"), ("::1", 9177))

    def test_missing_port(self):
        with self.assertRaises(ValueError):
            parse_listen_address("localhost")

    def test_non_numeric_port(self):
        with self.assertRaises(ValueError):
            parse_listen_address("localhost:http")


@pytest.fixture
def running_server(connector_factory):
    endpoint = MetricsEndpoint(
        registry=build_default_registry(),
        connection_manager=ConnectionManager(connector_factory()),
        metrics=ExporterMetrics(),
    )
    server = ExporterServer(endpoint, listen_address="127.0.0.1:0", metrics_path="/scrape")
    server.start()
    yield server
    server.stop()


def _get(server, path, headers=None):
    """GET and return (status, content type, body text)."""
    request = urllib.request.Request(f"http://127.0.0.1:{server.port}{path}", headers=headers or {})
    try:
        resp = urllib.request.urlopen(request, timeout=5)
        return resp.status, resp.headers.get("Content-Type"), resp.read().decode()
    except urllib.error.HTTPError as e:
        return e.code, e.headers.get("Content-Type"), e.read().decode()


class TestExporterServer:

    def test_landing_page_links_metrics_path(self, running_server):
        status, content_type, body = _get(running_server, "/")

        assert status == 200
        assert content_type.startswith("text/html")
        assert "<a href='/scrape'>Metrics</a>" in body

    def test_metrics_path(self, running_server):
        status, content_type, body = _get(running_server, "/scrape")

        assert status == 200
        assert content_type.startswith("text/plain")
        assert "cubrid_up 1.0" in body
        assert "cubrid_exporter_build_info" in body

    def test_metrics_with_collect_and_timeout_header(self, running_server):
        status, _, body = _get(
            running_server,
            "/scrape?collect[]=spacedb",
            headers={"X-Prometheus-Scrape-Timeout-Seconds": "5"},
        )

        assert status == 200
        assert 'collector="collect.spacedb"' in body
        assert 'collector="collect.statdump"' not in body

    def test_unknown_path(self, running_server):
        status, _, body = _get(running_server, "/metricsx")

        assert status == 404
        assert body == "404 page not found\n"

    def test_is_running(self, running_server):
        assert running_server.is_running
        assert running_server.port > 0
