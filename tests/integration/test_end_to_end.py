"""
Integration tests for the exporter.
Tests the complete flow: HTTP request -> Exporter -> scrapers -> DB-API driver -> exposition

The DB-API driver is an in-memory module registered under a private name,
so the test exercises the real driver loading in make_connector.
"""
import re
import sys
import threading
import time
import types
import urllib.request
from unittest.mock import patch

import pytest

from config.settings import Settings
from cubrid_exporter.collector.registry import build_default_registry
from cubrid_exporter.monitoring.metrics import get_exporter_metrics

import exporter

DRIVER = "fake_cubrid_db_api"


class TestExporterIntegration:
    """
    End-to-end scrapes against a running ExporterServer.
    """

    @pytest.fixture
    def server(self, connector_factory, monkeypatch):
        connector = connector_factory()
        module = types.ModuleType(DRIVER)
        module.calls = []

        def connect(url, user, password):
            module.calls.append((url, user, password))
            return connector()

        module.connect = connect

        monkeypatch.setenv("CUBRID_DRIVER", DRIVER)
        monkeypatch.setenv("CUBRID_HOST", "db.example")
        monkeypatch.setenv("CUBRID_PASSWORD", "secret")
        monkeypatch.delenv("CUBRID_DATABASE", raising=False)
        cfg = Settings()
        registry = build_default_registry(cfg.cubrid.database)
        args = exporter.build_parser(cfg, registry).parse_args(["--web.listen-address", "127.0.0.1:0"])

        with patch.dict(sys.modules, {DRIVER: module}):
            srv = exporter.create_server(cfg, args, registry)
            srv.start()
            srv.module = module
            srv.connector = connector
            yield srv
            srv.stop()

    def _scrape(self, server, query="", headers=None):
        url = f"http://127.0.0.1:{server.port}/metrics{query}"
        resp = urllib.request.urlopen(urllib.request.Request(url, headers=headers or {}), timeout=5)
        return resp.read().decode()

    def test_full_scrape(self, server, sample_value):
        body = self._scrape(server)

        assert "cubrid_up 1.0" in body
        assert "cubrid_exporter_last_scrape_error 0.0" in body
        assert sample_value(body, "cubrid_broker_status_info", {"broker_name": "broker1", "key": "num_select"}) == 100.0
        assert sample_value(body, "cubrid_spacedb_info", {"vol_no": "0", "key": "usedPercentage"}) == 80.0
        assert sample_value(body, "cubrid_statdump_info", {"key": "Num_data_page_fetches"}) == 1234.0
        assert server.module.calls == [("CUBRID:db.example:33000:demodb:::", "dba", "secret")]

    def test_one_connection_per_request(self, server):
        for _ in range(3):
            self._scrape(server)

        assert server.connector.calls == 3
        assert server.connector.connection.close_calls == 3
        assert get_exporter_metrics().get_total_scrapes() == 3

    def test_concurrent_requests(self, server):
        bodies = []
        lock = threading.Lock()

        def scrape():
            body = self._scrape(server)
            with lock:
                bodies.append(body)

        threads = [threading.Thread(target=scrape) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(bodies) == 5
        assert all("cubrid_up 1.0" in b for b in bodies)
        assert server.connector.calls == 5

    def test_failing_scraper_reported_without_losing_others(self, server):
        server.connector.connection.results["SHOW SPACEDB demodb"] = RuntimeError("permission denied")

        body = self._scrape(server)

        assert 'cubrid_exporter_scrape_errors_total{collector="collect.spacedb"} 1.0' in body
        assert "cubrid_exporter_last_scrape_error 1.0" in body
        assert "cubrid_statdump_info" in body
        assert "cubrid_up 1.0" in body

    def test_slow_scraper_cut_off_by_prometheus_timeout(self, server):
        def slow_statdump():
            time.sleep(1.0)
            return [("Num_file_creates", "1")]

        server.connector.connection.results["SHOW STATDUMP demodb"] = slow_statdump

        started = time.monotonic()
        body = self._scrape(server, headers={"X-Prometheus-Scrape-Timeout-Seconds": "0.5"})
        elapsed = time.monotonic() - started

        assert elapsed < 0.9
        assert 'cubrid_exporter_scrape_errors_total{collector="collect.statdump"} 1.0' in body
        assert re.search(r'cubrid_exporter_collector_duration_seconds\{collector="collect\.statdump"\} \S+', body)
        assert "cubrid_statdump_info{" not in body

    def test_database_down(self, server):
        server.connector.error = OSError("connection refused")

        body = self._scrape(server, query="?collect[]=statdump")

        assert "cubrid_up 0.0" in body
        assert "cubrid_exporter_last_scrape_error 1.0" in body
        assert "cubrid_statdump_info" not in body
