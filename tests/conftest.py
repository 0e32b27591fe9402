"""
Shared fixtures: an in-memory DB-API connection that answers CUBRID SHOW
queries from a dict, and the standard rows the scrapers expect.
"""
import threading

import pytest
from prometheus_client.parser import text_string_to_metric_families

from cubrid_exporter.monitoring.metrics import reset_metrics

BROKER_ROWS = [
    ("query_editor", "5", "4321", "30000", "0", "10", "2", "3", "1", "7", "20", "4", "0", "0", "0"),
    ("broker1", "5", "4322", "33000", "0", "100", "20", "30", "10", "70", "200", "40", "1", "2", "3"),
]

SPACEDB_ROWS = [
    ("0", "PERMANENT", "PERMANENT DATA", "1", "80", "20"),
    ("1", "TEMPORARY", "TEMPORARY DATA", "1", "0", "0"),
]

STATDUMP_ROWS = [
    ("Num_file_creates", "10"),
    ("Num_data_page_fetches", "1234"),
]


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self._rows = []
        self.closed = False

    def execute(self, sql):
        self.connection.executed.append(sql)
        result = self.connection.results.get(sql, [])
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result()
        self._rows = list(result)

    def fetchall(self):
        return self._rows

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def close(self):
        self.closed = True


class FakeConnection:
    """DB-API connection stand-in; ``results`` maps SQL -> rows | Exception | callable."""

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.executed = []
        self.close_calls = 0
        self._lock = threading.Lock()

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        with self._lock:
            self.close_calls += 1


class FakeConnector:
    """Zero-argument ``connect`` callable counting open attempts."""

    def __init__(self, results=None, error=None):
        self.connection = FakeConnection(results)
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.connection


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Fresh process-wide metrics for every test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def cubrid_results():
    """Query -> rows for a healthy server with database demodb."""
    return {
        "SHOW BROKERS": BROKER_ROWS,
        "SHOW SPACEDB demodb": SPACEDB_ROWS,
        "SHOW STATDUMP demodb": STATDUMP_ROWS,
        "SELECT VERSION()": [("11.2.0.0658",)],
    }


@pytest.fixture
def fake_connection(cubrid_results):
    return FakeConnection(cubrid_results)


@pytest.fixture
def connector_factory(cubrid_results):
    """Factory for FakeConnector; defaults to the healthy result set."""
    def _make(results=None, error=None):
        return FakeConnector(cubrid_results if results is None else results, error=error)
    return _make


@pytest.fixture
def sample_value():
    """Look up one sample in text exposition output, independent of label order."""
    def _lookup(text, name, labels=None):
        labels = labels or {}
        for family in text_string_to_metric_families(text):
            for sample in family.samples:
                if sample.name == name and sample.labels == labels:
                    return sample.value
        return None
    return _lookup
