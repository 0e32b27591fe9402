"""
Per-cycle connection handling for the CUBRID server.

Each scrape cycle gets exactly one DB-API connection. Scraper threads share
it, but a lock hands it to one query at a time, so the "max one open, max one
idle" cap also serialises query execution. The connection is discarded once it
outlives ``max_lifetime``; the next cycle opens a fresh one.
"""
import importlib
import importlib.util
import re
import sys
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from cubrid_exporter.collector.context import ScrapeContext
from cubrid_exporter.common.exceptions import (
    ConfigurationError,
    ConnectionExpiredError,
    ConnectionOpenError,
    DeadlineExceededError,
)
from cubrid_exporter.common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_LIFETIME = 60.0

VERSION_QUERY = "SELECT VERSION()"
_VERSION_RE = re.compile(r"^\d+\.\d+")
# Matches every scraper when the server version cannot be determined.
UNKNOWN_SERVER_VERSION = 999.0


class BoundedConnection:
    """
    A single DB-API connection with serialised access and a hard lifetime.

    Args:
        raw: Connection object returned by the driver's ``connect``
        max_lifetime: Seconds after which the connection refuses new queries
    """

    def __init__(self, raw: Any, max_lifetime: float = DEFAULT_MAX_LIFETIME):
        self._raw = raw
        self.max_lifetime = max_lifetime
        self.opened_at = time.monotonic()
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._closed = False
        self._raw_closed = False

    @property
    def age(self) -> float:
        return time.monotonic() - self.opened_at

    @property
    def expired(self) -> bool:
        return self.age >= self.max_lifetime

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def cursor(self, ctx: Optional[ScrapeContext] = None) -> Iterator[Any]:
        """
        Borrow the connection for one query and yield a cursor.

        Waiting for the connection is bounded by the context's remaining time.

        Raises:
            DeadlineExceededError: Deadline reached before the connection was free
            ConnectionExpiredError: Connection closed or past its lifetime
        """
        timeout = ctx.remaining() if ctx is not None else None
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise DeadlineExceededError("timed out waiting for the shared connection")
        try:
            if self._closed:
                raise ConnectionExpiredError("connection already closed")
            if self.expired:
                raise ConnectionExpiredError(
                    f"connection exceeded max lifetime of {self.max_lifetime}s"
                )
            if ctx is not None:
                ctx.check("query")
            cur = self._raw.cursor()
            try:
                yield cur
            finally:
                cur.close()
        finally:
            self._lock.release()
            if self._closed:
                # close() was called while this query held the connection
                self._close_raw()

    def close(self) -> None:
        """Close the connection. Idempotent; deferred while a query holds it."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        if self._lock.acquire(blocking=False):
            try:
                self._close_raw()
            finally:
                self._lock.release()
        else:
            logger.debug("Connection busy, close deferred until the query returns")

    def _close_raw(self) -> None:
        with self._state_lock:
            if self._raw_closed:
                return
            self._raw_closed = True
        try:
            self._raw.close()
        except Exception as e:
            logger.warning(f"Error closing CUBRID connection: {e}")


class ConnectionManager:
    """
    Opens the bounded connection for a scrape cycle.

    Args:
        connect: Zero-argument callable returning a DB-API connection
        max_lifetime: Maximum connection lifetime in seconds
    """

    def __init__(self, connect: Callable[[], Any], max_lifetime: float = DEFAULT_MAX_LIFETIME):
        self._connect = connect
        self.max_lifetime = max_lifetime

    def open(self, ctx: ScrapeContext) -> BoundedConnection:
        """
        Make exactly one connection attempt for this cycle.

        Raises:
            DeadlineExceededError: Deadline passed before or during the open
            ConnectionOpenError: Driver failed to connect
        """
        ctx.check("connection")
        try:
            raw = self._connect()
        except Exception as e:
            raise ConnectionOpenError(f"Error opening connection to database: {e}") from e

        connection = BoundedConnection(raw, max_lifetime=self.max_lifetime)
        if ctx.expired:
            connection.close()
            raise DeadlineExceededError("deadline exceeded while opening connection")

        ctx.connection = connection
        return connection


def make_connector(driver: str, dsn: str, user: str, password: str) -> Callable[[], Any]:
    """
    Build a ``connect`` callable for the given DB-API driver module.

    The driver (``CUBRIDdb`` by default) is imported on the first connect
    rather than at startup, so the exporter still serves ``cubrid_up 0`` on a
    host where the driver is missing.

    The returned callable raises ConfigurationError when the driver module
    cannot be imported.
    """
    def connect():
        try:
            module = importlib.import_module(driver)
        except ImportError as e:
            raise ConfigurationError(f"DB-API driver '{driver}' is not importable: {e}") from e
        return module.connect(dsn, user, password)

    return connect


def driver_available(driver: str) -> bool:
    """
    Whether the DB-API driver module can be imported, without importing it.

    A module already in ``sys.modules`` counts as available even when it has
    no ``__spec__`` (modules built at runtime).
    """
    if driver in sys.modules:
        return True
    try:
        return importlib.util.find_spec(driver) is not None
    except (ImportError, ValueError):
        # Missing parent package of a dotted name, or a parent without __spec__
        return False


def server_version(connection: BoundedConnection, ctx: Optional[ScrapeContext] = None) -> float:
    """Return the server's major.minor version, or UNKNOWN_SERVER_VERSION."""
    version = 0.0
    try:
        with connection.cursor(ctx) as cur:
            cur.execute(VERSION_QUERY)
            row = cur.fetchone()
        match = _VERSION_RE.match(str(row[0])) if row else None
        if match:
            version = float(match.group(0))
    except Exception as e:
        logger.warning(f"Could not determine CUBRID version: {e}")
    if version == 0:
        version = UNKNOWN_SERVER_VERSION
    return version
