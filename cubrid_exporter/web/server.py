"""
HTTP server for the exporter.

Endpoints:
    GET /             - Landing page linking to the metrics path
    GET <metrics path> - One scrape cycle in Prometheus exposition format

Requests are served by ``ThreadingHTTPServer``, one thread per request, so
every scrape gets its own cycle and connection.
"""
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Tuple
from urllib.parse import urlsplit

from cubrid_exporter.common.logging_config import get_logger
from cubrid_exporter.web.handler import MetricsEndpoint

logger = get_logger(__name__)

DEFAULT_LISTEN_ADDRESS = ":9177"
DEFAULT_METRICS_PATH = "/metrics"

LANDING_PAGE = """<html>
<head><title>CUBRID exporter</title></head>
<body>
<h1>CUBRID exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split ``host:port``; an empty host listens on all interfaces.

    Raises:
        ValueError: Address has no valid port
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"listen address must be host:port, got {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


class ExporterHTTPHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the landing page and the metrics path."""

    # Class-level references (set by ExporterServer)
    endpoint: Optional[MetricsEndpoint] = None
    metrics_path: str = DEFAULT_METRICS_PATH

    def do_GET(self):
        url = urlsplit(self.path)

        if url.path == self.metrics_path:
            if self.endpoint is None:
                self._send(503, "text/plain; charset=utf-8", b"No metrics endpoint configured\n")
                return
            status, content_type, body = self.endpoint.handle(url.query, self.headers)
            self._send(status, content_type, body)

        elif url.path == "/":
            body = LANDING_PAGE.format(metrics_path=self.metrics_path).encode("utf-8")
            self._send(200, "text/html; charset=utf-8", body)

        else:
            self._send(404, "text/plain; charset=utf-8", b"404 page not found\n")

    def _send(self, status_code: int, content_type: str, body: bytes):
        self.send_response(status_code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} - {format % args}")


class ExporterServer:
    """
    Threaded HTTP server for the exporter.

    Usage:
        server = ExporterServer(endpoint, listen_address=":9177")
        server.serve_forever()     # blocking, main process
        # or
        server.start()             # daemon thread, tests
        server.stop()
    """

    def __init__(
        self,
        endpoint: MetricsEndpoint,
        listen_address: str = DEFAULT_LISTEN_ADDRESS,
        metrics_path: str = DEFAULT_METRICS_PATH,
    ):
        self.endpoint = endpoint
        self.listen_address = listen_address
        self.metrics_path = metrics_path
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> Optional[int]:
        """Bound port (useful when listening on port 0)."""
        return self._server.server_address[1] if self._server else None

    def bind(self) -> ThreadingHTTPServer:
        handler = type(
            'MetricsHandler',
            (ExporterHTTPHandler,),
            {'endpoint': self.endpoint, 'metrics_path': self.metrics_path}
        )
        host, port = parse_listen_address(self.listen_address)
        self._server = ThreadingHTTPServer((host, port), handler)
        self._server.daemon_threads = True
        logger.info(f"Listening on {host}:{self.port}, metrics at {self.metrics_path}")
        return self._server

    def serve_forever(self) -> None:
        """Bind if needed and serve on the calling thread until stop()."""
        server = self._server or self.bind()
        server.serve_forever()

    def start(self) -> None:
        """Serve in a daemon thread."""
        server = self._server or self.bind()
        self._thread = threading.Thread(
            target=server.serve_forever,
            name="exporter-http",
            daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            logger.info("HTTP server stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
