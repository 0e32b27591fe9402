"""
Graceful shutdown for the exporter process.
SIGINT/SIGTERM stop the HTTP listener and run the remaining cleanup callbacks in order.
"""
import signal
import threading
import time
from typing import Callable, List, Tuple, Optional
from enum import Enum

from cubrid_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


class ShutdownState(Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownManager:
    """
    Process-wide shutdown coordinator.

    Priority levels (lower = executed first):
        0-9:   Stop the HTTP listener
        10-19: Wait for in-flight scrape requests
        20-29: Final cleanup

    Usage:
        shutdown = ShutdownManager(timeout=10)
        shutdown.register(server.stop, priority=0, name="http")
        shutdown.install_signal_handlers()
        server.serve_forever()
    """

    _instance: Optional['ShutdownManager'] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        """One shutdown manager per exporter process."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, timeout: int = 10):
        """
        Initialize shutdown manager.

        Args:
            timeout: Maximum seconds for all callbacks together (default: 10)
        """
        if self._initialized:
            return
        self._initialized = True

        self.timeout = timeout
        self.state = ShutdownState.RUNNING
        self._callbacks: List[Tuple[int, str, Callable]] = []
        self._state_lock = threading.Lock()
        self._shutdown_event = threading.Event()

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        with cls._lock:
            cls._instance = None

    @property
    def is_running(self) -> bool:
        """Check if the exporter is still serving (not shutting down)."""
        return self.state == ShutdownState.RUNNING

    def register(
        self,
        callback: Callable,
        priority: int = 20,
        name: str = "unnamed"
    ) -> None:
        """
        Register a cleanup callback.

        Args:
            callback: Function to call during shutdown (no args)
            priority: Execution priority (lower = earlier)
            name: Descriptive name for logging
        """
        self._callbacks.append((priority, name, callback))
        self._callbacks.sort(key=lambda x: x[0])
        logger.debug(f"Registered shutdown callback: {name} (priority={priority})")

    def install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        logger.info("Signal handlers installed (SIGINT, SIGTERM)")

    def _signal_handler(self, signum: int, frame) -> None:
        """
        Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, shutting down exporter")
        # serve_forever() runs on the main thread; shutting the server down
        # from inside the signal handler would deadlock waiting for it.
        threading.Thread(
            target=self.initiate_shutdown, name="shutdown", daemon=True
        ).start()

    def initiate_shutdown(self) -> None:
        """
        Initiate graceful shutdown.

        Runs the registered callbacks once, in priority order, within the
        configured timeout. Safe to call from any thread.
        """
        with self._state_lock:
            if self.state != ShutdownState.RUNNING:
                logger.warning("Shutdown already in progress, ignoring")
                return
            self.state = ShutdownState.SHUTTING_DOWN

        self._shutdown_event.set()
        started = time.monotonic()

        for priority, name, callback in self._callbacks:
            if time.monotonic() - started > self.timeout:
                logger.error(
                    f"Shutdown timeout ({self.timeout}s) exceeded, "
                    f"skipping remaining callbacks"
                )
                break
            try:
                callback()
                logger.info(f"Shutdown callback completed: {name}")
            except Exception as e:
                logger.error(f"Shutdown callback failed: {name} - {e}")

        with self._state_lock:
            self.state = ShutdownState.STOPPED

        logger.info(f"Shutdown complete in {time.monotonic() - started:.2f}s")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown is initiated.

        Args:
            timeout: Max time to wait (None = indefinite)

        Returns:
            True if shutdown was initiated, False on timeout
        """
        return self._shutdown_event.wait(timeout=timeout)
