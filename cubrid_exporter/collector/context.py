"""
Per-request scrape context: deadline, cancellation and the selected scrapers.
"""
import threading
import time
from typing import List, Optional

from cubrid_exporter.common.exceptions import DeadlineExceededError


class ScrapeContext:
    """
    Deadline and cancellation shared by everything in one scrape cycle.

    Args:
        timeout: Seconds from now until the deadline, or None for no deadline
        scrapers: Scrapers selected for this cycle
    """

    def __init__(self, timeout: Optional[float] = None, scrapers: Optional[List] = None):
        self.created_at = time.monotonic()
        self.timeout = timeout
        self.deadline: Optional[float] = (
            self.created_at + timeout if timeout is not None else None
        )
        self.scrapers = list(scrapers or [])
        self.connection = None
        self._cancelled = threading.Event()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline (never negative), None if unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check(self, what: str = "scrape") -> None:
        """Raise DeadlineExceededError if the context is cancelled or past its deadline."""
        if self._cancelled.is_set():
            raise DeadlineExceededError(f"{what}: context cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise DeadlineExceededError(
                f"{what}: deadline of {self.timeout:.3f}s exceeded"
            )
