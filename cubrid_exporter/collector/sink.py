"""
Multiple-producer, single-consumer output channel for samples.
"""
import queue
import threading
from typing import List

from cubrid_exporter.collector.sample import Sample
from cubrid_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


class SampleSink:
    """
    Unbounded queue that scraper threads write to and the orchestrator drains.

    Once closed, further emits are dropped, so nothing from a straggling
    scraper can reach a stream that has already been handed to the encoder.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Sample]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self.dropped = 0

    def emit(self, sample: Sample) -> bool:
        """Queue *sample*. Returns False if the sink is already closed."""
        with self._lock:
            if self._closed:
                self.dropped += 1
                logger.debug(f"Dropping sample {sample.name} emitted after sink close")
                return False
            self._queue.put_nowait(sample)
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def drain(self) -> List[Sample]:
        """Return every queued sample in emission order."""
        samples = []
        while True:
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                return samples
