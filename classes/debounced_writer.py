# classes/debounced_writer.py

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger("gallery_backend")


class DebouncedWriter:
    """
    Coalesces bursts of mutations into a single deferred flush.

    - schedule(): cancel any pending flush and start a new quiet period.
      A continuous stream of edits therefore defers persistence until edits stop.
    - A failed flush is logged and dropped; in-memory state stays the source of
      truth and the next schedule() is the retry.
    - flush_now(): run a pending flush immediately (used at shutdown).

    timer_factory follows threading.Timer's signature: (delay, fn) -> object
    with start() and cancel().
    """

    def __init__(
        self,
        flush_fn: Callable[[], None],
        delay_seconds: float = 1.0,
        timer_factory: Callable[..., object] = threading.Timer,
    ):
        self.flush_fn = flush_fn
        self.delay_seconds = delay_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[object] = None
        self._generation = 0
        self.last_error: Optional[Exception] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay_seconds, lambda: self._fire(generation))
            # let the interpreter exit while a timer is still waiting
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._generation += 1

    def flush_now(self) -> bool:
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            self._generation += 1
        return self._run_flush()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # superseded by a later schedule() or cancel()
            if generation != self._generation:
                return
            self._timer = None
        self._run_flush()

    def _run_flush(self) -> bool:
        try:
            self.flush_fn()
            self.last_error = None
            return True
        except Exception as e:
            self.last_error = e
            logger.error(f"[DebouncedWriter] Failed to save data: {e}. Will retry on the next change.")
            return False
