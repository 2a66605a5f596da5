# classes/cooldown_tracker.py

import threading
import time
from typing import Callable, Dict, Hashable, List, Set, Tuple

from classes.config import IMAGE_EDIT_COOLDOWN_SECONDS
from classes.errors import CooldownActiveError

IMAGE_EDIT_OPERATIONS = ("remove_background", "clean", "clarify")


class CooldownTracker:
    """
    Process-local rate limiting of image-edit operations per image slot.

    - While any operation runs on a slot, the whole slot is busy.
    - After an operation finishes (success or failure) the same operation on
      the same slot is disabled for window_seconds; other operations and other
      slots stay available.
    """

    def __init__(self, window_seconds: float = IMAGE_EDIT_COOLDOWN_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # (slot, operation) -> monotonic time when the cooldown ends
        self._until: Dict[Tuple[Hashable, str], float] = {}
        self._busy: Set[Hashable] = set()

    def remaining(self, slot: Hashable, operation: str) -> float:
        with self._lock:
            return self._remaining_unlocked(slot, operation)

    def _remaining_unlocked(self, slot: Hashable, operation: str) -> float:
        until = self._until.get((slot, operation))
        if until is None:
            return 0.0
        left = until - self._clock()
        if left <= 0:
            del self._until[(slot, operation)]
            return 0.0
        return left

    def is_available(self, slot: Hashable, operation: str) -> bool:
        with self._lock:
            return slot not in self._busy and self._remaining_unlocked(slot, operation) <= 0

    def begin(self, slot: Hashable, operation: str) -> None:
        """
        Claim the slot for one operation, or raise CooldownActiveError.
        """
        with self._lock:
            if slot in self._busy:
                raise CooldownActiveError(f"Another image operation is running on slot {slot}.")
            left = self._remaining_unlocked(slot, operation)
            if left > 0:
                raise CooldownActiveError(
                    f"'{operation}' on slot {slot} is cooling down ({left:.0f}s left).",
                    remaining_seconds=left,
                )
            self._busy.add(slot)

    def finish(self, slot: Hashable, operation: str) -> None:
        with self._lock:
            self._busy.discard(slot)
            self._until[(slot, operation)] = self._clock() + self.window_seconds

    def snapshot(self, slot: Hashable) -> Dict[str, float]:
        """
        Remaining seconds per operation for one slot (0.0 when available).
        """
        with self._lock:
            return {op: self._remaining_unlocked(slot, op) for op in IMAGE_EDIT_OPERATIONS}

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired: List[Tuple[Hashable, str]] = [k for k, until in self._until.items() if until <= now]
            for k in expired:
                del self._until[k]
        return len(expired)


# Global, process-local singleton
IMAGE_EDIT_COOLDOWNS = CooldownTracker()
