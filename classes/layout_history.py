# classes/layout_history.py

import time
from typing import Callable, Iterable, List, Optional

from classes.models import HomeComponent, LayoutHistoryEntry


def _now_ms() -> int:
    return int(time.time() * 1000)


class LayoutHistory:
    """
    Append-only log of accepted layouts.

    - Entries are stored in insertion order (oldest first) and never mutated.
    - Timestamps are epoch milliseconds, strictly increasing within one log.
    - restore() hands back a copy of a snapshot and does NOT journal itself:
      the next recorded edit describes only the forward change.
    """

    def __init__(self, entries: Optional[Iterable[LayoutHistoryEntry]] = None, clock: Callable[[], int] = _now_ms):
        self._entries: List[LayoutHistoryEntry] = list(entries or [])
        self._clock = clock

    @property
    def entries(self) -> List[LayoutHistoryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, layout: List[HomeComponent], summary: str) -> LayoutHistoryEntry:
        timestamp = int(self._clock())
        if self._entries and timestamp <= self._entries[-1].timestamp:
            timestamp = self._entries[-1].timestamp + 1

        entry = LayoutHistoryEntry(
            layout=[c.model_copy(deep=True) for c in layout or []],
            summary=(summary or "").strip(),
            timestamp=timestamp,
        )
        self._entries.append(entry)
        return entry

    @staticmethod
    def restore(entry: LayoutHistoryEntry) -> List[HomeComponent]:
        return [c.model_copy(deep=True) for c in entry.layout]

    def for_display(self) -> List[LayoutHistoryEntry]:
        """Most recent first."""
        indexed = list(enumerate(self._entries))
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        return [entry for _, entry in indexed]

    def find(self, *, index: Optional[int] = None, timestamp: Optional[int] = None) -> LayoutHistoryEntry:
        if index is not None:
            if not 0 <= index < len(self._entries):
                raise IndexError(f"No layout history entry at index {index}")
            return self._entries[index]
        if timestamp is not None:
            for entry in self._entries:
                if entry.timestamp == timestamp:
                    return entry
            raise LookupError(f"No layout history entry with timestamp {timestamp}")
        raise ValueError("find() needs either index or timestamp")
