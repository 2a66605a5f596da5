# classes/gallery_state.py
"""
Explicit state container for the aggregate gallery document.

The reducers below are pure: each takes the current AppData and returns a new
one, leaving the input untouched. GalleryStore serialises their application
and asks the debounced writer to persist after every real mutation; the
initial population (populate()) never schedules a write.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from classes.errors import ValidationFailure
from classes.layout_history import LayoutHistory, _now_ms
from classes.layout_model import enforce_references, prune_for_deleted_mineral
from classes.models import AppData, HomeComponent, LayoutHistoryEntry, Mineral


def _new_mineral_id() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _mineral_ids(doc: AppData) -> List[str]:
    return [m.id for m in doc.minerals]


def validate_mineral_for_save(mineral: Mineral) -> None:
    if not (mineral.name or "").strip():
        raise ValidationFailure("A specimen needs a name.")
    if not [u for u in mineral.image_urls if (u or "").strip()]:
        raise ValidationFailure("Please upload at least one image.")


# -----------------------
# Reducers
# -----------------------

def apply_save_mineral(doc: AppData, mineral: Mineral) -> Tuple[AppData, Mineral]:
    validate_mineral_for_save(mineral)

    if not (mineral.id or "").strip():
        mineral = mineral.model_copy(update={"id": _new_mineral_id()})

    minerals = [m.model_copy(deep=True) for m in doc.minerals]
    for i, existing in enumerate(minerals):
        if existing.id == mineral.id:
            minerals[i] = mineral
            break
    else:
        minerals.append(mineral)

    # ids are stable across edits, the layout needs no change
    return doc.model_copy(update={"minerals": minerals}, deep=True), mineral


def apply_delete(doc: AppData, mineral_id: str) -> AppData:
    if mineral_id not in _mineral_ids(doc):
        raise ValidationFailure(f"Unknown specimen: {mineral_id}")

    minerals = [m.model_copy(deep=True) for m in doc.minerals if m.id != mineral_id]
    layout = prune_for_deleted_mineral(doc.home_page_layout, mineral_id)
    return doc.model_copy(update={"minerals": minerals, "home_page_layout": layout}, deep=True)


def apply_layout_update(
    doc: AppData,
    layout: List[HomeComponent],
    summary: str,
    allowed_ids: Optional[Iterable[str]] = None,
    clock: Callable[[], int] = _now_ms,
) -> Tuple[AppData, LayoutHistoryEntry]:
    """
    Install a new layout and journal it. allowed_ids defaults to every
    specimen in the store; the generation path passes a narrower set.
    """
    if allowed_ids is None:
        allowed_ids = _mineral_ids(doc)
    else:
        # never accept an id the store does not hold, whatever the caller allows
        allowed_ids = set(allowed_ids) & set(_mineral_ids(doc))

    installed = enforce_references(layout, allowed_ids)

    history = LayoutHistory(doc.layout_history, clock=clock)
    entry = history.record(installed, summary)

    new_doc = doc.model_copy(
        update={"home_page_layout": installed, "layout_history": history.entries},
        deep=True,
    )
    return new_doc, entry


def apply_restore(doc: AppData, entry: LayoutHistoryEntry) -> AppData:
    layout = enforce_references(LayoutHistory.restore(entry), _mineral_ids(doc))
    return doc.model_copy(update={"home_page_layout": layout}, deep=True)


def apply_replace_document(new_doc: AppData) -> AppData:
    layout = enforce_references(new_doc.home_page_layout, _mineral_ids(new_doc))
    return new_doc.model_copy(update={"home_page_layout": layout}, deep=True)


# -----------------------
# Container
# -----------------------

class GalleryStore:
    def __init__(self, on_mutation: Optional[Callable[[], None]] = None, clock: Callable[[], int] = _now_ms):
        self._lock = threading.Lock()
        self._doc = AppData()
        self._on_mutation = on_mutation
        self._clock = clock

    def set_mutation_listener(self, on_mutation: Optional[Callable[[], None]]) -> None:
        self._on_mutation = on_mutation

    def populate(self, doc: AppData) -> None:
        """Initial load. Does not count as a mutation."""
        with self._lock:
            self._doc = doc.model_copy(deep=True)

    def snapshot(self) -> AppData:
        with self._lock:
            return self._doc.model_copy(deep=True)

    def _commit_unlocked(self, new_doc: AppData) -> None:
        self._doc = new_doc
        if self._on_mutation is not None:
            self._on_mutation()

    def save_mineral(self, mineral: Mineral) -> Mineral:
        with self._lock:
            new_doc, saved = apply_save_mineral(self._doc, mineral)
            self._commit_unlocked(new_doc)
            return saved

    def delete_mineral(self, mineral_id: str) -> AppData:
        with self._lock:
            self._commit_unlocked(apply_delete(self._doc, mineral_id))
            return self._doc.model_copy(deep=True)

    def install_layout(
        self,
        layout: List[HomeComponent],
        summary: str,
        allowed_ids: Optional[Iterable[str]] = None,
    ) -> LayoutHistoryEntry:
        with self._lock:
            new_doc, entry = apply_layout_update(
                self._doc, layout, summary, allowed_ids=allowed_ids, clock=self._clock,
            )
            self._commit_unlocked(new_doc)
            return entry

    def restore_layout(self, entry: LayoutHistoryEntry) -> List[HomeComponent]:
        with self._lock:
            self._commit_unlocked(apply_restore(self._doc, entry))
            return [c.model_copy(deep=True) for c in self._doc.home_page_layout]

    def replace_document(self, new_doc: AppData) -> AppData:
        with self._lock:
            self._commit_unlocked(apply_replace_document(new_doc))
            return self._doc.model_copy(deep=True)
