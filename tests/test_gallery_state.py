"""Tests for the gallery reducers and the store that applies them."""

import pytest

from classes.errors import ValidationFailure
from classes.gallery_state import (
    GalleryStore,
    apply_delete,
    apply_layout_update,
    apply_replace_document,
    apply_restore,
    apply_save_mineral,
)
from classes.models import AppData, HomeComponent, Mineral


def _doc(minerals, layout=(), history=()):
    return AppData(minerals=list(minerals), home_page_layout=list(layout), layout_history=list(history))


def _mineral(mid, on_display=True, **kw):
    kw.setdefault("image_urls", [f"https://img/{mid}.jpg"])
    return Mineral(id=mid, name=kw.pop("name", f"Specimen {mid}"), on_display=on_display, **kw)


class TestDelete:
    def test_scenario_a_hero_removed_with_its_only_mineral(self):
        doc = _doc([_mineral("1")], [HomeComponent(id="h1", type="hero", mineral_ids=["1"])])
        new_doc = apply_delete(doc, "1")
        assert new_doc.home_page_layout == []
        assert new_doc.minerals == []

    def test_input_document_untouched(self):
        doc = _doc([_mineral("1"), _mineral("2")], [HomeComponent(id="g", type="grid-2", mineral_ids=["1", "2"])])
        apply_delete(doc, "1")
        assert len(doc.minerals) == 2
        assert doc.home_page_layout[0].mineral_ids == ["1", "2"]

    def test_unknown_id_rejected(self):
        with pytest.raises(ValidationFailure):
            apply_delete(_doc([_mineral("1")]), "nope")


class TestSave:
    def test_new_mineral_gets_an_id(self):
        doc, saved = apply_save_mineral(_doc([]), _mineral(""))
        assert saved.id
        assert saved.id.endswith("Z")
        assert doc.minerals == [saved]

    def test_edit_replaces_in_place_and_leaves_layout(self):
        layout = [HomeComponent(id="h1", type="hero", mineral_ids=["2"])]
        doc = _doc([_mineral("1"), _mineral("2")], layout)
        new_doc, _ = apply_save_mineral(doc, _mineral("2", name="Renamed"))
        assert [m.name for m in new_doc.minerals] == ["Specimen 1", "Renamed"]
        assert new_doc.home_page_layout == layout

    @pytest.mark.parametrize("bad", [
        {"name": "", "image_urls": ["https://img/x.jpg"]},
        {"name": "Quartz", "image_urls": []},
        {"name": "Quartz", "image_urls": ["  "]},
    ])
    def test_validation_failures(self, bad):
        with pytest.raises(ValidationFailure):
            apply_save_mineral(_doc([]), Mineral(id="", **bad))


class TestLayoutUpdate:
    def test_installs_and_records(self):
        doc = _doc([_mineral("1"), _mineral("2")])
        layout = [HomeComponent(id="h1", type="hero", mineral_ids=["1"])]
        new_doc, entry = apply_layout_update(doc, layout, "added hero", clock=lambda: 42)
        assert new_doc.home_page_layout == layout
        assert new_doc.layout_history == [entry]
        assert entry.timestamp == 42
        assert doc.layout_history == []

    def test_unknown_ids_filtered_before_install(self):
        doc = _doc([_mineral("1")])
        layout = [
            HomeComponent(id="h1", type="hero", mineral_ids=["ghost"]),
            HomeComponent(id="g1", type="grid-2", mineral_ids=["1", "ghost"]),
        ]
        new_doc, entry = apply_layout_update(doc, layout, "x", clock=lambda: 1)
        assert [(c.id, c.mineral_ids) for c in new_doc.home_page_layout] == [("g1", ["1"])]
        assert entry.layout == new_doc.home_page_layout

    def test_allowed_ids_cannot_exceed_store(self):
        doc = _doc([_mineral("1")])
        layout = [HomeComponent(id="g1", type="grid-2", mineral_ids=["1", "2"])]
        new_doc, _ = apply_layout_update(doc, layout, "x", allowed_ids={"1", "2"}, clock=lambda: 1)
        assert new_doc.home_page_layout[0].mineral_ids == ["1"]


class TestRestore:
    def test_restore_installs_entry_without_new_history(self):
        doc = _doc([_mineral("1"), _mineral("2")])
        doc, first = apply_layout_update(doc, [HomeComponent(id="h1", type="hero", mineral_ids=["1"])], "a", clock=lambda: 1)
        doc, _ = apply_layout_update(doc, [HomeComponent(id="g1", type="grid-2", mineral_ids=["2"])], "b", clock=lambda: 2)

        restored = apply_restore(doc, first)
        assert restored.home_page_layout == first.layout
        assert len(restored.layout_history) == 2
        assert apply_restore(restored, first).home_page_layout == restored.home_page_layout

    def test_restore_drops_ids_deleted_since(self):
        doc = _doc([_mineral("1"), _mineral("2")])
        doc, entry = apply_layout_update(
            doc, [HomeComponent(id="g1", type="grid-2", mineral_ids=["1", "2"])], "a", clock=lambda: 1,
        )
        doc = apply_delete(doc, "2")
        restored = apply_restore(doc, entry)
        assert restored.home_page_layout[0].mineral_ids == ["1"]
        assert entry.layout[0].mineral_ids == ["1", "2"]


class TestReplaceDocument:
    def test_dangling_ids_pruned(self):
        doc = _doc([_mineral("1")], [HomeComponent(id="h", type="hero", mineral_ids=["9"])])
        assert apply_replace_document(doc).home_page_layout == []


class TestGalleryStore:
    def test_populate_does_not_notify_but_mutations_do(self, seed_doc):
        calls = []
        store = GalleryStore(on_mutation=lambda: calls.append(1))
        store.populate(seed_doc)
        assert calls == []

        store.save_mineral(_mineral("7"))
        store.delete_mineral("7")
        assert len(calls) == 2

    def test_failed_validation_does_not_notify(self, seed_doc):
        calls = []
        store = GalleryStore(on_mutation=lambda: calls.append(1))
        store.populate(seed_doc)
        with pytest.raises(ValidationFailure):
            store.delete_mineral("missing")
        assert calls == []

    def test_snapshot_is_isolated(self, seed_doc):
        store = GalleryStore()
        store.populate(seed_doc)
        snap = store.snapshot()
        snap.home_page_layout.clear()
        assert len(store.snapshot().home_page_layout) == 2

    def test_install_then_restore(self, seed_doc):
        ticks = iter([10, 20])
        store = GalleryStore(clock=lambda: next(ticks))
        store.populate(seed_doc)
        first = store.install_layout([HomeComponent(id="h1", type="hero", mineral_ids=["3"])], "tourmaline hero")
        store.install_layout([HomeComponent(id="g1", type="grid-3", mineral_ids=["1", "2", "4"])], "grid")

        layout = store.restore_layout(first)
        assert layout == first.layout
        assert store.snapshot().home_page_layout == first.layout
        assert len(store.snapshot().layout_history) == 2
