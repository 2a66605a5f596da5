"""Tests for the SQLite-backed document store."""

import pytest
from sqlalchemy import update

from classes.document_store import DocumentStore
from classes.entities import CollectionDocument
from classes.errors import DocumentStoreError
from classes.models import AppData, HomeComponent, Mineral


class TestDocumentStore:
    def test_missing_row_yields_seed(self, document_store):
        doc = document_store.load()
        assert [m.id for m in doc.minerals] == ["1", "2", "3", "4", "5", "6"]
        assert [c.id for c in doc.home_page_layout] == ["h1", "g1"]
        assert doc.layout_history == []

    def test_missing_row_without_seed_is_empty(self, session_factory):
        store = DocumentStore(session_factory=session_factory, seed_if_empty=False)
        assert store.load() == AppData()

    def test_save_then_load_replaces_wholesale(self, document_store):
        first = AppData(minerals=[Mineral(id="a", name="A", image_urls=["u"])])
        second = AppData(
            minerals=[Mineral(id="b", name="B", image_urls=["u"], on_display=True)],
            home_page_layout=[HomeComponent(id="h", type="hero", mineral_ids=["b"])],
        )
        document_store.save(first)
        document_store.save(second)
        assert document_store.load() == second

    def test_stored_json_uses_camel_case(self, document_store, session_factory):
        document_store.save(AppData(minerals=[Mineral(id="a", name="A", on_display=True, image_urls=["u"])]))
        session = session_factory()
        try:
            row = session.get(CollectionDocument, document_store.document_id)
            assert set(row.content) == {"minerals", "homePageLayout", "layoutHistory"}
            assert row.content["minerals"][0]["onDisplay"] is True
        finally:
            session.close()

    def test_malformed_stored_document_raises(self, document_store, session_factory):
        document_store.save(AppData())
        session = session_factory()
        try:
            session.execute(
                update(CollectionDocument)
                .where(CollectionDocument.document_id == document_store.document_id)
                .values(content={"minerals": [{"name": "no id"}]})
            )
            session.commit()
        finally:
            session.close()
        with pytest.raises(DocumentStoreError):
            document_store.load()
