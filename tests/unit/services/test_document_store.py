"""Unit tests for the DocumentStore service."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from linksync.errors import DocumentConflictError, DocumentNotFoundError, MalformedSchemaError
from linksync.models.link import make_link_document
from linksync.models.model import Model
from linksync.models.record import Record
from linksync.models.tables import ModelRow
from linksync.services.document_store import (
    DocumentStore,
    create_async_engine_from_path,
    next_rev,
)


def _make_model(model_id: str = "m1", name: str = "Author") -> Model:
    return Model.model_validate(
        {
            "_id": model_id,
            "name": name,
            "schema": {"books": {"type": "link", "modelId": "m2", "fieldName": "author"}},
        }
    )


@pytest.fixture
async def store() -> DocumentStore:
    """Create a DocumentStore over an in-memory database."""
    store = DocumentStore(engine=create_async_engine_from_path(":memory:"))
    await store.initialize_schema()
    return store


def test_next_rev_increments_generation() -> None:
    assert next_rev(None).startswith("1-")
    assert next_rev("4-deadbeef").startswith("5-")


class TestDocumentStoreModels:
    """Tests for model get/put/delete."""

    async def test_put_and_get_model(self, store: DocumentStore) -> None:
        saved = await store.put_model(_make_model())

        retrieved = await store.get_model("m1")

        assert saved.rev is not None
        assert retrieved == saved
        assert retrieved.field_schema == _make_model().field_schema

    async def test_get_missing_model_raises_not_found(self, store: DocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await store.get_model("nope")

        assert exc_info.value.doc_id == "nope"

    async def test_update_requires_current_rev(self, store: DocumentStore) -> None:
        saved = await store.put_model(_make_model())
        updated = await store.put_model(saved.model_copy(update={"name": "Writer"}))

        with pytest.raises(DocumentConflictError):
            await store.put_model(saved.model_copy(update={"name": "Stale"}))

        assert (await store.get_model("m1")).name == "Writer"
        assert updated.rev.startswith("2-")

    async def test_creating_over_existing_model_conflicts(self, store: DocumentStore) -> None:
        await store.put_model(_make_model())

        with pytest.raises(DocumentConflictError):
            await store.put_model(_make_model())

    async def test_delete_model(self, store: DocumentStore) -> None:
        await store.put_model(_make_model())

        await store.delete_model("m1")

        with pytest.raises(DocumentNotFoundError):
            await store.get_model("m1")

    async def test_malformed_schema_fails_fast(self, store: DocumentStore) -> None:
        async with AsyncSession(store.engine) as session:
            session.add(
                ModelRow(
                    doc_id="bad",
                    rev="1-a",
                    name="Bad",
                    body={"_id": "bad", "name": "Bad", "schema": {"f": {"type": "link"}}},
                )
            )
            await session.commit()

        with pytest.raises(MalformedSchemaError):
            await store.get_model("bad")


class TestDocumentStoreRecords:
    """Tests for record get/put/delete."""

    async def test_put_and_get_record(self, store: DocumentStore) -> None:
        record = Record(record_id="r1", model_id="m1", values={"books": ["b1"]})

        saved = await store.put_record(record)

        assert await store.get_record("r1") == saved

    async def test_stale_record_rev_conflicts(self, store: DocumentStore) -> None:
        saved = await store.put_record(Record(record_id="r1", model_id="m1"))
        await store.put_record(saved)

        with pytest.raises(DocumentConflictError):
            await store.put_record(saved)

    async def test_delete_missing_record_raises(self, store: DocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await store.delete_record("r1")


class TestDocumentStoreBulkDocs:
    """Tests for per-item bulk link writes."""

    async def test_creates_links_with_ids_and_revs(self, store: DocumentStore) -> None:
        docs = [
            make_link_document("m1", "books", "r1", "m2", "author", "b1"),
            make_link_document("m1", "books", "r1", "m2", "author", "b2"),
        ]

        results = await store.bulk_docs(docs)

        assert all(result.ok for result in results)
        assert len({result.link_id for result in results}) == 2
        stored = await store.get_link(results[0].link_id)
        assert stored.side2.record_id == "b1"
        assert stored.rev == results[0].rev

    async def test_tombstone_removes_link(self, store: DocumentStore) -> None:
        [created] = await store.bulk_docs([make_link_document("m1", "books", "r1", "m2", "author", "b1")])
        stored = await store.get_link(created.link_id)

        [deleted] = await store.bulk_docs([stored.tombstone()])

        assert deleted.ok
        with pytest.raises(DocumentNotFoundError):
            await store.get_link(created.link_id)

    async def test_failed_items_do_not_block_others(self, store: DocumentStore) -> None:
        [created] = await store.bulk_docs([make_link_document("m1", "books", "r1", "m2", "author", "b1")])
        stored = await store.get_link(created.link_id)
        stale = stored.model_copy(update={"rev": "1-stale"}).tombstone()
        fresh = make_link_document("m1", "books", "r1", "m2", "author", "b2")
        vanished = fresh.with_identity("gone", "1-a").tombstone()

        results = await store.bulk_docs([stale, fresh, vanished])

        assert [result.ok for result in results] == [False, True, False]
        assert results[0].error == "conflict"
        assert results[2].error == "not_found"
        assert (await store.get_link(created.link_id)).rev == stored.rev
        assert (await store.get_link(results[1].link_id)).side2.record_id == "b2"

    async def test_empty_bulk_is_noop(self, store: DocumentStore) -> None:
        assert await store.bulk_docs([]) == []
