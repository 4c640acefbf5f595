"""Document store for models, records and link documents, backed by SQLite.

Uses SQLAlchemy's native async support with aiosqlite. Every document carries
a revision; writes must present the current revision or fail with a conflict,
which gives callers cheap optimistic concurrency without locks.
"""

from uuid import uuid4

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel import SQLModel

from linksync.errors import DocumentConflictError, DocumentNotFoundError, MalformedSchemaError
from linksync.models.bulk import BulkResult
from linksync.models.link import LinkDocument, LinkSide
from linksync.models.model import Model
from linksync.models.record import Record
from linksync.models.tables import LinkRow, ModelRow, RecordRow

CONFLICT = "conflict"
NOT_FOUND = "not_found"


def next_rev(current: str | None) -> str:
    """Return the revision following ``current`` as ``<generation>-<hex>``."""
    generation = 0
    if current:
        generation = int(current.split("-", 1)[0])
    return f"{generation + 1}-{uuid4().hex}"


class DocumentStore:
    """Persists models, records and link documents for one instance.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._logger.info("document_store_initialized")

    async def close(self) -> None:
        await self._engine.dispose()

    async def get_model(self, model_id: str) -> Model:
        """Fetch a model by id.

        Raises:
            DocumentNotFoundError: If no model has this id.
            MalformedSchemaError: If the stored schema does not validate.
        """
        async with AsyncSession(self._engine) as session:
            row = await session.get(ModelRow, model_id)
            if row is None:
                raise DocumentNotFoundError(model_id, kind="model")
            return self._row_to_model(row)

    async def put_model(self, model: Model) -> Model:
        """Create or update a model, returning it with its new revision.

        Raises:
            DocumentConflictError: If ``model.rev`` is not the stored revision.
        """
        body = model.model_copy(update={"rev": None}).to_record()
        async with AsyncSession(self._engine) as session:
            existing = await session.get(ModelRow, model.model_id)
            if existing is not None:
                if existing.rev != model.rev:
                    raise DocumentConflictError(model.model_id, model.rev, existing.rev)
                rev = next_rev(existing.rev)
                existing.rev = rev
                existing.name = model.name
                existing.body = body
            else:
                if model.rev is not None:
                    raise DocumentConflictError(model.model_id, model.rev, None)
                rev = next_rev(None)
                session.add(ModelRow(doc_id=model.model_id, rev=rev, name=model.name, body=body))
            await session.commit()
        self._logger.debug("model_saved", model_id=model.model_id, rev=rev)
        return model.with_rev(rev)

    async def delete_model(self, model_id: str) -> None:
        async with AsyncSession(self._engine) as session:
            row = await session.get(ModelRow, model_id)
            if row is None:
                raise DocumentNotFoundError(model_id, kind="model")
            await session.delete(row)
            await session.commit()
        self._logger.debug("model_deleted", model_id=model_id)

    async def get_record(self, record_id: str) -> Record:
        async with AsyncSession(self._engine) as session:
            row = await session.get(RecordRow, record_id)
            if row is None:
                raise DocumentNotFoundError(record_id, kind="record")
            data = dict(row.body)
            data["_rev"] = row.rev
            return Record.model_validate(data)

    async def put_record(self, record: Record) -> Record:
        """Create or update a record, returning it with its new revision.

        Raises:
            DocumentConflictError: If ``record.rev`` is not the stored revision.
        """
        body = record.model_copy(update={"rev": None}).to_record()
        async with AsyncSession(self._engine) as session:
            existing = await session.get(RecordRow, record.record_id)
            if existing is not None:
                if existing.rev != record.rev:
                    raise DocumentConflictError(record.record_id, record.rev, existing.rev)
                rev = next_rev(existing.rev)
                existing.rev = rev
                existing.owner_model_id = record.model_id
                existing.body = body
            else:
                if record.rev is not None:
                    raise DocumentConflictError(record.record_id, record.rev, None)
                rev = next_rev(None)
                session.add(
                    RecordRow(doc_id=record.record_id, rev=rev, owner_model_id=record.model_id, body=body)
                )
            await session.commit()
        self._logger.debug("record_saved", record_id=record.record_id, model_id=record.model_id, rev=rev)
        return record.with_rev(rev)

    async def delete_record(self, record_id: str) -> None:
        async with AsyncSession(self._engine) as session:
            row = await session.get(RecordRow, record_id)
            if row is None:
                raise DocumentNotFoundError(record_id, kind="record")
            await session.delete(row)
            await session.commit()
        self._logger.debug("record_deleted", record_id=record_id)

    async def get_link(self, link_id: str) -> LinkDocument:
        async with AsyncSession(self._engine) as session:
            row = await session.get(LinkRow, link_id)
            if row is None:
                raise DocumentNotFoundError(link_id, kind="link")
            return row_to_link(row)

    async def bulk_docs(self, docs: list[LinkDocument]) -> list[BulkResult]:
        """Apply creations, updates and tombstones of link documents.

        Each item is checked on its own: a stale revision or a vanished target
        produces a failed result for that item only, and every other item is
        still written.

        Args:
            docs: Link documents to write; ``deleted=True`` removes the document.

        Returns:
            One BulkResult per input document, in input order.
        """
        if not docs:
            return []

        results: list[BulkResult] = []
        async with AsyncSession(self._engine) as session:
            for doc in docs:
                results.append(await self._apply_link(session, doc))
            await session.commit()

        failed = [result for result in results if not result.ok]
        self._logger.debug(
            "bulk_docs_applied",
            count=len(docs),
            failed=len(failed),
        )
        return results

    async def _apply_link(self, session: AsyncSession, doc: LinkDocument) -> BulkResult:
        link_id = doc.link_id or uuid4().hex
        row = await session.get(LinkRow, link_id) if doc.link_id else None

        if row is None:
            if doc.deleted:
                return BulkResult(link_id=link_id, ok=False, error=NOT_FOUND)
            if doc.rev is not None:
                return BulkResult(link_id=link_id, ok=False, error=CONFLICT)
            rev = next_rev(None)
            session.add(link_to_row(doc.with_identity(link_id, rev)))
            return BulkResult(link_id=link_id, rev=rev)

        if row.rev != doc.rev:
            return BulkResult(link_id=link_id, ok=False, error=CONFLICT)

        rev = next_rev(row.rev)
        if doc.deleted:
            await session.delete(row)
            return BulkResult(link_id=link_id, rev=rev)

        updated = link_to_row(doc.with_identity(link_id, rev))
        row.rev = rev
        row.side1_model_id = updated.side1_model_id
        row.side1_field_name = updated.side1_field_name
        row.side1_record_id = updated.side1_record_id
        row.side2_model_id = updated.side2_model_id
        row.side2_field_name = updated.side2_field_name
        row.side2_record_id = updated.side2_record_id
        return BulkResult(link_id=link_id, rev=rev)

    def _row_to_model(self, row: ModelRow) -> Model:
        """Convert a stored row to a Model, restoring the revision column."""
        data = dict(row.body)
        data["_rev"] = row.rev
        try:
            return Model.model_validate(data)
        except ValidationError as e:
            raise MalformedSchemaError(row.doc_id, str(e)) from e


def link_to_row(link: LinkDocument) -> LinkRow:
    """Flatten a LinkDocument into one column per side attribute."""
    if link.link_id is None or link.rev is None:
        raise ValueError("link document must have an id and revision before it is stored")
    return LinkRow(
        link_id=link.link_id,
        rev=link.rev,
        schema_version=link.schema_version,
        side1_model_id=link.side1.model_id,
        side1_field_name=link.side1.field_name,
        side1_record_id=link.side1.record_id,
        side2_model_id=link.side2.model_id,
        side2_field_name=link.side2.field_name,
        side2_record_id=link.side2.record_id,
    )


def row_to_link(row: LinkRow) -> LinkDocument:
    return LinkDocument(
        link_id=row.link_id,
        rev=row.rev,
        schema_version=row.schema_version,
        side1=LinkSide(
            model_id=row.side1_model_id,
            field_name=row.side1_field_name,
            record_id=row.side1_record_id,
        ),
        side2=LinkSide(
            model_id=row.side2_model_id,
            field_name=row.side2_field_name,
            record_id=row.side2_record_id,
        ),
    )


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        # aiosqlite keeps one shared connection for in-memory databases
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)
