"""Link coordinator that keeps link documents and reciprocal fields in sync.

Each event handled here is a short sequence of idempotent steps: read the
current state, compute the difference against the desired state, write the
difference. Re-running an event after a partial failure converges on the same
end state, since every step reconciles sets rather than appending.

No locking is done. Two writers racing between the read and the bulk write can
still produce duplicate or missing links; stale revisions are reported as
conflicts so the caller can re-run the whole event.
"""

from collections.abc import Mapping

import structlog
from pydantic import BaseModel, Field

from linksync.errors import (
    DocumentConflictError,
    DocumentNotFoundError,
    MalformedSchemaError,
    PartialBulkWriteError,
    SchemaPropagationError,
)
from linksync.models.bulk import BulkFailure
from linksync.models.fields import LinkField
from linksync.models.link import LinkDocument, make_link_document
from linksync.models.model import Model
from linksync.models.record import Record
from linksync.services.document_store import DocumentStore
from linksync.services.link_query import LinkQuery


class LinkPlan(BaseModel):
    """Link documents to create and to tombstone for one record."""

    creates: list[LinkDocument] = Field(default_factory=list)
    deletes: list[LinkDocument] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def operations(self) -> list[LinkDocument]:
        return [*self.creates, *self.deletes]

    def is_empty(self) -> bool:
        return not self.creates and not self.deletes


class LinkResult(BaseModel):
    """Summary of what one event changed."""

    created: int = Field(default=0, ge=0)
    deleted: int = Field(default=0, ge=0)
    models_updated: int = Field(default=0, ge=0)
    skipped: bool = False

    model_config = {"frozen": True}


def has_link_fields(model: Model) -> bool:
    """Return True if any field in the model's schema is a link field."""
    return any(True for _ in model.link_fields())


def plan_record_links(
    model: Model,
    record: Record,
    existing: Mapping[str, list[LinkDocument]],
) -> LinkPlan:
    """Diff a record's link field values against its stored link documents.

    Args:
        model: The record's model.
        record: The record as saved.
        existing: Stored link documents per link field name, as returned by
            the link query for (field, record).

    Returns:
        LinkPlan creating links for newly referenced ids and tombstoning links
        to ids no longer referenced. Ids present on both sides are untouched;
        if more than one document joins the same pair, the extras are removed.
    """
    creates: list[LinkDocument] = []
    deletes: list[LinkDocument] = []

    for field_name, field in model.link_fields():
        current: dict[str, list[LinkDocument]] = {}
        for link in existing.get(field_name, []):
            other = link.other_side(model.model_id, field_name, record.record_id)
            if other is None:
                continue
            current.setdefault(other.record_id, []).append(link)

        desired = record.link_ids(field_name)
        desired_set = set(desired)

        for linked_id in desired:
            if linked_id not in current:
                creates.append(
                    make_link_document(
                        model.model_id,
                        field_name,
                        record.record_id,
                        field.model_id,
                        field.field_name,
                        linked_id,
                    )
                )

        for linked_id, links in current.items():
            stale = links if linked_id not in desired_set else links[1:]
            deletes.extend(link.tombstone() for link in stale)

    return LinkPlan(creates=creates, deletes=deletes)


class LinkCoordinator:
    """Applies the link changes required by one record or model event.

    A coordinator is built per event. The model and record may be supplied
    up front to avoid a store round trip; otherwise the model is fetched by id
    on first use and cached for the coordinator's lifetime.
    """

    def __init__(
        self,
        instance_id: str,
        model_id: str,
        store: DocumentStore,
        link_query: LinkQuery,
        model: Model | None = None,
        record: Record | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._instance_id = instance_id
        self._model_id = model_id
        self._store = store
        self._link_query = link_query
        self._model = model
        self._record = record
        logger = logger or structlog.get_logger(__name__)
        self._logger = logger.bind(instance_id=instance_id, model_id=model_id)

    @property
    def instance_id(self) -> str:
        return self._instance_id

    async def model(self) -> Model:
        """Return the event's model, fetching it from the store once if needed.

        Raises:
            DocumentNotFoundError: If the model id does not exist.
        """
        if self._model is None:
            self._model = await self._store.get_model(self._model_id)
        return self._model

    async def query_links(
        self,
        field_name: str | None = None,
        record_id: str | None = None,
    ) -> list[LinkDocument]:
        """Link documents of this model, optionally narrowed to a field and record."""
        return await self._link_query.get_link_documents(
            model_id=self._model_id,
            field_name=field_name,
            record_id=record_id,
        )

    async def record_saved(self) -> LinkResult:
        """Create and remove link documents so they match the saved record."""
        model = await self.model()
        record = self._require_record("record_saved")

        existing: dict[str, list[LinkDocument]] = {}
        for field_name, _ in model.link_fields():
            existing[field_name] = await self.query_links(field_name, record.record_id)

        plan = plan_record_links(model, record, existing)
        await self._bulk_write(plan.operations)

        self._logger.info(
            "links_reconciled",
            record_id=record.record_id,
            created=len(plan.creates),
            deleted=len(plan.deletes),
        )
        return LinkResult(created=len(plan.creates), deleted=len(plan.deletes))

    async def record_deleted(self) -> LinkResult:
        """Remove every link document of the deleted record, across all fields."""
        record = self._require_record("record_deleted")

        links = await self.query_links(record_id=record.record_id)
        await self._bulk_write([link.tombstone() for link in links])

        self._logger.info(
            "record_links_removed",
            record_id=record.record_id,
            deleted=len(links),
        )
        return LinkResult(deleted=len(links))

    async def model_saved(self) -> LinkResult:
        """Declare the reciprocal field on every model this one links to.

        Each link field is handled on its own. Failures are collected per
        field and raised together once every field has been attempted.

        Raises:
            SchemaPropagationError: If any linked model could not be updated.
        """
        model = await self.model()
        failures: dict[str, Exception] = {}
        updated = 0

        for field_name, field in model.link_fields():
            try:
                if await self._upsert_reciprocal(model, field_name, field):
                    updated += 1
            except (DocumentNotFoundError, DocumentConflictError, MalformedSchemaError) as e:
                self._logger.warning(
                    "reciprocal_field_update_failed",
                    field_name=field_name,
                    linked_model_id=field.model_id,
                    error=str(e),
                )
                failures[field_name] = e

        if failures:
            raise SchemaPropagationError(model.model_id, failures)

        return LinkResult(models_updated=updated)

    async def model_deleted(self) -> LinkResult:
        """Drop reciprocal fields from linked models and purge this model's links.

        The link purge runs even when some reciprocal fields could not be
        removed, so a retry only has schema work left to do.

        Raises:
            SchemaPropagationError: If any linked model could not be updated.
            PartialBulkWriteError: If some link documents could not be removed.
        """
        model = await self.model()
        failures: dict[str, Exception] = {}
        updated = 0

        for field_name, field in model.link_fields():
            try:
                if await self._remove_reciprocal(model, field_name, field):
                    updated += 1
            except (DocumentNotFoundError, DocumentConflictError, MalformedSchemaError) as e:
                self._logger.warning(
                    "reciprocal_field_removal_failed",
                    field_name=field_name,
                    linked_model_id=field.model_id,
                    error=str(e),
                )
                failures[field_name] = e

        links = await self.query_links()
        await self._bulk_write([link.tombstone() for link in links])
        self._logger.info("model_links_removed", deleted=len(links))

        if failures:
            raise SchemaPropagationError(model.model_id, failures)

        return LinkResult(deleted=len(links), models_updated=updated)

    async def _upsert_reciprocal(self, model: Model, field_name: str, field: LinkField) -> bool:
        linked_model = await self._store.get_model(field.model_id)
        reciprocal = LinkField(
            name=model.name,
            model_id=model.model_id,
            field_name=field_name,
        )
        if linked_model.field_schema.get(field.field_name) == reciprocal:
            return False

        await self._store.put_model(linked_model.with_field(field.field_name, reciprocal))
        self._logger.info(
            "reciprocal_field_upserted",
            field_name=field_name,
            linked_model_id=field.model_id,
            linked_field_name=field.field_name,
        )
        return True

    async def _remove_reciprocal(self, model: Model, field_name: str, field: LinkField) -> bool:
        linked_model = await self._store.get_model(field.model_id)
        stale = [
            name
            for name, definition in linked_model.link_fields()
            if definition.points_to(model.model_id, field_name)
            or (name == model.name and definition.model_id == model.model_id)
        ]
        if not stale:
            return False

        for name in stale:
            linked_model = linked_model.without_field(name)
        await self._store.put_model(linked_model)
        self._logger.info(
            "reciprocal_field_removed",
            field_name=field_name,
            linked_model_id=field.model_id,
            removed=stale,
        )
        return True

    async def _bulk_write(self, docs: list[LinkDocument]) -> None:
        """Write link documents in one bulk call, surfacing per-item failures."""
        if not docs:
            return

        results = await self._store.bulk_docs(docs)
        failures = [
            BulkFailure(link=doc, error=result.error or "unknown")
            for doc, result in zip(docs, results)
            if not result.ok
        ]
        if failures:
            self._logger.warning(
                "bulk_write_partial_failure",
                failed=len(failures),
                applied=len(docs) - len(failures),
                failed_link_ids=[failure.link.link_id for failure in failures],
            )
            raise PartialBulkWriteError(failures, applied=len(docs) - len(failures))

    def _require_record(self, operation: str) -> Record:
        if self._record is None:
            raise ValueError(f"{operation} requires the record in the event data")
        if self._record.model_id != self._model_id:
            raise ValueError(
                f"{operation} got a record of model {self._record.model_id!r}, expected {self._model_id!r}"
            )
        return self._record
