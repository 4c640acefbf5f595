"""Routes store events to a link coordinator.

The dispatcher stands in for the event source: it picks the instance's store,
skips models without link fields, and re-runs an event from scratch when the
store reports a revision conflict.
"""

import structlog

from linksync.errors import (
    DocumentConflictError,
    LinkSyncError,
    PartialBulkWriteError,
    SchemaPropagationError,
)
from linksync.models.enums import LinkEventKind
from linksync.models.event import LinkEvent
from linksync.services.instances import InstanceRegistry
from linksync.services.link_coordinator import LinkCoordinator, LinkResult, has_link_fields


def is_retryable(error: Exception) -> bool:
    """Return True if re-running the whole event can resolve the error."""
    if isinstance(error, DocumentConflictError):
        return True
    if isinstance(error, (PartialBulkWriteError, SchemaPropagationError)):
        return error.retryable
    return False


class LinkEventDispatcher:
    """Runs the coordinator operation matching each event kind."""

    DEFAULT_MAX_CONFLICT_RETRIES = 3

    def __init__(
        self,
        registry: InstanceRegistry,
        max_conflict_retries: int | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if max_conflict_retries is not None and max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be non-negative")
        self._registry = registry
        self._max_conflict_retries = (
            self.DEFAULT_MAX_CONFLICT_RETRIES if max_conflict_retries is None else max_conflict_retries
        )
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def registry(self) -> InstanceRegistry:
        return self._registry

    async def dispatch(self, event: LinkEvent) -> LinkResult:
        """Handle one event, retrying on revision conflicts.

        Args:
            event: The store event and its data.

        Returns:
            LinkResult describing what changed.

        Raises:
            LinkSyncError: Any store failure that is not a conflict, or a
                conflict that persists past the retry limit.
        """
        attempt = 0
        while True:
            try:
                return await self._dispatch_once(event)
            except LinkSyncError as e:
                if not is_retryable(e) or attempt >= self._max_conflict_retries:
                    raise
                attempt += 1
                self._logger.warning(
                    "link_event_conflict_retry",
                    instance_id=event.instance_id,
                    kind=event.kind.value,
                    model_id=event.model_id,
                    attempt=attempt,
                    error=str(e),
                )

    async def _dispatch_once(self, event: LinkEvent) -> LinkResult:
        services = await self._registry.get(event.instance_id)
        coordinator = LinkCoordinator(
            instance_id=event.instance_id,
            model_id=event.model_id,
            store=services.store,
            link_query=services.link_query,
            model=event.event_data.model,
            record=event.event_data.record,
            logger=self._logger,
        )

        model = await coordinator.model()
        if not has_link_fields(model):
            self._logger.debug(
                "link_event_skipped",
                instance_id=event.instance_id,
                kind=event.kind.value,
                model_id=event.model_id,
            )
            return LinkResult(skipped=True)

        handlers = {
            LinkEventKind.RECORD_SAVED: coordinator.record_saved,
            LinkEventKind.RECORD_DELETED: coordinator.record_deleted,
            LinkEventKind.MODEL_SAVED: coordinator.model_saved,
            LinkEventKind.MODEL_DELETED: coordinator.model_deleted,
        }
        result = await handlers[event.kind]()

        self._logger.info(
            "link_event_handled",
            instance_id=event.instance_id,
            kind=event.kind.value,
            model_id=event.model_id,
            created=result.created,
            deleted=result.deleted,
            models_updated=result.models_updated,
        )
        return result
