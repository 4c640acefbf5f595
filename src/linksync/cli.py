"""Link synchronisation CLI.

Initialises instance databases, applies model/record events to keep link
documents in sync, and lists the link documents of a model.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from pydantic import ValidationError

from linksync.errors import DocumentNotFoundError, LinkSyncError
from linksync.models.enums import LinkEventKind
from linksync.models.event import LinkEvent
from linksync.models.link import LinkDocument
from linksync.services.document_store import DocumentStore
from linksync.services.factory import DEFAULT_DATA_DIR, create_dispatcher
from linksync.services.instances import InstanceRegistry
from linksync.services.link_coordinator import LinkResult

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="linksync",
    help="""Keep bidirectional link documents in sync with models and records.

Examples:

  # Create the database for an instance
  uv run linksync init inst_1

  # Apply a saved/deleted model or record event
  uv run linksync apply event.json --persist

  # List link documents of a model
  uv run linksync links inst_1 m_author --field books""",
    rich_markup_mode="markdown",
)

DATA_DIR_OPTION = typer.Option(
    str(DEFAULT_DATA_DIR),
    "--data-dir",
    "-d",
    envvar="LINKSYNC_DATA_DIR",
    help="Directory holding one database per instance",
)


@app.command()
def init(
    instance: str = typer.Argument(
        ...,
        help="Instance id to initialise",
    ),
    data_dir: str = DATA_DIR_OPTION,
) -> None:
    """Create the database tables for an instance."""

    async def run_init() -> None:
        registry = InstanceRegistry(data_dir=Path(data_dir), logger=logger)
        try:
            await registry.get(instance)
        finally:
            await registry.close()

    try:
        asyncio.run(run_init())
    except ValueError as e:
        logger.error("invalid_instance", instance=instance, error=str(e))
        raise typer.Exit(1)

    typer.echo(f"Initialised instance {instance} in {data_dir}")


@app.command()
def apply(
    event_file: str = typer.Argument(
        ...,
        help="JSON file holding the event: kind, instanceId and eventData",
    ),
    data_dir: str = DATA_DIR_OPTION,
    persist: bool = typer.Option(
        False,
        "--persist",
        "-p",
        help="Write the event's model or record to the store before syncing links",
    ),
    max_retries: Optional[int] = typer.Option(
        None,
        "--max-retries",
        help="Times to re-run the event after a revision conflict",
    ),
) -> None:
    """Apply a model or record event and bring link documents in sync."""
    path = Path(event_file)
    if not path.exists():
        logger.error("event_file_not_found", event_file=str(path))
        raise typer.Exit(1)

    try:
        event = LinkEvent.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        logger.error("invalid_event", event_file=str(path), error=str(e))
        raise typer.Exit(1)

    async def run_apply() -> LinkResult:
        dispatcher = create_dispatcher(data_dir=Path(data_dir), max_conflict_retries=max_retries)
        try:
            effective = event
            if persist:
                services = await dispatcher.registry.get(event.instance_id)
                effective = await persist_event(services.store, event)
            return await dispatcher.dispatch(effective)
        finally:
            await dispatcher.registry.close()

    try:
        result = asyncio.run(run_apply())
    except (LinkSyncError, ValueError) as e:
        logger.error("link_event_failed", kind=event.kind.value, model_id=event.model_id, error=str(e))
        typer.echo(f"Failed: {e}")
        raise typer.Exit(1)

    if result.skipped:
        typer.echo(f"Skipped: model {event.model_id} has no link fields")
        return
    typer.echo(
        f"Created {result.created} links, deleted {result.deleted} links, "
        f"updated {result.models_updated} linked models"
    )


@app.command()
def links(
    instance: str = typer.Argument(
        ...,
        help="Instance id to query",
    ),
    model_id: str = typer.Argument(
        ...,
        help="Model one side of each link belongs to",
    ),
    field: Optional[str] = typer.Option(
        None,
        "--field",
        "-f",
        help="Only links made through this field",
    ),
    record: Optional[str] = typer.Option(
        None,
        "--record",
        "-r",
        help="Only links of this record",
    ),
    data_dir: str = DATA_DIR_OPTION,
) -> None:
    """List link documents as JSON lines."""

    async def run_query() -> list[LinkDocument]:
        registry = InstanceRegistry(data_dir=Path(data_dir), logger=logger)
        try:
            services = await registry.get(instance)
            return await services.link_query.get_link_documents(
                model_id=model_id,
                field_name=field,
                record_id=record,
            )
        finally:
            await registry.close()

    try:
        found = asyncio.run(run_query())
    except ValueError as e:
        logger.error("invalid_instance", instance=instance, error=str(e))
        raise typer.Exit(1)

    for link in found:
        typer.echo(link.model_dump_json(by_alias=True, exclude_none=True))


@app.command()
def version() -> None:
    """Show version information."""
    from linksync import __version__

    typer.echo(f"linksync {__version__}")


async def persist_event(store: DocumentStore, event: LinkEvent) -> LinkEvent:
    """Write the event's document change to the store, as the store itself would.

    Saves overwrite whatever revision is stored. For model deletion the stored
    model is loaded into the event first, since the coordinator still needs
    its schema once the document is gone.
    """
    data = event.event_data

    if event.kind == LinkEventKind.MODEL_SAVED:
        if data.model is None:
            raise ValueError("model:save events need the model to persist it")
        model = data.model.model_copy(update={"rev": await _current_model_rev(store, data.model_id)})
        saved = await store.put_model(model)
        return event.model_copy(update={"event_data": data.model_copy(update={"model": saved})})

    if event.kind == LinkEventKind.RECORD_SAVED:
        if data.record is None:
            raise ValueError("record:save events need the record to persist it")
        record = data.record.model_copy(
            update={"rev": await _current_record_rev(store, data.record.record_id)}
        )
        saved = await store.put_record(record)
        return event.model_copy(update={"event_data": data.model_copy(update={"record": saved})})

    if event.kind == LinkEventKind.RECORD_DELETED:
        if data.record is None:
            raise ValueError("record:delete events need the record")
        try:
            await store.delete_record(data.record.record_id)
        except DocumentNotFoundError:
            logger.info("record_not_stored", record_id=data.record.record_id)
        return event

    model = data.model or await store.get_model(data.model_id)
    try:
        await store.delete_model(data.model_id)
    except DocumentNotFoundError:
        logger.info("model_not_stored", model_id=data.model_id)
    return event.model_copy(update={"event_data": data.model_copy(update={"model": model})})


async def _current_model_rev(store: DocumentStore, model_id: str) -> str | None:
    try:
        return (await store.get_model(model_id)).rev
    except DocumentNotFoundError:
        return None


async def _current_record_rev(store: DocumentStore, record_id: str) -> str | None:
    try:
        return (await store.get_record(record_id)).rev
    except DocumentNotFoundError:
        return None
