"""Per-instance store handles.

Each instance id selects its own SQLite database. Handles are opened lazily
and cached so every event for an instance shares one engine.
"""

import asyncio
import re
from pathlib import Path

import structlog

from linksync.services.document_store import DocumentStore, create_async_engine_from_path
from linksync.services.link_query import LinkQuery

_INSTANCE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class InstanceServices:
    """Store and link query sharing one engine for a single instance."""

    def __init__(self, instance_id: str, store: DocumentStore, link_query: LinkQuery) -> None:
        self.instance_id = instance_id
        self.store = store
        self.link_query = link_query

    async def close(self) -> None:
        await self.store.close()


def open_instance(
    instance_id: str,
    data_dir: Path | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> InstanceServices:
    """Create store handles for an instance without touching the database.

    Args:
        instance_id: Instance to open; becomes the database file name.
        data_dir: Directory holding instance databases, or None for in-memory.
        logger: Logger shared by the store and query.

    Raises:
        ValueError: If the instance id is not usable as a file name.
    """
    if not _INSTANCE_ID_PATTERN.match(instance_id):
        raise ValueError(f"invalid instance id: {instance_id!r}")

    logger = logger or structlog.get_logger(__name__)
    if data_dir is None:
        engine = create_async_engine_from_path(":memory:")
    else:
        data_dir.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine_from_path(str(data_dir / f"{instance_id}.db"))

    return InstanceServices(
        instance_id=instance_id,
        store=DocumentStore(engine=engine, logger=logger),
        link_query=LinkQuery(engine=engine, logger=logger),
    )


class InstanceRegistry:
    """Opens and caches InstanceServices per instance id."""

    def __init__(
        self,
        data_dir: Path | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._data_dir = data_dir
        self._logger = logger or structlog.get_logger(__name__)
        self._instances: dict[str, InstanceServices] = {}
        self._lock = asyncio.Lock()

    @property
    def data_dir(self) -> Path | None:
        return self._data_dir

    async def get(self, instance_id: str) -> InstanceServices:
        """Return the services for an instance, creating its schema on first use.

        Concurrent first calls for one instance share a single engine.
        """
        async with self._lock:
            services = self._instances.get(instance_id)
            if services is None:
                services = open_instance(instance_id, self._data_dir, self._logger)
                await services.store.initialize_schema()
                self._instances[instance_id] = services
                self._logger.debug("instance_opened", instance_id=instance_id)
            return services

    async def close(self) -> None:
        for services in self._instances.values():
            await services.close()
        self._instances.clear()
