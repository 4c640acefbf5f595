"""Factory functions for creating and wiring link services.

Provides production factories backed by SQLite files on disk and test
factories that keep every instance in memory.
"""

from pathlib import Path

import structlog

from linksync.services.dispatcher import LinkEventDispatcher
from linksync.services.instances import InstanceRegistry

DEFAULT_DATA_DIR = Path(".linksync")


def create_dispatcher(
    data_dir: Path = DEFAULT_DATA_DIR,
    max_conflict_retries: int | None = None,
) -> LinkEventDispatcher:
    """Create a LinkEventDispatcher with one SQLite database per instance.

    Args:
        data_dir: Directory for instance databases (``<instance>.db``).
        max_conflict_retries: How many times an event is re-run after a
            revision conflict. Defaults to the dispatcher's default.

    Returns:
        Configured LinkEventDispatcher ready for use.
    """
    logger = structlog.get_logger(__name__)

    data_dir.mkdir(parents=True, exist_ok=True)
    registry = InstanceRegistry(data_dir=data_dir, logger=logger)

    return LinkEventDispatcher(
        registry=registry,
        max_conflict_retries=max_conflict_retries,
        logger=logger,
    )


def create_test_dispatcher(max_conflict_retries: int | None = None) -> LinkEventDispatcher:
    """Create a LinkEventDispatcher whose instances live in memory.

    Each call creates independent storage, so tests don't interfere.
    """
    logger = structlog.get_logger(__name__)
    registry = InstanceRegistry(data_dir=None, logger=logger)

    return LinkEventDispatcher(
        registry=registry,
        max_conflict_retries=max_conflict_retries,
        logger=logger,
    )
