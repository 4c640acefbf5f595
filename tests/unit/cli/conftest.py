"""CLI test harness wiring."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def _uncached_structlog_loggers() -> None:
    # CliRunner swaps in a fresh stderr per invoke and closes it afterwards, so
    # loggers must not keep the stream they saw on first use.
    structlog.configure(cache_logger_on_first_use=False)
