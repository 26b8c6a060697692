"""Shared fixtures."""

import pytest

from src.crawler.log_sink import ExecutionLogSink


@pytest.fixture
def log_sink():
    """Log sink that never talks to the backend."""
    return ExecutionLogSink(execution_id=None, site="Italist", enabled=False)
