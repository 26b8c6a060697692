"""Structured execution log sink.

Events are written to the local log, kept in a bounded in-memory ring for
status queries, and forwarded to the catalog backend's log endpoint when the
run has an execution id.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import httpx

from src.config import settings
from src.logging_config import get_logger

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Levels accepted by the backend log endpoint."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


_STDLIB_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.DEBUG: logging.DEBUG,
}


class ExecutionLogSink:
    """Emits ``{executionId, level, message, context}`` events for one run."""

    def __init__(
        self,
        execution_id: Optional[str] = None,
        site: str = "",
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        enabled: Optional[bool] = None,
        history_size: int = 500,
    ):
        self.execution_id = execution_id
        self.site = site
        self.endpoint = endpoint or settings.log_api_endpoint
        self.enabled = settings.log_api_enabled if enabled is None else enabled
        self.events: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._client = client
        self._owns_client = client is None
        self._log = get_logger(f"{__name__}.{site or 'crawler'}", execution_id=execution_id, site=site)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.log_api_timeout)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def emit(
        self,
        level: LogLevel,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Record one structured event.

        Args:
            level: Event level
            message: Human-readable message
            context: Optional JSON-serialisable context
        """
        prefixed = f"[{self.site}] {message}" if self.site else message
        self._log.log(_STDLIB_LEVELS[level], prefixed, extra={"context": context or {}})

        event = {
            "executionId": self.execution_id,
            "level": level.value,
            "message": prefixed,
            "context": context or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.events.append(event)

        if self.execution_id and self.enabled:
            await self._send(event)

    async def _send(self, event: dict[str, Any]) -> None:
        try:
            client = await self._get_client()
            response = await client.post(self.endpoint, json=event)
            if response.status_code >= 400:
                logger.error(
                    f"Failed to send log to backend for execution {self.execution_id}. "
                    f"Status: {response.status_code}. Body: {response.text[:200]}"
                )
        except httpx.HTTPError as e:
            logger.error(f"Log delivery error for execution {self.execution_id}: {type(e).__name__}: {e}")

    async def info(self, message: str, **context) -> None:
        await self.emit(LogLevel.INFO, message, context)

    async def warn(self, message: str, **context) -> None:
        await self.emit(LogLevel.WARN, message, context)

    async def error(self, message: str, **context) -> None:
        await self.emit(LogLevel.ERROR, message, context)

    async def debug(self, message: str, **context) -> None:
        await self.emit(LogLevel.DEBUG, message, context)

    def recent(self, level: Optional[LogLevel] = None) -> list[dict[str, Any]]:
        if level is None:
            return list(self.events)
        return [event for event in self.events if event["level"] == level.value]
