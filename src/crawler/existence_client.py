"""Client for the catalog's bulk URL existence check."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from src.config import settings

logger = logging.getLogger(__name__)


class ExistenceCheckError(RuntimeError):
    """Raised when the existence check fails (transport error or non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExistenceCheckClient:
    """POSTs ``{urls, source}`` and returns the URLs already in the catalog."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = endpoint or settings.existence_check_url
        self.timeout = timeout or settings.existence_check_timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def batch_exists(self, urls: list[str], source: str) -> set[str]:
        """
        Ask the catalog which of ``urls`` already exist for ``source``.

        Args:
            urls: Candidate detail URLs
            source: Site name the URLs belong to

        Returns:
            Set of URLs reported as existing

        Raises:
            ExistenceCheckError: On transport failure, non-2xx status or a
                body without an ``existingUrls`` list
        """
        if not urls:
            return set()

        client = await self._get_client()
        try:
            response = await client.post(
                self.endpoint,
                json={"urls": urls, "source": source},
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ExistenceCheckError(f"Existence check request failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            body = response.text[:500]
            raise ExistenceCheckError(
                f"Existence check returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExistenceCheckError("Existence check returned invalid JSON") from e

        existing = (data.get("existingUrls") or []) if isinstance(data, dict) else None
        if not isinstance(existing, list):
            raise ExistenceCheckError(
                "Existence check returned an unexpected payload",
                status_code=response.status_code,
                body=response.text[:500],
            )
        logger.debug(f"Existence check: {len(existing)}/{len(urls)} URLs already catalogued")
        return set(existing)
