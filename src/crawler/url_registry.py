"""Run-scoped registry of URLs already turned into tasks."""

import asyncio


class SeenUrlSet:
    """Set of URLs seen in one crawl run; insertions are serialised."""

    def __init__(self):
        self._urls: set[str] = set()
        self._lock = asyncio.Lock()

    async def add_if_new(self, url: str) -> bool:
        """Insert ``url``; return False if it was already present."""
        async with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    async def add(self, url: str) -> None:
        async with self._lock:
            self._urls.add(url)

    def __contains__(self, url: str) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)
