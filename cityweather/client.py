# City Weather Service - Lookup Client
# Async client for GET /city with debounced, ordered live search

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

import httpx

logger = logging.getLogger(__name__)


class CityLookupClient:
    """
    Async client for the city lookup endpoint.

    Usage:
        async with CityLookupClient("http://localhost:9000") as client:
            cities = await client.search("amst")
    """

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport = None):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def search(self, query: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return matching city entries; an empty query is answered locally."""
        if not query:
            return []

        params = {"q": query}
        if limit is not None:
            params["limit"] = limit

        response = await self._client.get("/city", params=params)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CityLookupClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class SearchSequencer:
    """Hands out increasing generation numbers; only the latest is current."""

    def __init__(self):
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, generation: int) -> bool:
        return generation == self._latest

    @property
    def latest(self) -> int:
        return self._latest


class LiveCitySearch:
    """
    Search-as-you-type driver.

    Every ``type()`` call issues a new generation. A search only starts once
    its generation survived the debounce delay, and its results are handed to
    ``on_results`` only if no newer call was issued in the meantime, so a
    slow stale response can never replace newer results.
    """

    def __init__(
        self,
        client: CityLookupClient,
        on_results: Callable[[str, List[Dict[str, Any]]], None],
        debounce: float = 0.2,
        limit: Optional[int] = None,
    ):
        self.client = client
        self.on_results = on_results
        self.debounce = debounce
        self.limit = limit
        self.sequencer = SearchSequencer()
        self.discarded = 0
        self.last_error: Optional[Exception] = None
        self._tasks: Set[asyncio.Task] = set()

    def type(self, query: str) -> int:
        """Register the current input text. Must be called from a running event loop."""
        generation = self.sequencer.issue()
        task = asyncio.create_task(self._run(generation, query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return generation

    async def _run(self, generation: int, query: str) -> None:
        await asyncio.sleep(self.debounce)
        if not self.sequencer.is_current(generation):
            return

        try:
            results = await self.client.search(query, limit=self.limit)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"City search for {query!r} failed: {e}")
            self.last_error = e
            return

        if not self.sequencer.is_current(generation):
            self.discarded += 1
            logger.debug(f"Discarding stale results for {query!r} (generation {generation})")
            return

        self.on_results(query, results)

    async def flush(self) -> None:
        """Wait for every scheduled search to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
