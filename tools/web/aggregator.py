"""Batched multi-provider search with a result cache and global URL dedup."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence

import httpx

from models.errors import ContentOpsError
from models.pipeline import QueryResults, SearchBatchOutcome, SearchProviderName, SearchResult
from utils.hashing import search_cache_key
from utils.logger import get_logger

from .cache import CacheStoreName, ContentCache
from .providers import SearchProvider

logger = get_logger(__name__)


class SearchAggregator:
    """
    Runs queries against every supplied provider and merges the answers.

    Search failures never propagate: a provider that times out, answers
    non-2xx or returns a malformed body contributes an empty list.
    """

    def __init__(
        self,
        providers: Mapping[SearchProviderName, SearchProvider],
        cache: ContentCache,
        batch_size: int = 3,
        batch_delay_s: float = 0.6,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.providers = dict(providers)
        self.cache = cache
        self.batch_size = batch_size
        self.batch_delay_s = batch_delay_s
        self._sleep = sleep

    async def search(
        self, query: str, provider: SearchProviderName, api_key: str, count: int
    ) -> list[SearchResult]:
        key = search_cache_key(provider.value, query, count)
        cached = self.cache.get(CacheStoreName.SEARCH, key)
        if cached is not None:
            logger.debug(
                "Search cache hit",
                extra={"extra_fields": {"provider": provider.value, "query": query}},
            )
            return list(cached)

        search_provider = self.providers.get(provider)
        if search_provider is None:
            logger.warning(
                "No search provider registered", extra={"extra_fields": {"provider": provider.value}}
            )
            return []

        try:
            results = await search_provider.search(query, api_key, count)
        except (ContentOpsError, httpx.HTTPError) as e:
            logger.warning(
                "Search failed, continuing without results",
                extra={
                    "extra_fields": {
                        "provider": provider.value,
                        "query": query,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }
                },
            )
            return []

        self.cache.set(CacheStoreName.SEARCH, key, tuple(results))
        return list(results)

    async def run_batch(
        self,
        queries: Sequence[str],
        provider_keys: Mapping[SearchProviderName, str],
        per_query_count: int = 5,
    ) -> SearchBatchOutcome:
        """
        Search every query with every provider, ``batch_size`` queries at a time.

        Within a batch all (query, provider) calls run concurrently; batches
        are separated by ``batch_delay_s``. Results are deduplicated by URL
        across the whole run, first occurrence winning in query order and,
        within a query, in provider order.
        """
        providers = [p for p in SearchProviderName if p in provider_keys]
        groups: list[QueryResults] = []

        for start in range(0, len(queries), self.batch_size):
            if start > 0 and self.batch_delay_s > 0:
                await self._sleep(self.batch_delay_s)

            batch = list(queries[start:start + self.batch_size])
            calls = [
                self.search(query, provider, provider_keys[provider], per_query_count)
                for query in batch
                for provider in providers
            ]
            answers = await asyncio.gather(*calls)

            for offset, query in enumerate(batch):
                per_provider = answers[offset * len(providers):(offset + 1) * len(providers)]
                merged = tuple(result for answer in per_provider for result in answer)
                groups.append(QueryResults(query=query, results=merged))

        unique = dedupe_by_url(result for group in groups for result in group.results)
        outcome = SearchBatchOutcome(
            groups=tuple(groups),
            unique_results=tuple(unique),
            searches_attempted=len(queries) * len(providers),
        )
        logger.info(
            "Search batch complete",
            extra={
                "extra_fields": {
                    "queries": len(queries),
                    "providers": [p.value for p in providers],
                    "searches_attempted": outcome.searches_attempted,
                    "unique_results": outcome.unique_count,
                }
            },
        )
        return outcome


def dedupe_by_url(results) -> list[SearchResult]:
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
    return unique
