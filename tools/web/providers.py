"""Web search providers, each normalized to ``SearchResult``."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from models.errors import ParseError, UpstreamError
from models.pipeline import SearchProviderName, SearchResult
from utils.http import RetryPolicy, fetch_resilient

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
TAVILY_SEARCH_URL = "https://api.tavily.com/search"
MAX_SNIPPET_CHARS = 320


def _trim_text(text: Any, limit: int = MAX_SNIPPET_CHARS) -> str:
    raw = str(text or "").strip()
    if len(raw) <= limit:
        return raw
    return raw[: limit - 3].rstrip() + "..."


def _normalize(items: Any, provider: SearchProviderName, snippet_field: str, count: int) -> list[SearchResult]:
    if not isinstance(items, list):
        raise ParseError(f"{provider.value} response", "result list missing")
    results: list[SearchResult] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = str(item.get("url") or "").strip()
        if not url:
            continue
        results.append(
            SearchResult(
                title=_trim_text(item.get("title"), limit=180) or url,
                url=url,
                snippet=_trim_text(item.get(snippet_field)),
                source_provider=provider,
            )
        )
    return results[:count]


class SearchProvider(ABC):
    """One external search API. Raises the shared error taxonomy on failure."""

    name: SearchProviderName

    def __init__(self, http_client: httpx.AsyncClient, retry_policy: RetryPolicy | None = None):
        self.http_client = http_client
        self.retry_policy = retry_policy or RetryPolicy(timeout_s=10.0, max_attempts=2)

    @abstractmethod
    async def search(self, query: str, api_key: str, count: int) -> list[SearchResult]:
        ...

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise UpstreamError(self.name.value, response.status_code, response.text[:200])

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"{self.name.value} response", f"body is not JSON: {e}") from e


class BraveSearchProvider(SearchProvider):
    name = SearchProviderName.BRAVE

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        base_url: str = BRAVE_SEARCH_URL,
    ):
        super().__init__(http_client, retry_policy)
        self.base_url = base_url

    async def search(self, query: str, api_key: str, count: int) -> list[SearchResult]:
        response = await fetch_resilient(
            self.http_client,
            "GET",
            self.base_url,
            policy=self.retry_policy,
            params={"q": query, "count": count},
            headers={"Accept": "application/json", "X-Subscription-Token": api_key},
        )
        self._raise_for_status(response)
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise ParseError("brave response", "body is not an object")
        # Brave omits the "web" section entirely when nothing matched
        web = payload.get("web") or {}
        return _normalize(web.get("results", []), self.name, "description", count)


class TavilySearchProvider(SearchProvider):
    name = SearchProviderName.TAVILY

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        base_url: str = TAVILY_SEARCH_URL,
    ):
        super().__init__(http_client, retry_policy)
        self.base_url = base_url

    async def search(self, query: str, api_key: str, count: int) -> list[SearchResult]:
        response = await fetch_resilient(
            self.http_client,
            "POST",
            self.base_url,
            policy=self.retry_policy,
            json={
                "api_key": api_key,
                "query": query,
                "search_depth": "basic",
                "include_answer": False,
                "max_results": max(1, min(int(count), 10)),
            },
        )
        self._raise_for_status(response)
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise ParseError("tavily response", "body is not an object")
        return _normalize(payload.get("results", []), self.name, "content", count)


def build_providers(
    http_client: httpx.AsyncClient, retry_policy: RetryPolicy | None = None
) -> dict[SearchProviderName, SearchProvider]:
    return {
        SearchProviderName.BRAVE: BraveSearchProvider(http_client, retry_policy),
        SearchProviderName.TAVILY: TavilySearchProvider(http_client, retry_policy),
    }
