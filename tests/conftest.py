import asyncio
import inspect

import pytest

from api.base_client import BaseLLMClient, LLMResponse, TokenUsage
from config.config import Settings
from models.pipeline import SearchProviderName, SearchResult
from tools.web.providers import SearchProvider


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLLMClient(BaseLLMClient):
    """
    Replays scripted answers in order.

    Each scripted item is a string, an exception to raise, or an async
    callable ``(prompt) -> str``.
    """

    provider_name = "fake"

    def __init__(self, responses):
        super().__init__(api_key="test-key", model_name="fake-model")
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, prompt, *, system=None, max_tokens=1024):
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens})
        if not self._responses:
            raise AssertionError("FakeLLMClient ran out of scripted responses")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(prompt)
            if inspect.isawaitable(item):
                item = await item
        return LLMResponse(
            text=item, provider=self.provider_name, model=self.model_name, usage=TokenUsage(1, 1)
        )


class FakeSearchProvider(SearchProvider):
    """Answers from a dict of ``query -> [SearchResult]``; records every call."""

    def __init__(self, name: SearchProviderName, results=None, errors=None, delay_s: float = 0.0):
        super().__init__(http_client=None)
        self.name = name
        self.results = results or {}
        self.errors = errors or {}
        self.delay_s = delay_s
        self.calls: list[tuple[str, str, int]] = []
        self.active = 0
        self.max_active = 0

    async def search(self, query, api_key, count):
        self.calls.append((query, api_key, count))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if query in self.errors:
                raise self.errors[query]
            return list(self.results.get(query, []))[:count]
        finally:
            self.active -= 1


def make_result(url: str, title: str = "Title", snippet: str = "Snippet",
                provider: SearchProviderName = SearchProviderName.BRAVE) -> SearchResult:
    return SearchResult(title=title, url=url, snippet=snippet, source_provider=provider)


def make_settings(**overrides) -> Settings:
    settings = Settings(load_env_file=False)
    settings.SEARCH_BATCH_DELAY_S = 0.0
    for name, value in overrides.items():
        setattr(settings, name, value)
    return settings


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def mock_env(monkeypatch):
    """Fixture to mock environment variables for testing."""
    env_vars = {
        "RATE_LIMIT_MAX": "5",
        "SEARCH_CACHE_TTL_S": "120",
        "CORS_ALLOW_ORIGINS": "https://a.example, https://b.example",
        "INTEGRITY_POLICY": "FALLBACK",
        "DEBUG_ERRORS": "true",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars
