"""Web research and caching tools for the ContentOps backend."""

from .aggregator import SearchAggregator
from .cache import CacheStoreName, ContentCache, PeriodicSweeper, TTLStore
from .inflight import InFlightDeduplicator
from .providers import BraveSearchProvider, SearchProvider, TavilySearchProvider, build_providers

__all__ = [
    "BraveSearchProvider",
    "CacheStoreName",
    "ContentCache",
    "InFlightDeduplicator",
    "PeriodicSweeper",
    "SearchAggregator",
    "SearchProvider",
    "TTLStore",
    "TavilySearchProvider",
    "build_providers",
]
