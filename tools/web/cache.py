"""In-memory TTL caches and the background sweep that bounds their size."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    created_at: float


class TTLStore:
    """
    Keyed store whose entries are valid while ``now - created_at < ttl``.

    Reads skip (and drop) stale entries even if the sweep has not reached them
    yet, so a read racing the sweep never sees an expired value.
    """

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry[Any], now: float, ttl: float) -> bool:
        return now - entry.created_at < ttl

    def get(self, key: str, ttl_seconds: float | None = None) -> Any | None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_fresh(entry, now, ttl):
                return entry.data
            # Only evict when the entry is stale under the store's own TTL
            if not self._is_fresh(entry, now, self.ttl_seconds):
                del self._entries[key]
            return None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(data=value, created_at=self._clock())

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def sweep(self) -> int:
        """Physically remove every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if not self._is_fresh(entry, now, self.ttl_seconds)
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CacheStoreName(str, Enum):
    SEARCH = "search"
    LISTING = "listing"
    PIPELINE = "pipeline"


class ContentCache:
    """The three independent stores used by the backend, each with its own TTL."""

    def __init__(
        self,
        search_ttl_s: float = 3600.0,
        listing_ttl_s: float = 300.0,
        pipeline_ttl_s: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._stores = {
            CacheStoreName.SEARCH: TTLStore("search", search_ttl_s, clock),
            CacheStoreName.LISTING: TTLStore("listing", listing_ttl_s, clock),
            CacheStoreName.PIPELINE: TTLStore("pipeline", pipeline_ttl_s, clock),
        }

    def store(self, name: CacheStoreName) -> TTLStore:
        return self._stores[CacheStoreName(name)]

    def get(self, name: CacheStoreName, key: str, ttl_seconds: float | None = None) -> Any | None:
        return self.store(name).get(key, ttl_seconds)

    def set(self, name: CacheStoreName, key: str, value: Any) -> None:
        self.store(name).set(key, value)

    def sweep(self) -> int:
        return sum(store.sweep() for store in self._stores.values())

    def sizes(self) -> dict[str, int]:
        return {name.value: len(store) for name, store in self._stores.items()}


class Sweepable(Protocol):
    def sweep(self) -> int: ...


class PeriodicSweeper:
    """
    Owns the background task that sweeps caches (and rate-limit records).

    ``start`` is idempotent and ``stop`` cancels and awaits the task, so the
    sweep never outlives the application that started it.
    """

    def __init__(self, targets: list[Sweepable], interval_s: float = 300.0):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._targets = list(targets)
        self.interval_s = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        removed = 0
        for target in self._targets:
            try:
                removed += target.sweep()
            except Exception as e:
                logger.error(
                    f"Sweep failed for {type(target).__name__}: {e}",
                    extra={"extra_fields": {"error_type": type(e).__name__}},
                )
        if removed:
            logger.info("Expired entries swept", extra={"extra_fields": {"removed": removed}})
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.sweep_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
