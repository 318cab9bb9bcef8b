"""Coalesce concurrent fetches of the same resource into one upstream call."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from utils.logger import get_logger

logger = get_logger(__name__)


class InFlightDeduplicator:
    """
    Registry of producers that are currently running, keyed by string.

    The lookup-and-register in ``get_or_fetch`` contains no ``await``, so two
    callers on the same event loop can never both observe "not in flight" and
    both start a producer. The registry entry is dropped when the producer
    settles, whether it succeeded, failed or was cancelled.
    """

    def __init__(self):
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def get_or_fetch(self, key: str, producer: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        else:
            logger.debug("Joining in-flight fetch", extra={"extra_fields": {"resource": key}})

        # A cancelled waiter must not cancel the shared producer for the others
        return await asyncio.shield(task)

    def forget_prefix(self, prefix: str) -> int:
        """
        Stop handing out the running producers whose key starts with ``prefix``.

        Current waiters still get their result; the next caller starts afresh.
        """
        keys = [key for key in self._inflight if key.startswith(prefix)]
        for key in keys:
            del self._inflight[key]
        return len(keys)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception as retrieved even if every waiter went away
            task.exception()
