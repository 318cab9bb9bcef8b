"""Outbound HTTP with per-attempt timeouts and bounded exponential backoff."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from models.errors import NetworkError, RequestTimeoutError
from utils.logger import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    timeout_s: float = 30.0
    max_attempts: int = 3
    backoff_base_s: float = 1.0
    backoff_cap_s: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after ``attempt`` (1-based) failed."""
        return min(self.backoff_base_s * (2 ** (attempt - 1)), self.backoff_cap_s)


async def fetch_resilient(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Send one request, retrying only on transport failures.

    Each attempt races the call against ``policy.timeout_s``; a losing call is
    cancelled. Any response that arrives is returned as-is, including 4xx and
    5xx: interpreting status codes is the caller's job.

    Raises:
        RequestTimeoutError: the final attempt timed out
        NetworkError: the final attempt failed at the transport level
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(
                client.request(method, url, **request_kwargs), timeout=policy.timeout_s
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            failure: Exception = exc
            timed_out = True
        except httpx.TransportError as exc:
            failure = exc
            timed_out = False

        if attempt >= attempts:
            logger.warning(
                "Outbound request gave up",
                extra={
                    "extra_fields": {
                        "method": method,
                        "url": _safe_url(url),
                        "attempts": attempt,
                        "error_type": type(failure).__name__,
                    }
                },
            )
            if timed_out:
                raise RequestTimeoutError(
                    f"{method} {_safe_url(url)}", policy.timeout_s, attempts=attempt
                ) from failure
            raise NetworkError(_safe_url(url), attempt, str(failure) or type(failure).__name__) from failure

        delay = policy.delay_for(attempt)
        logger.info(
            "Retrying outbound request",
            extra={
                "extra_fields": {
                    "method": method,
                    "url": _safe_url(url),
                    "attempt": attempt,
                    "delay_s": delay,
                    "error_type": type(failure).__name__,
                }
            },
        )
        await sleep(delay)

    raise AssertionError("unreachable")


def _safe_url(url: str) -> str:
    """Drop the query string, which may carry credentials."""
    return url.split("?", 1)[0]
