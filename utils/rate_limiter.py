"""Fixed-window request counter per client."""

import time
from collections.abc import Callable
from dataclasses import dataclass

from models.errors import RateLimitedError
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateRecord:
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """
    Counts requests per client key inside fixed windows.

    All requests in a window share one counter that resets when the window
    expires; this is not a sliding window. The compound read-modify-write in
    ``allow`` never awaits, so it is atomic on a single event loop.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_s <= 0:
            raise ValueError("window_s must be positive")
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._records: dict[str, RateRecord] = {}

    def allow(self, client_key: str) -> bool:
        now = self._clock()
        record = self._records.get(client_key)

        if record is None or now > record.window_reset_at:
            self._records[client_key] = RateRecord(count=1, window_reset_at=now + self.window_s)
            return True

        if record.count >= self.max_requests:
            return False

        record.count += 1
        return True

    def check(self, client_key: str) -> None:
        """Like ``allow`` but raises ``RateLimitedError`` on rejection."""
        if self.allow(client_key):
            return
        retry_after = self.retry_after(client_key)
        logger.warning(
            "Rate limit exceeded",
            extra={"extra_fields": {"client": client_key, "retry_after_s": round(retry_after, 1)}},
        )
        raise RateLimitedError(client_key, retry_after)

    def retry_after(self, client_key: str) -> float:
        record = self._records.get(client_key)
        if record is None:
            return 0.0
        return max(0.0, record.window_reset_at - self._clock())

    def sweep(self) -> int:
        """Drop records whose window has expired. Returns the number removed."""
        now = self._clock()
        expired = [key for key, record in self._records.items() if now > record.window_reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
