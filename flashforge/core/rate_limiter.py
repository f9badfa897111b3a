"""In-memory per-client request quota with a fixed window.

Counting is done by ``limits`` on a ``MemoryStorage``: one window per client
identifier, opened by the first admitted request and dropped by the storage
once its reset time has passed. ``QuotaGate.check`` tests before it hits and
does both under one lock, so a rejected request never consumes quota and
concurrent requests for the same client never lose increments.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from flashforge.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    limit: int
    reset_at: float
    retry_after_seconds: Optional[int] = None

    @property
    def reset_time_ms(self) -> int:
        return int(self.reset_at * 1000)


class QuotaGate:
    """Admits or rejects requests per client before any expensive work runs."""

    def __init__(
        self,
        *,
        limit: int = 20,
        window_seconds: int = 60,
        namespace: str = "flashcards",
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self._item = RateLimitItemPerSecond(
            self.limit, self.window_seconds, namespace=namespace
        )
        self._storage = MemoryStorage()
        self._limiter = FixedWindowRateLimiter(self._storage)
        self._lock = threading.Lock()

    def check(self, client_id: str) -> RateLimitDecision:
        with self._lock:
            if not self._limiter.test(self._item, client_id):
                stats = self._limiter.get_window_stats(self._item, client_id)
                retry_after = max(1, math.ceil(stats.reset_time - time.time()))
                logger.debug("Quota exhausted for %s", client_id)
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    limit=self.limit,
                    reset_at=stats.reset_time,
                    retry_after_seconds=retry_after,
                )

            self._limiter.hit(self._item, client_id)
            stats = self._limiter.get_window_stats(self._item, client_id)
            return RateLimitDecision(
                allowed=True,
                remaining=stats.remaining,
                limit=self.limit,
                reset_at=stats.reset_time,
            )

    def used(self, client_id: str) -> int:
        """Requests admitted for ``client_id`` in its live window (0 when none)."""
        with self._lock:
            return self._storage.get(self._item.key_for(client_id))

    def reset(self) -> None:
        with self._lock:
            self._storage.reset()
