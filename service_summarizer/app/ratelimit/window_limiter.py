"""
Fixed-window rate limiter for the summarizer.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, TYPE_CHECKING

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from ..store.kv_store import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass
class RateLimitDecision:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    current_count: int
    remaining: int
    reset_in_seconds: int
    retry_after: Optional[int] = None
    local_estimate: bool = False


class LocalWindowCounter:
    """In-process counters used while the shared store is unreachable."""

    def __init__(self):
        self._counts: Dict[Tuple[str, int], int] = {}
        self._window_index = -1
        self._lock = threading.Lock()

    def increment(self, client_id: str, window_index: int) -> int:
        with self._lock:
            if window_index > self._window_index:
                # Counters of earlier windows can never be read again
                self._counts = {
                    key: count for key, count in self._counts.items() if key[1] >= window_index
                }
                self._window_index = window_index

            key = (client_id, window_index)
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]


class WindowRateLimiter:
    """
    Per-identity request budget enforced in the shared store.

    Windows are aligned to the epoch so every instance agrees on their
    boundaries. When the store cannot be reached the limiter keeps counting in
    process memory, which is a per-instance estimate rather than an outright
    allow or deny.
    """

    def __init__(
        self,
        store: KeyValueStore,
        capacity: int,
        window_seconds: int,
        *,
        scope: str = "summarize",
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.capacity = capacity
        self.window_seconds = max(1, int(window_seconds))
        self.scope = scope
        self.metrics = metrics
        self.logger = get_logger(f"summarizer.rate_limiter.{scope}")
        self._clock = clock
        self._local = LocalWindowCounter()

    def _make_key(self, client_id: str, window_index: int) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{self.scope}:{client_id}:{window_index}"

    async def allow(self, client_id: str) -> RateLimitDecision:
        """Count one request for ``client_id`` and decide whether it may proceed."""
        now = self._clock()
        window_index = int(now // self.window_seconds)
        window_end = (window_index + 1) * self.window_seconds
        reset_in = max(1, math.ceil(window_end - now))

        local_estimate = False
        try:
            count = await self.store.increment(self._make_key(client_id, window_index), self.window_seconds)
        except StoreUnavailableError as exc:
            self.logger.warning(
                "Rate limit store unavailable, using local estimate",
                client_id=client_id,
                error=exc.details.get("error")
            )
            if self.metrics is not None:
                self.metrics.increment_counter("store_errors_total", operation=f"rate_limit_{self.scope}")
            count = self._local.increment(client_id, window_index)
            local_estimate = True

        if count > self.capacity:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=count,
                limit=self.capacity
            )
            if self.metrics is not None:
                self.metrics.increment_counter("rate_limit_denials_total", scope=self.scope)
            return RateLimitDecision(
                allowed=False,
                limit=self.capacity,
                current_count=count,
                remaining=0,
                reset_in_seconds=reset_in,
                retry_after=reset_in,
                local_estimate=local_estimate,
            )

        return RateLimitDecision(
            allowed=True,
            limit=self.capacity,
            current_count=count,
            remaining=max(0, self.capacity - count),
            reset_in_seconds=reset_in,
            local_estimate=local_estimate,
        )
