"""
Cross-client summary cache backed by the shared store.
"""

import json
import time
from typing import Callable, Optional, TYPE_CHECKING

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from ..domain.models import CacheEntry
from ..store.kv_store import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_SUMMARY_TTL = 86400
DEFAULT_STALE_GRACE = 172800
CACHE_KEY_PREFIX = "summary"


class SharedSummaryCache:
    """
    TTL cache of summaries keyed by request fingerprint.

    Entries are written with a store expiry of ``ttl + stale_grace`` so that an
    entry outlives its fresh period and can still be served, flagged as
    degraded, when no provider is reachable. Store failures are logged and
    treated as a miss; the gateway stays correct without its cache.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = DEFAULT_SUMMARY_TTL,
        stale_grace_seconds: int = DEFAULT_STALE_GRACE,
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.stale_grace_seconds = stale_grace_seconds
        self.metrics = metrics
        self.logger = get_logger("summarizer.cache")
        self._clock = clock

    def _make_key(self, fingerprint: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{fingerprint}"

    def _record(self, metric: str, **labels) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric, **labels)

    async def _load(self, fingerprint: str) -> Optional[CacheEntry]:
        try:
            raw = await self.store.get(self._make_key(fingerprint))
        except StoreUnavailableError as exc:
            self.logger.warning("Cache read failed, treating as miss", fingerprint=fingerprint, error=exc.details.get("error"))
            self._record("store_errors_total", operation="cache_get")
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as exc:
            self.logger.error("Discarding unreadable cache entry", fingerprint=fingerprint, error=str(exc))
            return None

    async def get(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return the entry for ``fingerprint`` if it is still fresh."""
        entry = await self._load(fingerprint)
        if entry is not None and entry.is_fresh(self._clock()):
            self._record("cache_hits_total", cache_type="fresh")
            return entry

        self._record("cache_misses_total", cache_type="fresh")
        return None

    async def get_stale(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return the entry even past its TTL, as long as it is inside the grace window."""
        entry = await self._load(fingerprint)
        if entry is None or self._clock() > entry.expires_at() + self.stale_grace_seconds:
            self._record("cache_misses_total", cache_type="stale")
            return None

        self._record("cache_hits_total", cache_type="stale")
        return entry

    async def put(
        self,
        fingerprint: str,
        summary: str,
        provider_id: str,
        ttl: Optional[int] = None,
        *,
        degraded: bool = False,
    ) -> bool:
        """Overwrite the entry for ``fingerprint``. Last writer wins."""
        entry_ttl = self.ttl_seconds if ttl is None else ttl
        entry = CacheEntry(
            fingerprint=fingerprint,
            summary=summary,
            created_at=self._clock(),
            ttl=entry_ttl,
            served_from=provider_id,
            degraded=degraded,
        )

        try:
            await self.store.set(
                self._make_key(fingerprint),
                entry.to_json(),
                entry_ttl + self.stale_grace_seconds,
            )
        except StoreUnavailableError as exc:
            self.logger.warning("Cache write failed, summary not cached", fingerprint=fingerprint, error=exc.details.get("error"))
            self._record("store_errors_total", operation="cache_put")
            return False

        self.logger.debug("Cached summary", fingerprint=fingerprint, provider=provider_id, ttl=entry_ttl)
        return True
