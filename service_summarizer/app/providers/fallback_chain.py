"""
Ordered provider fallback with per-provider circuit breakers.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.circuit_breaker import CircuitBreaker
from shared.errors import (
    AllProvidersUnavailableError,
    InvalidInputError,
    ProviderQuotaExceededError,
    ProviderTimeoutError,
    ProviderTransientError,
)
from shared.logging import get_logger
from ..domain.models import SummaryMode
from ..ratelimit.window_limiter import WindowRateLimiter
from .base import ProviderClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def seconds_until_utc_midnight(now: Optional[datetime] = None) -> float:
    """Seconds until the next UTC day starts; the usual provider quota reset."""
    current = now or datetime.now(timezone.utc)
    next_day = (current + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (next_day - current).total_seconds()


@dataclass
class ChainEntry:
    """One provider slot in the chain."""
    provider: ProviderClient
    breaker: CircuitBreaker
    timeout: float
    quota: Optional[WindowRateLimiter] = None
    quota_cooldown_seconds: Optional[float] = None

    @property
    def name(self) -> str:
        return self.provider.name

    def quota_cooldown(self, hint: Optional[float]) -> float:
        if hint is not None and hint > 0:
            return hint
        if self.quota_cooldown_seconds is not None:
            return self.quota_cooldown_seconds
        return seconds_until_utc_midnight()


@dataclass
class ChainResult:
    """Summary produced by the first provider that succeeded."""
    summary: str
    provider: str
    degraded: bool
    attempted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class FallbackChain:
    """
    Tries providers in configured order until one produces a summary.

    Providers whose breaker is open are skipped without being charged a
    failure. Transient failures are recorded on the provider's breaker and the
    next provider is tried; a quota error opens the breaker until the quota
    resets. Input rejected by a provider ends the request immediately, since
    the next provider would reject it too. At most ``max_attempts`` providers
    are invoked per request so worst-case latency stays bounded.
    """

    def __init__(
        self,
        entries: List[ChainEntry],
        max_attempts: int = 3,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.entries = entries
        self.max_attempts = max(1, max_attempts)
        self.metrics = metrics
        self.logger = get_logger("summarizer.chain")

    @property
    def provider_names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def _record_call(self, provider: str, outcome: str, duration: Optional[float] = None) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("provider_calls_total", provider=provider, outcome=outcome)
        if duration is not None:
            self.metrics.observe_histogram("provider_latency_seconds", duration, provider=provider)

    async def _quota_available(self, entry: ChainEntry) -> bool:
        if entry.quota is None:
            return True

        decision = await entry.quota.allow(entry.name)
        if decision.allowed:
            return True

        entry.breaker.trip(entry.quota_cooldown(decision.retry_after), reason="daily_quota")
        self._record_call(entry.name, "quota_skipped")
        return False

    async def invoke(
        self,
        text: str,
        *,
        context: Optional[str] = None,
        mode: SummaryMode = SummaryMode.BRIEF,
    ) -> ChainResult:
        attempted: List[str] = []
        skipped: List[str] = []
        failures: Dict[str, Any] = {}

        for entry in self.entries:
            if len(attempted) >= self.max_attempts:
                self.logger.info("Provider attempt cap reached", max_attempts=self.max_attempts)
                break

            if not entry.breaker.allow_request():
                skipped.append(entry.name)
                self._record_call(entry.name, "short_circuited")
                continue

            if not await self._quota_available(entry):
                skipped.append(entry.name)
                continue

            attempted.append(entry.name)
            start = time.perf_counter()
            try:
                summary = await asyncio.wait_for(
                    entry.provider.invoke(text, entry.timeout, context=context, mode=mode),
                    timeout=entry.timeout,
                )
            except asyncio.CancelledError:
                entry.breaker.release()
                raise
            except (asyncio.TimeoutError, ProviderTimeoutError):
                error = ProviderTimeoutError(entry.name, entry.timeout)
                entry.breaker.record_failure()
                failures[entry.name] = error.code
                self._record_call(entry.name, "timeout", time.perf_counter() - start)
                self.logger.warning("Provider timed out", provider=entry.name, timeout=entry.timeout)
                continue
            except InvalidInputError:
                entry.breaker.release()
                self._record_call(entry.name, "invalid_input", time.perf_counter() - start)
                raise
            except ProviderQuotaExceededError as exc:
                entry.breaker.trip(entry.quota_cooldown(exc.retry_after), reason="quota_exhausted")
                failures[entry.name] = exc.code
                self._record_call(entry.name, "quota_exceeded", time.perf_counter() - start)
                continue
            except ProviderTransientError as exc:
                entry.breaker.record_failure()
                failures[entry.name] = exc.code
                self._record_call(entry.name, "transient", time.perf_counter() - start)
                self.logger.warning("Provider failed", provider=entry.name, error=exc.message)
                continue
            except Exception as exc:
                # Adapter bugs count against the provider like any upstream failure
                entry.breaker.record_failure()
                failures[entry.name] = "UNEXPECTED_ERROR"
                self._record_call(entry.name, "error", time.perf_counter() - start)
                self.logger.error("Provider raised unexpected error", provider=entry.name, error=str(exc), exc_info=True)
                continue

            entry.breaker.record_success()
            self._record_call(entry.name, "success", time.perf_counter() - start)
            self.logger.info("Provider produced summary", provider=entry.name, attempted=attempted, skipped=skipped)
            return ChainResult(
                summary=summary,
                provider=entry.name,
                degraded=entry.provider.degraded,
                attempted=attempted,
                skipped=skipped,
            )

        self.logger.warning("Fallback chain exhausted", attempted=attempted, skipped=skipped, failures=failures)
        raise AllProvidersUnavailableError(
            details={"attempted": attempted, "skipped": skipped, "failures": failures}
        )
