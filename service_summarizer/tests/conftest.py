"""
Shared fixtures for summarizer tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from shared.circuit_breaker import CircuitBreakerManager
from shared.errors import StoreUnavailableError
from service_summarizer.app.caching.summary_cache import SharedSummaryCache
from service_summarizer.app.domain.models import SummaryMode
from service_summarizer.app.domain.orchestrator import SummarizationOrchestrator
from service_summarizer.app.providers.base import ProviderClient
from service_summarizer.app.providers.fallback_chain import ChainEntry, FallbackChain
from service_summarizer.app.ratelimit.window_limiter import WindowRateLimiter
from service_summarizer.app.store.kv_store import KeyValueStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore(KeyValueStore):
    """In-memory store honouring TTLs against a fake clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: Dict[str, Tuple[str, float]] = {}
        self.available = True
        self.calls: List[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if not self.available:
            raise StoreUnavailableError(operation, details={"error": "connection refused"})

    def _read(self, key: str) -> Optional[str]:
        item = self.data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self.clock() >= expires_at:
            del self.data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self._read(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check("set")
        self.data[key] = (value, self.clock() + ttl_seconds)

    async def increment(self, key: str, window_seconds: int) -> int:
        self._check("increment")
        count = int(self._read(key) or 0) + 1
        self.data[key] = (str(count), self.clock() + window_seconds)
        return count

    async def ping(self) -> bool:
        return self.available


class ScriptedProvider(ProviderClient):
    """Provider returning (or raising) a scripted sequence of outcomes."""

    def __init__(self, name: str, outcomes: Optional[List[Any]] = None, *, degraded: bool = False, delay: float = 0.0):
        super().__init__(name)
        self.outcomes = list(outcomes or [])
        self.degraded = degraded
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def invoke(self, text, timeout, *, context=None, mode=SummaryMode.BRIEF):
        self.calls.append({"text": text, "timeout": timeout, "context": context, "mode": mode})
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if self.outcomes else f"{self.name} summary"
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []
        self.gauges = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))

    def set_gauge(self, metric_name: str, value: float, **labels):
        self.gauges.append((metric_name, value, labels))

    def count(self, metric_name: str, **labels) -> int:
        return sum(
            1 for name, recorded in self.counters
            if name == metric_name and all(recorded.get(k) == v for k, v in labels.items())
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return FakeStore(clock)


@pytest.fixture
def metrics():
    return DummyMetrics()


@pytest.fixture
def breaker_manager(clock):
    return CircuitBreakerManager(clock=clock)


@pytest.fixture
def make_provider():
    """Factory for scripted providers."""
    def _make(name: str, outcomes: Optional[List[Any]] = None, **kwargs) -> ScriptedProvider:
        return ScriptedProvider(name, outcomes, **kwargs)
    return _make


@pytest.fixture
def make_chain(breaker_manager, metrics):
    """Factory for fallback chains over scripted providers."""
    def _make(
        providers: List[ProviderClient],
        *,
        failure_threshold: int = 3,
        cooldown: float = 60.0,
        max_attempts: int = 3,
        timeout: float = 1.0,
        quotas: Optional[Dict[str, WindowRateLimiter]] = None,
    ) -> FallbackChain:
        entries = [
            ChainEntry(
                provider=provider,
                breaker=breaker_manager.get_circuit_breaker(
                    provider.name,
                    failure_threshold=failure_threshold,
                    recovery_timeout=cooldown,
                ),
                timeout=timeout,
                quota=(quotas or {}).get(provider.name),
            )
            for provider in providers
        ]
        return FallbackChain(entries, max_attempts, metrics=metrics)
    return _make


@pytest.fixture
def make_orchestrator(store, clock, metrics):
    """Factory wiring cache + limiter + chain over the fake store."""
    def _make(chain: FallbackChain, *, capacity: int = 100, window: int = 60,
              ttl: int = 3600, grace: int = 7200, rate_limit: bool = True) -> SummarizationOrchestrator:
        cache = SharedSummaryCache(store, ttl, grace, metrics=metrics, clock=clock)
        limiter = WindowRateLimiter(store, capacity, window, metrics=metrics, clock=clock) if rate_limit else None
        return SummarizationOrchestrator(cache, chain, limiter, max_text_chars=500, metrics=metrics)
    return _make
