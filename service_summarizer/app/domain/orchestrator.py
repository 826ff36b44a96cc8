"""
Summarize orchestration: rate limit, cache, fallback chain, stale-serve.
"""

import asyncio
from typing import Optional, Set, TYPE_CHECKING

from shared.errors import AllProvidersUnavailableError, InvalidInputError, RateLimitError
from shared.logging import get_logger
from .fingerprint import fingerprint
from .models import NormalizedRequest, SummaryResult, SummarySource
from ..caching.summary_cache import SharedSummaryCache
from ..providers.fallback_chain import ChainResult, FallbackChain
from ..ratelimit.window_limiter import WindowRateLimiter

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class SummarizationOrchestrator:
    """
    End-to-end summarize contract.

    1. Reject empty or oversized text.
    2. Charge the client's rate limit budget.
    3. Serve a fresh cache hit without contacting any provider.
    4. Otherwise run the fallback chain and cache the first success.
    5. If every provider is unavailable, serve a stale entry flagged as
       degraded, or report ``AllProvidersUnavailableError``.

    The chain call and the cache write run in a shielded task: a client that
    disconnects mid-request does not cancel them, so the result still lands in
    the shared cache for everyone else. Concurrent first requests for the same
    fingerprint may each call a provider; the cache write is last-writer-wins.
    """

    def __init__(
        self,
        cache: SharedSummaryCache,
        chain: FallbackChain,
        rate_limiter: Optional[WindowRateLimiter] = None,
        *,
        max_text_chars: int = 6000,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.chain = chain
        self.rate_limiter = rate_limiter
        self.max_text_chars = max_text_chars
        self.metrics = metrics
        self.logger = get_logger("summarizer.orchestrator")
        self._inflight: Set[asyncio.Task] = set()

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("summary_requests_total", outcome=outcome)

    def _validate(self, request: NormalizedRequest) -> str:
        text = (request.text or "").strip()
        if not text:
            raise InvalidInputError("Request text is empty")
        # Context is sent to providers alongside the text, so both share the limit
        length = len(text) + len((request.context or "").strip())
        if length > self.max_text_chars:
            raise InvalidInputError(
                "Request text is too long",
                details={"length": length, "max_length": self.max_text_chars}
            )
        return text

    async def summarize(self, request: NormalizedRequest, client_id: str) -> SummaryResult:
        try:
            text = self._validate(request)
        except InvalidInputError:
            self._record("invalid_input")
            raise

        rate_decision = None
        if self.rate_limiter is not None:
            rate_decision = await self.rate_limiter.allow(client_id)
            if not rate_decision.allowed:
                self._record("rate_limited")
                raise RateLimitError(
                    retry_after=rate_decision.retry_after,
                    details={"limit": rate_decision.limit, "window_seconds": self.rate_limiter.window_seconds}
                )

        request_fp = fingerprint(text, request.context, request.mode)

        entry = await self.cache.get(request_fp)
        if entry is not None:
            self._record("cache_hit")
            return SummaryResult(
                summary=entry.summary,
                source=SummarySource.CACHE.value,
                degraded=entry.degraded,
                provider=entry.served_from,
                fingerprint=request_fp,
                rate_limit=rate_decision,
            )

        try:
            result = await self._run_shielded(request_fp, text, request)
        except AllProvidersUnavailableError:
            stale = await self.cache.get_stale(request_fp)
            if stale is None:
                self._record("unavailable")
                raise

            self.logger.warning("Serving stale summary", fingerprint=request_fp, provider=stale.served_from)
            self._record("stale")
            return SummaryResult(
                summary=stale.summary,
                source=SummarySource.STALE_CACHE.value,
                degraded=True,
                provider=stale.served_from,
                fingerprint=request_fp,
                rate_limit=rate_decision,
            )
        except InvalidInputError:
            self._record("invalid_input")
            raise

        self._record("provider")
        return SummaryResult(
            summary=result.summary,
            source=result.provider,
            degraded=result.degraded,
            provider=result.provider,
            fingerprint=request_fp,
            rate_limit=rate_decision,
        )

    async def _run_shielded(self, request_fp: str, text: str, request: NormalizedRequest) -> ChainResult:
        task = asyncio.ensure_future(self._compute_and_store(request_fp, text, request))
        self._inflight.add(task)
        task.add_done_callback(self._task_finished)
        return await asyncio.shield(task)

    def _task_finished(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        # Retrieve the outcome so an abandoned task does not warn at shutdown
        if not task.cancelled():
            task.exception()

    async def _compute_and_store(self, request_fp: str, text: str, request: NormalizedRequest) -> ChainResult:
        result = await self.chain.invoke(text, context=request.context, mode=request.mode)
        # Degraded output is never cached so a recovered provider is used as soon as possible
        if not result.degraded:
            await self.cache.put(request_fp, result.summary, result.provider)
        return result
