"""
Unit tests for the summarize orchestration.
"""

import asyncio

import pytest

from shared.errors import (
    AllProvidersUnavailableError,
    InvalidInputError,
    ProviderTransientError,
    RateLimitError,
)
from service_summarizer.app.domain.fingerprint import fingerprint
from service_summarizer.app.domain.models import NormalizedRequest, SummaryMode

HEADLINES = "Earthquake strikes off Hokkaido\nTsunami advisory issued for northern coast"


def _request(text=HEADLINES, **kwargs):
    return NormalizedRequest(text=text, **kwargs)


class TestSummarizationOrchestrator:
    """Test cases for SummarizationOrchestrator."""

    @pytest.mark.asyncio
    async def test_fallback_to_second_provider(self, make_provider, make_chain, make_orchestrator, breaker_manager):
        groq = make_provider("groq", [ProviderTransientError("groq", "503")])
        openrouter = make_provider("openrouter", ["Quake off Hokkaido prompts tsunami advisory."])
        orchestrator = make_orchestrator(make_chain([groq, openrouter]))

        result = await orchestrator.summarize(_request(), "10.0.0.1")

        assert result.summary == "Quake off Hokkaido prompts tsunami advisory."
        assert result.source == "openrouter"
        assert result.provider == "openrouter"
        assert result.degraded is False
        assert breaker_manager.get_circuit_breaker("groq").consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_second_request_is_served_from_cache(self, make_provider, make_chain, make_orchestrator, metrics):
        groq = make_provider("groq", ["first summary", "second summary"])
        orchestrator = make_orchestrator(make_chain([groq]))

        first = await orchestrator.summarize(_request(), "10.0.0.1")
        second = await orchestrator.summarize(_request("  EARTHQUAKE strikes off Hokkaido \n tsunami advisory issued for northern coast"), "10.0.0.2")

        assert first.source == "groq"
        assert second.source == "cache"
        assert second.summary == "first summary"
        assert second.provider == "groq"
        assert second.fingerprint == first.fingerprint
        assert len(groq.calls) == 1
        assert metrics.count("summary_requests_total", outcome="cache_hit") == 1

    @pytest.mark.asyncio
    async def test_mode_changes_cache_identity(self, make_provider, make_chain, make_orchestrator):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]))

        await orchestrator.summarize(_request(), "10.0.0.1")
        result = await orchestrator.summarize(_request(mode=SummaryMode.ANALYSIS), "10.0.0.1")

        assert result.source == "groq"
        assert len(groq.calls) == 2
        assert groq.calls[1]["mode"] == SummaryMode.ANALYSIS

    @pytest.mark.asyncio
    async def test_stale_entry_served_when_all_providers_down(
        self, make_provider, make_chain, make_orchestrator, breaker_manager, clock, metrics
    ):
        groq = make_provider("groq", ["cached earlier"])
        openrouter = make_provider("openrouter")
        orchestrator = make_orchestrator(make_chain([groq, openrouter]), ttl=3600, grace=7200)

        await orchestrator.summarize(_request(), "10.0.0.1")
        clock.advance(3600 + 60)
        breaker_manager.get_circuit_breaker("groq").trip(600)
        breaker_manager.get_circuit_breaker("openrouter").trip(600)

        result = await orchestrator.summarize(_request(), "10.0.0.1")

        assert result.summary == "cached earlier"
        assert result.source == "stale-cache"
        assert result.degraded is True
        assert result.provider == "groq"
        assert openrouter.calls == []
        assert metrics.count("summary_requests_total", outcome="stale") == 1

    @pytest.mark.asyncio
    async def test_exhaustion_without_stale_entry(self, make_provider, make_chain, make_orchestrator, breaker_manager):
        groq = make_provider("groq")
        openrouter = make_provider("openrouter")
        orchestrator = make_orchestrator(make_chain([groq, openrouter]))
        breaker_manager.get_circuit_breaker("groq").trip(600)
        breaker_manager.get_circuit_breaker("openrouter").trip(600)

        with pytest.raises(AllProvidersUnavailableError):
            await orchestrator.summarize(_request(), "10.0.0.1")

        assert groq.calls == []
        assert openrouter.calls == []

    @pytest.mark.asyncio
    async def test_entry_past_grace_is_not_served(self, make_provider, make_chain, make_orchestrator, breaker_manager, clock):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]), ttl=3600, grace=7200)

        await orchestrator.summarize(_request(), "10.0.0.1")
        clock.advance(3600 + 7200 + 1)
        breaker_manager.get_circuit_breaker("groq").trip(600)

        with pytest.raises(AllProvidersUnavailableError):
            await orchestrator.summarize(_request(), "10.0.0.1")

    @pytest.mark.asyncio
    async def test_rate_limited_request_touches_nothing(self, make_provider, make_chain, make_orchestrator, store):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]), capacity=3)

        for i in range(3):
            await orchestrator.summarize(_request(f"Headline {i}"), "10.0.0.1")
        calls_before = list(store.calls)
        provider_calls_before = len(groq.calls)

        with pytest.raises(RateLimitError) as exc_info:
            await orchestrator.summarize(_request("Headline 99"), "10.0.0.1")

        assert exc_info.value.retry_after is not None
        assert exc_info.value.retry_after > 0
        assert store.calls[len(calls_before):] == ["increment"]
        assert len(groq.calls) == provider_calls_before

    @pytest.mark.asyncio
    async def test_other_clients_are_not_limited(self, make_provider, make_chain, make_orchestrator):
        orchestrator = make_orchestrator(make_chain([make_provider("groq")]), capacity=1)

        await orchestrator.summarize(_request(), "10.0.0.1")
        result = await orchestrator.summarize(_request(), "10.0.0.2")

        assert result.source == "cache"

    @pytest.mark.asyncio
    async def test_store_outage_still_returns_provider_result(self, make_provider, make_chain, make_orchestrator, store):
        groq = make_provider("groq", ["fresh summary"])
        orchestrator = make_orchestrator(make_chain([groq]))
        store.available = False

        result = await orchestrator.summarize(_request(), "10.0.0.1")

        assert result.summary == "fresh summary"
        assert result.source == "groq"
        assert result.rate_limit.local_estimate is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n\t "])
    async def test_empty_text_is_rejected(self, make_provider, make_chain, make_orchestrator, store, text):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]))

        with pytest.raises(InvalidInputError):
            await orchestrator.summarize(_request(text), "10.0.0.1")

        assert store.calls == []
        assert groq.calls == []

    @pytest.mark.asyncio
    async def test_oversized_text_is_rejected(self, make_provider, make_chain, make_orchestrator):
        orchestrator = make_orchestrator(make_chain([make_provider("groq")]))

        with pytest.raises(InvalidInputError) as exc_info:
            await orchestrator.summarize(_request("x" * 501), "10.0.0.1")

        assert exc_info.value.details == {"length": 501, "max_length": 500}

    @pytest.mark.asyncio
    async def test_oversized_context_is_rejected(self, make_provider, make_chain, make_orchestrator, store):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]))

        with pytest.raises(InvalidInputError) as exc_info:
            await orchestrator.summarize(_request("Quake", context="x" * 1_000_000), "10.0.0.1")

        assert exc_info.value.details == {"length": 1_000_005, "max_length": 500}
        assert groq.calls == []
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_text_and_context_share_the_limit(self, make_provider, make_chain, make_orchestrator):
        groq = make_provider("groq")
        orchestrator = make_orchestrator(make_chain([groq]))

        await orchestrator.summarize(_request("x" * 250, context="y" * 250), "10.0.0.1")
        with pytest.raises(InvalidInputError):
            await orchestrator.summarize(_request("x" * 250, context="y" * 251), "10.0.0.1")

        assert len(groq.calls) == 1

    @pytest.mark.asyncio
    async def test_provider_rejection_is_not_cached(self, make_provider, make_chain, make_orchestrator, store):
        groq = make_provider("groq", [InvalidInputError("rejected")])
        orchestrator = make_orchestrator(make_chain([groq]))

        with pytest.raises(InvalidInputError):
            await orchestrator.summarize(_request(), "10.0.0.1")

        assert "set" not in store.calls

    @pytest.mark.asyncio
    async def test_degraded_result_is_not_cached(self, make_provider, make_chain, make_orchestrator, breaker_manager, store):
        groq = make_provider("groq")
        extractive = make_provider("extractive", ["Lead headline."], degraded=True)
        orchestrator = make_orchestrator(make_chain([groq, extractive]))
        breaker_manager.get_circuit_breaker("groq").trip(600)

        result = await orchestrator.summarize(_request(), "10.0.0.1")

        assert result.degraded is True
        assert result.source == "extractive"
        assert f"summary:{fingerprint(HEADLINES)}" not in store.data

    @pytest.mark.asyncio
    async def test_no_rate_limiter(self, make_provider, make_chain, make_orchestrator):
        orchestrator = make_orchestrator(make_chain([make_provider("groq")]), rate_limit=False)

        result = await orchestrator.summarize(_request(), "cache-warmer")

        assert result.rate_limit is None

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_fills_cache(self, make_provider, make_chain, make_orchestrator, store):
        groq = make_provider("groq", ["slow summary"], delay=0.05)
        orchestrator = make_orchestrator(make_chain([groq]))

        caller = asyncio.ensure_future(orchestrator.summarize(_request(), "10.0.0.1"))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        await asyncio.gather(*orchestrator._inflight)

        assert f"summary:{fingerprint(HEADLINES)}" in store.data
        assert not orchestrator._inflight
