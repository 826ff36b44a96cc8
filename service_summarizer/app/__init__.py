"""
Summarization Gateway Service package.

The gateway turns clustered headline text into short AI summaries for the
dashboard while enforcing:
- Per-client rate limits shared across instances
- Cross-client deduplication through a fingerprint-keyed cache
- Ordered provider fallback behind per-provider circuit breakers
- Stale-cache serving when every provider is unavailable

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.domain: Models, fingerprinting and the summarize orchestrator.
- app.store: Shared key-value store contract and Redis backend.
- app.caching: Summary cache.
- app.ratelimit: Fixed-window limiter with local fallback.
- app.providers: Provider adapters, fallback chain and chain factory.
"""
