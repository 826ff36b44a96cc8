#!/usr/bin/env python3
"""
Pre-populate the shared summary cache for a list of headline clusters.

Runs the same fallback chain the gateway uses, without the per-client rate
limit, so a deploy or a cache flush does not send the first wave of dashboard
clients straight to the providers. Input is a JSON file holding a list of
``{"text": ..., "context": ..., "mode": ...}`` objects (or plain strings).
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from shared.circuit_breaker import CircuitBreakerManager
from shared.config import get_config
from shared.errors import GatewayException
from shared.logging import configure_logging
from service_summarizer.app.caching.summary_cache import SharedSummaryCache
from service_summarizer.app.domain.models import NormalizedRequest
from service_summarizer.app.domain.orchestrator import SummarizationOrchestrator
from service_summarizer.app.providers.factory import build_fallback_chain
from service_summarizer.app.store.kv_store import RedisKeyValueStore


def load_requests(path: Path) -> List[NormalizedRequest]:
    """Parse the warm list."""
    raw = json.loads(path.read_text())
    requests = []
    for item in raw:
        if isinstance(item, str):
            item = {"text": item}
        requests.append(NormalizedRequest(**item))
    return requests


async def warm(requests: List[NormalizedRequest], *, redis_url: str, concurrency: int) -> Dict[str, Any]:
    """Summarize every request once and return a tally of the outcomes."""
    config = get_config("summarizer", 0, redis_url=redis_url)
    store = RedisKeyValueStore(config.redis_url, socket_timeout=config.store_timeout_seconds)
    cache = SharedSummaryCache(store, config.cache_ttl_seconds, config.cache_stale_grace_seconds)
    chain = build_fallback_chain(config, store, CircuitBreakerManager())
    orchestrator = SummarizationOrchestrator(cache, chain, max_text_chars=config.max_text_chars)

    semaphore = asyncio.Semaphore(max(1, concurrency))
    tally: Dict[str, Any] = {"total": len(requests), "sources": {}, "errors": []}

    async def _warm_one(request: NormalizedRequest) -> None:
        async with semaphore:
            try:
                result = await orchestrator.summarize(request, "cache-warmer")
            except GatewayException as exc:
                tally["errors"].append({"text": request.text[:80], "kind": exc.code})
                return
            tally["sources"][result.source] = tally["sources"].get(result.source, 0) + 1

    try:
        await asyncio.gather(*(_warm_one(request) for request in requests))
    finally:
        await store.close()

    return tally


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warm the shared summary cache.")
    parser.add_argument("requests_file", type=Path, help="JSON list of headline clusters to summarize")
    parser.add_argument("--redis-url", default=None, help="Redis connection URL (defaults to GATEWAY_REDIS_URL)")
    parser.add_argument("--concurrency", type=int, default=2, help="Concurrent summarize calls")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON tally")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("cache_warmer", "warning")

    requests = load_requests(args.requests_file)
    redis_url = args.redis_url or get_config("summarizer", 0).redis_url

    try:
        tally = asyncio.run(warm(requests, redis_url=redis_url, concurrency=args.concurrency))
    except KeyboardInterrupt:
        return 130

    print(json.dumps(tally, indent=2))
    if args.output:
        args.output.write_text(json.dumps(tally, indent=2))

    return 1 if tally["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
