"""
Summarization gateway service.
"""

from typing import Dict, List, Optional

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerManager, STATE_GAUGE_VALUES
from shared.config import ServiceConfig, get_config
from shared.errors import InvalidInputError
from shared.logging import set_client_context
from .caching.summary_cache import SharedSummaryCache
from .domain.models import NormalizedRequest, SummaryResponse
from .domain.orchestrator import SummarizationOrchestrator
from .providers.base import ProviderClient
from .providers.factory import build_fallback_chain
from .ratelimit.window_limiter import RateLimitDecision, WindowRateLimiter
from .store.kv_store import KeyValueStore, RedisKeyValueStore

SERVICE_NAME = "summarizer"
SERVICE_PORT = 8000


class SummarizerService(BaseService):
    """Summarization gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        providers: Optional[List[ProviderClient]] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.store = store or RedisKeyValueStore(
            self.config.redis_url,
            socket_timeout=self.config.store_timeout_seconds,
        )
        self.breaker_manager = CircuitBreakerManager(on_state_change=self._publish_breaker_state)
        self.cache = SharedSummaryCache(
            self.store,
            self.config.cache_ttl_seconds,
            self.config.cache_stale_grace_seconds,
            metrics=self.metrics,
        )
        self.rate_limiter = WindowRateLimiter(
            self.store,
            self.config.rate_limit_capacity,
            self.config.rate_limit_window_seconds,
            scope="summarize",
            metrics=self.metrics,
        )
        self.chain = build_fallback_chain(
            self.config,
            self.store,
            self.breaker_manager,
            metrics=self.metrics,
            providers=providers,
        )
        self.orchestrator = SummarizationOrchestrator(
            self.cache,
            self.chain,
            self.rate_limiter,
            max_text_chars=self.config.max_text_chars,
            metrics=self.metrics,
        )

        for name in self.chain.provider_names:
            self.metrics.set_gauge("circuit_state", 0, provider=name)

        @self.app.on_event("shutdown")
        async def _shutdown():
            for entry in self.chain.entries:
                await entry.provider.close()
            await self.store.close()

        self._setup_summarizer_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.summarizer_service = self

    def _publish_breaker_state(self, breaker: CircuitBreaker) -> None:
        self.metrics.set_gauge("circuit_state", STATE_GAUGE_VALUES[breaker.state], provider=breaker.name)

    def _get_client_ip(self, request: Request) -> str:
        """Extract the caller IP from standard headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
        if request.client:
            return request.client.host
        return "unknown"

    def _set_rate_limit_headers(self, response: Response, rate_result: Optional[RateLimitDecision]) -> None:
        """Propagate rate limiting metadata via standard headers."""
        if rate_result is None:
            return
        response.headers["X-RateLimit-Limit"] = str(rate_result.limit)
        response.headers["X-RateLimit-Remaining"] = str(rate_result.remaining)
        response.headers["X-RateLimit-Reset"] = str(rate_result.reset_in_seconds)

    async def _check_dependencies(self) -> Dict[str, str]:
        """The store is an optimization; report it without failing health."""
        store_ok = await self.store.ping()
        return {"store": "ok" if store_ok else "unavailable"}

    def _setup_summarizer_routes(self):
        """Set up summarizer routes."""

        @self.app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request: Request, exc: RequestValidationError):
            """Report malformed bodies with the gateway's INVALID_INPUT shape."""
            error = InvalidInputError("Malformed request body", details={"errors": jsonable_encoder(exc.errors())})
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump(by_alias=True, exclude_none=True)
            )

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "message": "Signal dashboard - Summarization Gateway",
                "version": "1.0.0",
            }

        @self.app.post("/api/v1/summarize", response_model=SummaryResponse, response_model_exclude_none=True)
        async def summarize(body: NormalizedRequest, request: Request, response: Response):
            """Summarize clustered headline text."""
            client_id = self._get_client_ip(request)
            set_client_context(client_id)

            result = await self.orchestrator.summarize(body, client_id)

            self._set_rate_limit_headers(response, result.rate_limit)
            return result.to_response()

        @self.app.get("/api/v1/summarize/providers")
        async def provider_status():
            """Circuit breaker state per provider, in chain order."""
            states = self.breaker_manager.get_all_states()
            return {
                "providers": [
                    {**states[name], "order": index}
                    for index, name in enumerate(self.chain.provider_names)
                    if name in states
                ],
                "max_attempts": self.chain.max_attempts,
            }


def create_app():
    """Create FastAPI application."""
    service = SummarizerService()
    return service.app


if __name__ == "__main__":
    service = SummarizerService()
    service.run()
