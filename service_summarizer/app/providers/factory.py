"""
Builds the fallback chain from service configuration.
"""

import os
from typing import List, Optional, TYPE_CHECKING

from shared.circuit_breaker import CircuitBreakerManager
from shared.config import BaseConfig, ProviderSettings
from shared.logging import get_logger
from ..ratelimit.window_limiter import WindowRateLimiter
from ..store.kv_store import KeyValueStore
from .base import ProviderClient
from .extractive import ExtractiveProvider
from .fallback_chain import ChainEntry, FallbackChain
from .openai_compatible import OpenAICompatibleProvider

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

QUOTA_WINDOW_SECONDS = 86400

logger = get_logger("summarizer.provider_factory")


def build_provider(settings: ProviderSettings) -> Optional[ProviderClient]:
    """Instantiate the adapter for one provider entry, or None when it cannot run."""
    if settings.kind == "extractive":
        return ExtractiveProvider(settings.name)

    if settings.kind != "openai_compatible":
        logger.error("Unknown provider kind, skipping", provider=settings.name, kind=settings.kind)
        return None

    api_key = os.getenv(settings.api_key_env) if settings.api_key_env else None
    if not api_key:
        logger.warning("Provider API key not configured, skipping", provider=settings.name, env=settings.api_key_env)
        return None
    if not settings.base_url or not settings.model:
        logger.error("Provider base_url/model missing, skipping", provider=settings.name)
        return None

    return OpenAICompatibleProvider(
        settings.name,
        settings.base_url,
        settings.model,
        api_key,
        extra_headers=settings.extra_headers,
    )


def build_fallback_chain(
    config: BaseConfig,
    store: KeyValueStore,
    breaker_manager: CircuitBreakerManager,
    *,
    metrics: Optional["MetricsCollector"] = None,
    providers: Optional[List[ProviderClient]] = None,
) -> FallbackChain:
    """
    Assemble chain entries in configured order.

    ``providers`` replaces the configured adapters (settings are still looked
    up by name for timeouts, breaker tuning and quotas).
    """
    settings_by_name = {settings.name: settings for settings in config.providers}

    if providers is None:
        providers = []
        for settings in config.providers:
            if not settings.enabled:
                continue
            provider = build_provider(settings)
            if provider is not None:
                providers.append(provider)
        if config.enable_extractive_fallback and "extractive" not in settings_by_name:
            providers.append(ExtractiveProvider())

    entries: List[ChainEntry] = []
    for provider in providers:
        settings = settings_by_name.get(provider.name, ProviderSettings(name=provider.name))
        breaker = breaker_manager.get_circuit_breaker(
            provider.name,
            failure_threshold=settings.failure_threshold or config.breaker_failure_threshold,
            recovery_timeout=settings.cooldown_seconds or config.breaker_cooldown_seconds,
            backoff_multiplier=config.breaker_cooldown_multiplier,
            max_recovery_timeout=config.breaker_max_cooldown_seconds,
        )
        quota = None
        if settings.daily_quota:
            quota = WindowRateLimiter(
                store,
                settings.daily_quota,
                QUOTA_WINDOW_SECONDS,
                scope="provider_quota",
                metrics=metrics,
            )
        entries.append(
            ChainEntry(
                provider=provider,
                breaker=breaker,
                timeout=settings.timeout_seconds or config.provider_timeout_seconds,
                quota=quota,
                quota_cooldown_seconds=settings.quota_cooldown_seconds,
            )
        )

    if not entries:
        logger.warning("No summarization providers configured; every request will fall back to stale cache")
    else:
        logger.info("Fallback chain built", providers=[entry.name for entry in entries])

    return FallbackChain(entries, config.max_provider_attempts, metrics=metrics)
