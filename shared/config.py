"""
Shared configuration management for the summarization gateway.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseModel):
    """Settings for one entry of the provider fallback chain."""

    name: str
    kind: str = "openai_compatible"
    base_url: Optional[str] = None
    model: Optional[str] = None
    api_key_env: Optional[str] = None
    enabled: bool = True

    # Per-provider overrides; None falls back to the service-wide defaults
    timeout_seconds: Optional[float] = None
    failure_threshold: Optional[int] = None
    cooldown_seconds: Optional[float] = None
    quota_cooldown_seconds: Optional[float] = None
    daily_quota: Optional[int] = None

    extra_headers: Dict[str, str] = Field(default_factory=dict)


def _default_providers() -> List[ProviderSettings]:
    return [
        ProviderSettings(
            name="groq",
            base_url="https://api.groq.com/openai/v1",
            model="llama-3.1-8b-instant",
            api_key_env="GROQ_API_KEY",
            daily_quota=14400,
        ),
        ProviderSettings(
            name="openrouter",
            base_url="https://openrouter.ai/api/v1",
            model="meta-llama/llama-3.3-70b-instruct:free",
            api_key_env="OPENROUTER_API_KEY",
            daily_quota=50,
            extra_headers={"X-Title": "Signal Dashboard"},
        ),
    ]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Shared store
    redis_url: str = "redis://localhost:6379/0"
    store_timeout_seconds: float = 2.0

    # Summary cache
    cache_ttl_seconds: int = 86400
    cache_stale_grace_seconds: int = 172800

    # Rate limiting
    rate_limit_window_seconds: int = 60
    rate_limit_capacity: int = 20

    # Circuit breakers
    breaker_failure_threshold: int = 3
    breaker_cooldown_seconds: float = 60.0
    breaker_cooldown_multiplier: float = 2.0
    breaker_max_cooldown_seconds: float = 900.0

    # Fallback chain
    provider_timeout_seconds: float = 10.0
    max_provider_attempts: int = 3
    providers: List[ProviderSettings] = Field(default_factory=_default_providers)
    enable_extractive_fallback: bool = False

    # Request validation
    max_text_chars: int = 6000


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
