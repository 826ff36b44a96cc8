"""
Providers package for the summarizer.

Contains the provider call contract and its adapters. Adapters encapsulate:

- Endpoint URLs, models and request shapes
- Mapping of HTTP outcomes onto timeout / quota / upstream / invalid-input
- Prompt construction per summary mode

The fallback chain walks adapters in configured order behind per-provider
circuit breakers. Adding a provider means adding an adapter and a chain
entry; the orchestrator does not change.
"""

from .base import ProviderClient
from .extractive import ExtractiveProvider
from .fallback_chain import ChainEntry, ChainResult, FallbackChain
from .factory import build_fallback_chain, build_provider
from .openai_compatible import OpenAICompatibleProvider

__all__ = [
    "ProviderClient",
    "ExtractiveProvider",
    "OpenAICompatibleProvider",
    "ChainEntry",
    "ChainResult",
    "FallbackChain",
    "build_fallback_chain",
    "build_provider",
]
