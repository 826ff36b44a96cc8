"""
Shared store package for the summarizer.

Defines the key-value contract (get, set-with-ttl, increment-with-window)
used by the summary cache and the rate limiter, plus the Redis backend.
"""

from .kv_store import KeyValueStore, RedisKeyValueStore

__all__ = ["KeyValueStore", "RedisKeyValueStore"]
