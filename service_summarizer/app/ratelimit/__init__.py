"""
Rate limiting package for the summarizer.

Holds the fixed-window limiter that enforces per-client request budgets
across all gateway instances, and per-provider daily quotas.
"""

from .window_limiter import RateLimitDecision, WindowRateLimiter

__all__ = ["RateLimitDecision", "WindowRateLimiter"]
