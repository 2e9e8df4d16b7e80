"""API middleware."""

from .rate_limit import RATE_LIMIT_AI, RATE_LIMIT_SYNC, get_rate_limit_key, limiter

__all__ = ["RATE_LIMIT_AI", "RATE_LIMIT_SYNC", "get_rate_limit_key", "limiter"]
