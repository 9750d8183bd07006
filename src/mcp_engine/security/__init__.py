"""Request guards."""

from mcp_engine.security.ratelimiter import MethodRateGuard, RateLimiter

__all__ = ["MethodRateGuard", "RateLimiter"]
