"""
Fixed-window rate limiting backed by Redis counters, keyed by client IP.
"""
import logging

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from stableride.config import get_settings
from stableride.redis_client import get_redis, hit_counter

logger = logging.getLogger(__name__)
settings = get_settings()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global limit for everything under /api."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/api") and request.url.path != "/api/payments/webhook":
            redis = await get_redis()
            count = await hit_counter(
                redis,
                f"ratelimit:global:{client_ip(request)}",
                settings.rate_limit_window_seconds,
            )
            if count > settings.rate_limit_max_requests:
                logger.warning("Rate limit exceeded for %s", client_ip(request))
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content={"detail": "Too many requests, please try again later"},
                )
        return await call_next(request)


async def payment_rate_limit(request: Request) -> None:
    """Dependency for payment endpoints: stricter per-client window."""
    redis = await get_redis()
    count = await hit_counter(
        redis,
        f"ratelimit:payment:{client_ip(request)}",
        settings.payment_rate_limit_window_seconds,
    )
    if count > settings.payment_rate_limit_max_requests:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many payment attempts, please try again later",
        )
