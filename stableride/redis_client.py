import json

import redis.asyncio as aioredis
from stableride.config import get_settings

settings = get_settings()

_redis_pool: aioredis.Redis | None = None

DRIVER_LOCATION_TTL = 300  # 5 minutes


async def get_redis() -> aioredis.Redis:
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=100,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Driver location
# ---------------------------------------------------------------------------

async def set_driver_location(redis: aioredis.Redis, driver_id: str, location: dict) -> None:
    """Store the driver's latest position; expires if the app stops reporting."""
    await redis.setex(f"driver:location:{driver_id}", DRIVER_LOCATION_TTL, json.dumps(location))


async def get_driver_location(redis: aioredis.Redis, driver_id: str) -> dict | None:
    raw = await redis.get(f"driver:location:{driver_id}")
    return json.loads(raw) if raw else None


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

async def hit_counter(redis: aioredis.Redis, key: str, window_seconds: int) -> int:
    """Increment a fixed-window counter and return the new count."""
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window_seconds)
    return int(count)

