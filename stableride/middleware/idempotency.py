"""
Idempotency-Key replay for payment endpoints, stored in Redis per caller.
"""
import json
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from stableride.errors import ConflictError
from stableride.redis_client import get_redis


IDEMPOTENCY_TTL = 86400  # 24 hours


def _cache_key(key: str, scope: str) -> str:
    return f"idempotency:{scope}:{key}"


async def check_idempotency(request: Request, scope: str, fingerprint: str) -> Optional[Response]:
    """
    Replays the stored response when this caller already used the key for
    the same request. Reusing a key for a different request (another
    booking, say) is a 409.
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None

    redis = await get_redis()
    cached = await redis.get(_cache_key(key, scope))
    if not cached:
        return None

    data = json.loads(cached)
    if data.get("fingerprint") != fingerprint:
        raise ConflictError("Idempotency-Key was already used for a different request")
    return JSONResponse(
        content=data["body"],
        status_code=data["status_code"],
        headers={"X-Idempotency-Replay": "true"},
    )


async def store_idempotency_result(key: str, scope: str, fingerprint: str, status_code: int, body: dict) -> None:
    redis = await get_redis()
    await redis.setex(
        _cache_key(key, scope),
        IDEMPOTENCY_TTL,
        json.dumps({"fingerprint": fingerprint, "status_code": status_code, "body": body}, default=str),
    )
