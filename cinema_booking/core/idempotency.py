import json
import logging
from typing import Any, Optional

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "X-Idempotency-Key"


def idempotency_key(scope: str, user_id: int, key: str) -> str:
    return f"idempotency:{scope}:{user_id}:{key}"


async def check_idempotency(
        request: Request,
        redis: Optional[Redis],
        scope: str,
        user_id: int) -> tuple[Optional[str], Optional[Any], bool]:
    """
    Look up a stored response for the request's ``X-Idempotency-Key``.

    Returns ``(redis_key, cached_response, is_repeat)``. The key is optional,
    without it (or without redis) the request is simply not deduplicated.
    """
    idem_key = request.headers.get(IDEMPOTENCY_HEADER)
    if not idem_key or redis is None:
        return None, None, False
    redis_key = idempotency_key(scope, user_id, idem_key)
    try:
        cached = await redis.get(redis_key)
    except RedisError:
        logger.warning("idempotency lookup failed for %s", redis_key, exc_info=True)
        return None, None, False
    if cached:
        logger.info("idempotency.hit %s", redis_key)
        return redis_key, json.loads(cached), True
    return redis_key, None, False


async def save_idempotency(redis: Optional[Redis], redis_key: Optional[str], response: Any, ttl: int) -> None:
    if redis is None or redis_key is None:
        return
    try:
        await redis.set(redis_key, json.dumps(response), ex=ttl)
    except RedisError:
        logger.warning("idempotency save failed for %s", redis_key, exc_info=True)
