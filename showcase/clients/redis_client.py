"""
Redis client wrapper.

Responsibilities:
  • Post quotas — STRING counter keyed by post_quota:{user_id}
                  TTL = the quota window; see showcase.quota

The connection is opened once in the app lifespan and shared.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from showcase.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis.from_url(settings.redis_url, decode_responses=True)
    await _redis.ping()
    logger.info("Redis connected at %s", settings.redis_url)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def set_redis(client: Optional[aioredis.Redis]) -> None:
    """Swap the shared client (tests install a fakeredis instance here)."""
    global _redis
    _redis = client


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis
