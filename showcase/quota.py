"""
Weekly post quota.

Each user gets ``post_quota_limit`` posts per window. The window opens with
the first post after the previous one lapsed and is enforced by the TTL on
the counter key, so an expired key is a fresh window.
"""
import logging
from dataclasses import dataclass

from showcase.clients.redis_client import get_redis
from showcase.config import settings

logger = logging.getLogger(__name__)

QUOTA_KEY = "post_quota:{user_id}"


@dataclass
class QuotaStatus:
    used: int
    limit: int
    resets_in_seconds: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


async def get_post_quota(user_id: str) -> QuotaStatus:
    r = get_redis()
    key = QUOTA_KEY.format(user_id=user_id)
    used = int(await r.get(key) or 0)
    ttl = await r.ttl(key)
    return QuotaStatus(
        used=used,
        limit=settings.post_quota_limit,
        resets_in_seconds=max(ttl, 0),
    )


async def consume_post_quota(user_id: str) -> bool:
    """
    Take one post slot for ``user_id``.
    Returns False, without taking a slot, if the window is already full.
    """
    r = get_redis()
    key = QUOTA_KEY.format(user_id=user_id)
    pipe = r.pipeline(transaction=True)
    pipe.incr(key)
    pipe.ttl(key)
    used, ttl = await pipe.execute()
    # -1: counter has no expiry yet. Set it once so later posts never push
    # the window back, and so a lost EXPIRE is repaired on the next post.
    if ttl == -1:
        await r.expire(key, settings.post_quota_window_seconds)

    if used > settings.post_quota_limit:
        await r.decr(key)
        logger.info("Post quota exhausted for user %s", user_id)
        return False
    return True


async def release_post_quota(user_id: str) -> None:
    """Give back a slot taken for a post that was never persisted."""
    r = get_redis()
    key = QUOTA_KEY.format(user_id=user_id)
    if int(await r.get(key) or 0) > 0:
        await r.decr(key)
