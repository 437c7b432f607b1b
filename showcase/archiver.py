"""
Nightly archiver.

Every ``archive_interval_seconds`` the loop flags posts older than
``archive_after_days`` as archived. Archived posts leave the home feed and
the leaderboard but stay reachable by id and under the author's own posts.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from showcase.config import settings
from showcase.database import AsyncSessionLocal
from showcase.models import Post, utcnow
from showcase.telemetry import POSTS_ARCHIVED_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_task: Optional[asyncio.Task] = None


async def archive_stale_posts(
    session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """Archive every live post created before the cutoff. Returns the count."""
    if now is None:
        now = utcnow()
    cutoff = now - timedelta(days=settings.archive_after_days)

    with tracer.start_as_current_span("archive_stale_posts") as span:
        result = await session.execute(
            update(Post)
            .where(Post.is_archived.is_(False), Post.created_at < cutoff)
            .values(is_archived=True)
            .execution_options(synchronize_session=False)
        )
        archived = result.rowcount or 0
        span.set_attribute("archiver.cutoff", cutoff.isoformat())
        span.set_attribute("archiver.archived", archived)

    POSTS_ARCHIVED_TOTAL.inc(archived)
    logger.info("Archived %d posts created before %s", archived, cutoff.isoformat())
    return archived


async def run_archiver() -> None:
    """Run archive passes forever; a failed pass is logged and retried next tick."""
    logger.info(
        "Archiver running every %ss (posts older than %d days)",
        settings.archive_interval_seconds,
        settings.archive_after_days,
    )
    while True:
        try:
            async with AsyncSessionLocal() as session:
                await archive_stale_posts(session)
                await session.commit()
        except Exception as exc:
            logger.error("Archive pass failed: %s", exc)
        await asyncio.sleep(settings.archive_interval_seconds)


def start_archiver() -> None:
    global _task
    if _task is None or _task.done():
        _task = asyncio.create_task(run_archiver())


async def stop_archiver() -> None:
    global _task
    if _task is None:
        return
    _task.cancel()
    try:
        await _task
    except asyncio.CancelledError:
        pass
    _task = None
