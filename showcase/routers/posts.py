"""
Post endpoints:
  POST   /posts                — create a post (weekly quota applies)
  GET    /posts                — home feed, decay-ranked
  GET    /posts/leaderboard    — all-time top posts by likes
  GET    /posts/my-posts       — the caller's posts, newest first
  GET    /posts/quota          — the caller's weekly quota
  GET    /posts/{id}           — fetch a single post
  PUT    /posts/{id}           — edit a post (author only)
  DELETE /posts/{id}           — delete a post (author only)
  PUT    /posts/{id}/like      — toggle the caller's like
  POST   /posts/{id}/comment   — add a comment
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from showcase.config import settings
from showcase.database import get_db
from showcase.models import Comment, Like, Post, User
from showcase.quota import consume_post_quota, get_post_quota, release_post_quota
from showcase.ranking import rank_by_decay, rank_by_total_likes
from showcase.schemas import (
    CommentCreate,
    CommentResponse,
    LeaderboardEntry,
    LikeResponse,
    PostCreate,
    PostDeleteResponse,
    PostMutationResponse,
    PostResponse,
    PostUpdate,
    QuotaResponse,
    UserSummary,
)
from showcase.security import get_current_user
from showcase.telemetry import (
    ENGAGEMENT_EVENTS_TOTAL,
    FEED_LATENCY,
    POST_INGESTION_TOTAL,
    POST_QUOTA_REJECTIONS_TOTAL,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _summary(user: Optional[User]) -> Optional[UserSummary]:
    return UserSummary.model_validate(user) if user else None


def _build_post_response(post: Post) -> PostResponse:
    return PostResponse(
        post_id=post.post_id,
        user_id=post.user_id,
        author=_summary(post.author),
        title=post.title,
        description=post.description,
        media_url=post.media_url,
        media_type=post.media_type,
        specialization=post.specialization,
        is_archived=post.is_archived,
        likes=[LikeResponse.model_validate(like) for like in post.likes],
        comments=[
            CommentResponse(
                comment_id=c.comment_id,
                user=_summary(c.author),
                text=c.text,
                created_at=c.created_at,
            )
            for c in post.comments
        ],
        like_count=len(post.likes),
        comment_count=len(post.comments),
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def _normalise_media(media_url: Optional[str], media_type: Optional[str]) -> tuple[Optional[str], str]:
    if not media_url:
        return None, "none"
    if not media_type or media_type == "none":
        return media_url, "image"
    return media_url, media_type


async def _get_post(db: AsyncSession, post_id: str) -> Post:
    rows = await db.execute(
        select(Post)
        .where(Post.post_id == post_id)
        .execution_options(populate_existing=True)
    )
    post = rows.scalar_one_or_none()
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def _get_own_post(db: AsyncSession, post_id: str, user: User, action: str) -> Post:
    post = await _get_post(db, post_id)
    if post.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this post",
        )
    return post


async def _live_posts(db: AsyncSession, specialization: Optional[str]) -> list[Post]:
    """Non-archived posts, oldest first so ranking ties keep insertion order."""
    query = select(Post).where(Post.is_archived.is_(False))
    if specialization:
        query = query.where(Post.specialization == specialization)
    rows = await db.execute(query.order_by(Post.created_at, Post.post_id))
    return list(rows.scalars().all())


# ─────────────────────────── Create ──────────────────────────────────────

@router.post("/", response_model=PostMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    1. Take a slot from the author's weekly quota (403 when exhausted).
    2. Persist and commit the post; the slot is handed back if either fails.
    """
    user_id = user.user_id
    with tracer.start_as_current_span("create_post") as span:
        if not await consume_post_quota(user_id):
            POST_QUOTA_REJECTIONS_TOTAL.inc()
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You have reached the weekly post limit ({settings.post_quota_limit} posts).",
            )

        media_url, media_type = _normalise_media(body.media_url, body.media_type)
        post = Post(
            author=user,
            title=body.title,
            description=body.description,
            specialization=body.specialization,
            media_url=media_url,
            media_type=media_type,
            is_archived=False,
            likes=[],
            comments=[],
        )
        try:
            db.add(post)
            await db.flush()     # materialise post_id and timestamps
            # Commit here so a failed commit still returns the quota slot
            await db.commit()
        except Exception:
            await release_post_quota(user_id)
            raise

        span.set_attribute("post.id", post.post_id)
        span.set_attribute("post.user_id", post.user_id)

        POST_INGESTION_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.post_id, post.user_id)
        return PostMutationResponse(
            message="Post created successfully", post=_build_post_response(post)
        )


# ─────────────────────────── Ranked listings ─────────────────────────────

@router.get("/", response_model=list[PostResponse])
async def home_feed(
    specialization: Optional[str] = Query(None, description="Only this category"),
    db: AsyncSession = Depends(get_db),
):
    """Home feed: live posts ordered by time-decayed engagement."""
    start_time = time.perf_counter()

    with tracer.start_as_current_span("home_feed") as span:
        posts = await _live_posts(db, specialization)
        ranked = rank_by_decay(posts)
        span.set_attribute("feed.posts_returned", len(ranked))

    FEED_LATENCY.labels(view="home").observe(time.perf_counter() - start_time)
    # The decay score is transient; only the order reaches the client
    return [_build_post_response(r.post) for r in ranked]


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    specialization: Optional[str] = Query(None, description="Only this category"),
    limit: Optional[int] = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
):
    """All-time leaderboard: live posts by like count, top `limit`."""
    start_time = time.perf_counter()
    if limit is None:
        limit = settings.leaderboard_default_limit

    with tracer.start_as_current_span("leaderboard") as span:
        posts = await _live_posts(db, specialization)
        ranked = rank_by_total_likes(posts, limit)
        span.set_attribute("leaderboard.limit", limit)
        span.set_attribute("leaderboard.posts_returned", len(ranked))

    FEED_LATENCY.labels(view="leaderboard").observe(time.perf_counter() - start_time)
    return [
        LeaderboardEntry(**_build_post_response(r.post).model_dump(), rank=r.rank)
        for r in ranked
    ]


@router.get("/my-posts", response_model=list[PostResponse])
async def my_posts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Post)
        .where(Post.user_id == user.user_id)
        .order_by(Post.created_at.desc())
    )
    return [_build_post_response(p) for p in rows.scalars().all()]


@router.get("/quota", response_model=QuotaResponse)
async def my_quota(user: User = Depends(get_current_user)):
    quota = await get_post_quota(user.user_id)
    return QuotaResponse(
        used=quota.used,
        limit=quota.limit,
        remaining=quota.remaining,
        resets_in_seconds=quota.resets_in_seconds,
    )


# ─────────────────────────── Single post ─────────────────────────────────

@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    return _build_post_response(await _get_post(db, post_id))


@router.put("/{post_id}", response_model=PostMutationResponse)
async def update_post(
    post_id: str,
    body: PostUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("update_post") as span:
        span.set_attribute("post.id", post_id)
        post = await _get_own_post(db, post_id, user, "edit")

        if body.title:
            post.title = body.title
        if body.description:
            post.description = body.description
        if body.specialization:
            post.specialization = body.specialization

        if body.remove_media:
            post.media_url, post.media_type = None, "none"
        elif body.media_url:
            post.media_url, post.media_type = _normalise_media(
                body.media_url, body.media_type or post.media_type
            )

        await db.flush()
        logger.info("Post updated: %s", post_id)
        return PostMutationResponse(
            message="Post updated successfully", post=_build_post_response(post)
        )


@router.delete("/{post_id}", response_model=PostDeleteResponse)
async def delete_post(
    post_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("delete_post"):
        post = await _get_own_post(db, post_id, user, "delete")
        await db.delete(post)
        await db.flush()
        logger.info("Post deleted: %s by user %s", post_id, user.user_id)
        return PostDeleteResponse(
            message="Post deleted successfully", deleted_post_id=post_id
        )


# ─────────────────────────── Engagement ──────────────────────────────────

@router.put("/{post_id}/like", response_model=PostResponse)
async def toggle_like(
    post_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Like the post, or unlike it if the caller already has."""
    user_id = user.user_id
    with tracer.start_as_current_span("toggle_like") as span:
        post = await _get_post(db, post_id)

        existing = next((like for like in post.likes if like.user_id == user_id), None)
        if existing:
            post.likes.remove(existing)
            kind = "unlike"
            await db.flush()
        else:
            post.likes.append(Like(user_id=user_id, post_id=post.post_id))
            kind = "like"
            try:
                await db.flush()
            except IntegrityError:
                # A concurrent request stored the same like first
                await db.rollback()
                logger.info("Duplicate like from %s on %s; already liked", user_id, post_id)
                post = await _get_post(db, post_id)

        span.set_attribute("post.id", post_id)
        span.set_attribute("engagement.kind", kind)
        ENGAGEMENT_EVENTS_TOTAL.labels(kind=kind).inc()
        return _build_post_response(post)


@router.post("/{post_id}/comment", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: str,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    text = body.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment text is required.")

    with tracer.start_as_current_span("add_comment") as span:
        post = await _get_post(db, post_id)
        post.comments.append(Comment(author=user, post_id=post.post_id, text=text))
        await db.flush()

        span.set_attribute("post.id", post_id)
        ENGAGEMENT_EVENTS_TOTAL.labels(kind="comment").inc()
        return _build_post_response(post)
