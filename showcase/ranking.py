"""
Feed ranking.

Two policies are served from here:

  Home feed   │ time-decayed engagement
  ────────────┼──────────────────────────────────────────────────────────
              │  age_hours  = (now - created_at) in hours + 0.1
              │  rank_score = (likes + 2 * comments) / age_hours
              │  Comments weigh twice a like. The 0.1h floor keeps the
              │  divisor positive for posts created "just now".

  Leaderboard │ all-time likes
  ────────────┼──────────────────────────────────────────────────────────
              │  score = likes   (comments are reported, never ranked)
              │  top-K, each entry carries its 0-based rank.

Both functions are pure: they read ``created_at``, ``likes`` and
``comments`` from each post (ORM object or mapping), never mutate it, and
return new ``RankedPost`` wrappers. Sorting is stable, so equal scores
keep the caller's input order.
"""
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

AGE_FLOOR_HOURS = 0.1
COMMENT_WEIGHT = 2
DEFAULT_LEADERBOARD_LIMIT = 10

_MS_PER_HOUR = 3_600_000


class RankingInputError(ValueError):
    """A post handed to the ranker is missing a field it needs."""


@dataclass(frozen=True)
class RankedPost:
    post: Any
    score: float
    like_count: int
    comment_count: int
    rank: int = 0


def _field(post: Any, name: str) -> Any:
    if isinstance(post, Mapping):
        return post.get(name)
    return getattr(post, name, None)


def _as_utc(ts: datetime) -> datetime:
    # Naive timestamps come out of the database and are UTC by convention
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _created_at(post: Any, index: int) -> datetime:
    created_at = _field(post, "created_at")
    if not isinstance(created_at, datetime):
        raise RankingInputError(
            f"post at index {index} has invalid created_at: {created_at!r}"
        )
    return _as_utc(created_at)


def _count(post: Any, name: str, index: int) -> int:
    items = _field(post, name)
    if items is None:
        raise RankingInputError(f"post at index {index} is missing {name}")
    try:
        return len(items)
    except TypeError:
        raise RankingInputError(
            f"post at index {index} has non-countable {name}: {type(items).__name__}"
        ) from None


def age_in_hours(created_at: datetime, now: datetime) -> float:
    """Hours elapsed since ``created_at`` plus the 0.1h floor.

    A post stamped after ``now`` counts as brand new rather than negative.
    """
    elapsed_ms = (_as_utc(now) - _as_utc(created_at)).total_seconds() * 1000
    return max(elapsed_ms, 0.0) / _MS_PER_HOUR + AGE_FLOOR_HOURS


def decay_score(like_count: int, comment_count: int, age_hours: float) -> float:
    score = (like_count + comment_count * COMMENT_WEIGHT) / age_hours
    if not math.isfinite(score):
        raise RankingInputError(f"non-finite decay score for age {age_hours!r}")
    return score


def rank_by_decay(
    posts: Iterable[Any], now: Optional[datetime] = None
) -> list[RankedPost]:
    """Order posts for the home feed, highest decayed engagement first."""
    if now is None:
        now = datetime.now(timezone.utc)

    scored: list[RankedPost] = []
    for index, post in enumerate(posts):
        created_at = _created_at(post, index)
        likes = _count(post, "likes", index)
        comments = _count(post, "comments", index)
        score = decay_score(likes, comments, age_in_hours(created_at, now))
        scored.append(RankedPost(post, score, likes, comments))

    ordered = sorted(scored, key=lambda r: r.score, reverse=True)
    return [
        RankedPost(r.post, r.score, r.like_count, r.comment_count, rank)
        for rank, r in enumerate(ordered)
    ]


def rank_by_total_likes(
    posts: Iterable[Any], limit: int = DEFAULT_LEADERBOARD_LIMIT
) -> list[RankedPost]:
    """Top ``limit`` posts by like count, annotated with their 0-based rank."""
    if limit < 0:
        raise RankingInputError(f"limit must be >= 0, got {limit}")

    scored: list[RankedPost] = []
    for index, post in enumerate(posts):
        likes = _count(post, "likes", index)
        comments = _count(post, "comments", index)
        scored.append(RankedPost(post, float(likes), likes, comments))

    ordered = sorted(scored, key=lambda r: r.score, reverse=True)[:limit]
    return [
        RankedPost(r.post, r.score, r.like_count, r.comment_count, rank)
        for rank, r in enumerate(ordered)
    ]
