"""
End-to-end API tests for posts, engagement, the home feed and the leaderboard.

Tests the full flow: API → SQLAlchemy (SQLite) / Redis (fakeredis) → Response
"""

from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import create_post, register
import showcase.routers.posts as posts_router
from showcase.models import Like, Post, utcnow


async def backdate(session, post_id, hours):
    await session.execute(
        update(Post)
        .where(Post.post_id == post_id)
        .values(created_at=utcnow() - timedelta(hours=hours))
    )
    await session.commit()


async def archive(session, post_id):
    await session.execute(
        update(Post).where(Post.post_id == post_id).values(is_archived=True)
    )
    await session.commit()


# ============================================================================
# Create / read / update / delete
# ============================================================================

class TestPostCrud:

    @pytest.mark.asyncio
    async def test_create_post(self, client):
        user, headers = await register(client)

        resp = await client.post(
            "/posts/",
            json={
                "title": "  Compiler in a weekend ",
                "description": "A tiny Lisp",
                "specialization": "systems",
                "media_url": "https://cdn.example.com/demo.mp4",
                "media_type": "video",
            },
            headers=headers,
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Post created successfully"
        post = body["post"]
        assert post["title"] == "Compiler in a weekend"
        assert post["author"] == {"user_id": user["user_id"], "name": "Ada Lovelace", "profile_image": None}
        assert post["media_type"] == "video"
        assert post["is_archived"] is False
        assert post["like_count"] == 0 and post["likes"] == []
        assert post["comment_count"] == 0 and post["comments"] == []

    @pytest.mark.asyncio
    async def test_media_type_defaults(self, client):
        _, headers = await register(client)
        no_media = await create_post(client, headers, title="plain")
        url_only = await create_post(
            client, headers, title="pic", media_url="https://cdn.example.com/a.png"
        )
        assert no_media["media_type"] == "none" and no_media["media_url"] is None
        assert url_only["media_type"] == "image"

    @pytest.mark.asyncio
    async def test_create_requires_auth(self, client):
        resp = await client.post(
            "/posts/",
            json={"title": "t", "description": "d", "specialization": "web-dev"},
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_create_requires_specialization(self, client):
        _, headers = await register(client)
        resp = await client.post(
            "/posts/", json={"title": "t", "description": "d"}, headers=headers
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_get_post(self, client):
        _, headers = await register(client)
        post = await create_post(client, headers)

        resp = await client.get(f"/posts/{post['post_id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "My project"

        assert (await client.get("/posts/missing")).status_code == 404

    @pytest.mark.asyncio
    async def test_author_can_update(self, client):
        _, headers = await register(client)
        post = await create_post(
            client, headers, media_url="https://cdn.example.com/a.png", media_type="image"
        )

        resp = await client.put(
            f"/posts/{post['post_id']}",
            json={"title": "Renamed", "remove_media": True},
            headers=headers,
        )

        assert resp.status_code == 200
        updated = resp.json()["post"]
        assert updated["title"] == "Renamed"
        assert updated["description"] == post["description"]
        assert updated["media_url"] is None
        assert updated["media_type"] == "none"

    @pytest.mark.asyncio
    async def test_other_user_cannot_update_or_delete(self, client):
        _, owner = await register(client)
        _, intruder = await register(client, name="Mallory", email="mallory@example.com")
        post = await create_post(client, owner)

        edit = await client.put(f"/posts/{post['post_id']}", json={"title": "x"}, headers=intruder)
        delete = await client.delete(f"/posts/{post['post_id']}", headers=intruder)

        assert edit.status_code == 403
        assert edit.json()["detail"] == "Not authorized to edit this post"
        assert delete.status_code == 403

    @pytest.mark.asyncio
    async def test_author_can_delete(self, client):
        _, headers = await register(client)
        post = await create_post(client, headers)
        await client.put(f"/posts/{post['post_id']}/like", headers=headers)
        await client.post(f"/posts/{post['post_id']}/comment", json={"text": "hi"}, headers=headers)

        resp = await client.delete(f"/posts/{post['post_id']}", headers=headers)

        assert resp.status_code == 200
        assert resp.json() == {
            "message": "Post deleted successfully",
            "deleted_post_id": post["post_id"],
        }
        assert (await client.get(f"/posts/{post['post_id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_my_posts_newest_first_including_archived(self, client, session):
        _, headers = await register(client)
        _, other = await register(client, name="Grace", email="grace@example.com")
        old = await create_post(client, headers, title="old")
        new = await create_post(client, headers, title="new")
        await create_post(client, other, title="not mine")
        await backdate(session, old["post_id"], hours=48)
        await archive(session, old["post_id"])

        resp = await client.get("/posts/my-posts", headers=headers)

        assert resp.status_code == 200
        assert [p["post_id"] for p in resp.json()] == [new["post_id"], old["post_id"]]


# ============================================================================
# Likes and comments
# ============================================================================

class TestEngagement:

    @pytest.mark.asyncio
    async def test_like_toggles(self, client):
        user, headers = await register(client)
        post = await create_post(client, headers)
        url = f"/posts/{post['post_id']}/like"

        liked = await client.put(url, headers=headers)
        assert liked.status_code == 200
        assert liked.json()["like_count"] == 1
        assert liked.json()["likes"][0]["user_id"] == user["user_id"]

        unliked = await client.put(url, headers=headers)
        assert unliked.json()["like_count"] == 0
        assert unliked.json()["likes"] == []

    @pytest.mark.asyncio
    async def test_likes_from_different_users_accumulate(self, client):
        _, a = await register(client)
        _, b = await register(client, name="Grace", email="grace@example.com")
        post = await create_post(client, a)

        await client.put(f"/posts/{post['post_id']}/like", headers=a)
        resp = await client.put(f"/posts/{post['post_id']}/like", headers=b)

        assert resp.json()["like_count"] == 2

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_like_is_not_an_error(self, client, session, monkeypatch):
        user, headers = await register(client)
        post = await create_post(client, headers)
        original_get_post = posts_router._get_post
        calls = []

        async def get_post_then_race(db, post_id):
            loaded = await original_get_post(db, post_id)
            calls.append(post_id)
            if len(calls) == 1:
                # Another request stores the same like before this one flushes
                session.add(Like(user_id=user["user_id"], post_id=post_id))
                await session.commit()
            return loaded

        monkeypatch.setattr(posts_router, "_get_post", get_post_then_race)

        resp = await client.put(f"/posts/{post['post_id']}/like", headers=headers)

        assert resp.status_code == 200
        assert resp.json()["like_count"] == 1
        assert resp.json()["likes"][0]["user_id"] == user["user_id"]

    @pytest.mark.asyncio
    async def test_like_missing_post(self, client):
        _, headers = await register(client)
        resp = await client.put("/posts/missing/like", headers=headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_add_comment(self, client):
        user, headers = await register(client)
        post = await create_post(client, headers)

        resp = await client.post(
            f"/posts/{post['post_id']}/comment", json={"text": "  Nice work!  "}, headers=headers
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["comment_count"] == 1
        comment = body["comments"][0]
        assert comment["text"] == "Nice work!"
        assert comment["user"]["user_id"] == user["user_id"]
        assert comment["user"]["name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, client):
        _, headers = await register(client)
        post = await create_post(client, headers)

        resp = await client.post(
            f"/posts/{post['post_id']}/comment", json={"text": "   "}, headers=headers
        )

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Comment text is required."


# ============================================================================
# Home feed and leaderboard
# ============================================================================

class TestHomeFeed:

    @pytest.mark.asyncio
    async def test_ordered_by_decayed_engagement(self, client, session):
        _, a = await register(client)
        _, b = await register(client, name="Grace", email="grace@example.com")
        p1 = await create_post(client, a, title="P1")
        p2 = await create_post(client, a, title="P2")
        p3 = await create_post(client, a, title="P3")

        await client.put(f"/posts/{p1['post_id']}/like", headers=b)
        await client.post(f"/posts/{p2['post_id']}/comment", json={"text": "!"}, headers=b)
        for headers in (a, b):
            await client.put(f"/posts/{p3['post_id']}/like", headers=headers)
        await backdate(session, p1["post_id"], hours=1)
        await backdate(session, p2["post_id"], hours=1)
        await backdate(session, p3["post_id"], hours=10)

        resp = await client.get("/posts/")

        assert resp.status_code == 200
        # P2: 2/1.1, P1: 1/1.1, P3: 2/10.1
        assert [p["title"] for p in resp.json()] == ["P2", "P1", "P3"]

    @pytest.mark.asyncio
    async def test_score_is_not_serialized(self, client):
        _, headers = await register(client)
        await create_post(client, headers)

        post = (await client.get("/posts/")).json()[0]

        assert "rank_score" not in post and "score" not in post and "rank" not in post

    @pytest.mark.asyncio
    async def test_excludes_archived_and_filters_specialization(self, client, session):
        _, headers = await register(client)
        web = await create_post(client, headers, title="web", specialization="web-dev")
        ml = await create_post(client, headers, title="ml", specialization="ai-ml")
        gone = await create_post(client, headers, title="gone", specialization="web-dev")
        await archive(session, gone["post_id"])

        everything = await client.get("/posts/")
        web_only = await client.get("/posts/", params={"specialization": "web-dev"})

        assert {p["post_id"] for p in everything.json()} == {web["post_id"], ml["post_id"]}
        assert [p["post_id"] for p in web_only.json()] == [web["post_id"]]

    @pytest.mark.asyncio
    async def test_empty_feed(self, client):
        resp = await client.get("/posts/")
        assert resp.status_code == 200
        assert resp.json() == []


class TestLeaderboard:

    @pytest.mark.asyncio
    async def test_ranked_by_likes_with_rank_index(self, client, session):
        users = []
        for i in range(3):
            users.append((await register(client, name=f"U{i}", email=f"u{i}@example.com"))[1])
        quiet = await create_post(client, users[0], title="quiet")
        popular = await create_post(client, users[0], title="popular")
        middling = await create_post(client, users[1], title="middling")

        for headers in users:
            await client.put(f"/posts/{popular['post_id']}/like", headers=headers)
        await client.put(f"/posts/{middling['post_id']}/like", headers=users[2])
        for _ in range(3):
            await client.post(
                f"/posts/{quiet['post_id']}/comment", json={"text": "hm"}, headers=users[1]
            )
        # Age plays no part in the leaderboard
        await backdate(session, popular["post_id"], hours=24 * 5)

        resp = await client.get("/posts/leaderboard")

        assert resp.status_code == 200
        board = resp.json()
        assert [(e["title"], e["rank"], e["like_count"]) for e in board] == [
            ("popular", 0, 3),
            ("middling", 1, 1),
            ("quiet", 2, 0),
        ]
        assert board[2]["comment_count"] == 3

    @pytest.mark.asyncio
    async def test_limit_and_specialization(self, client):
        _, a = await register(client)
        _, b = await register(client, name="Grace", email="grace@example.com")
        for i in range(4):
            await create_post(client, a, title=f"web{i}", specialization="web-dev")
        ml = await create_post(client, b, title="ml", specialization="ai-ml")
        await client.put(f"/posts/{ml['post_id']}/like", headers=a)

        top_two = await client.get("/posts/leaderboard", params={"limit": 2})
        ml_only = await client.get("/posts/leaderboard", params={"specialization": "ai-ml"})

        assert len(top_two.json()) == 2
        assert top_two.json()[0]["title"] == "ml"
        assert [e["title"] for e in ml_only.json()] == ["ml"]

    @pytest.mark.asyncio
    async def test_limit_validation(self, client):
        resp = await client.get("/posts/leaderboard", params={"limit": -1})
        assert resp.status_code == 422
