import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the test environment goes in first
_DB_DIR = tempfile.mkdtemp(prefix="showcase-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'showcase.db'}"
os.environ["TRACING_ENABLED"] = "false"
os.environ["ARCHIVER_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from showcase.clients.redis_client import set_redis
from showcase.database import AsyncSessionLocal, Base, engine, init_db
from showcase.main import app


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    client = FakeRedis(decode_responses=True)
    set_redis(client)
    try:
        yield client
    finally:
        set_redis(None)
        await client.flushall()
        await client.aclose()


@pytest_asyncio.fixture(autouse=True)
async def database():
    await init_db()
    try:
        yield
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        # Pooled connections are tied to this test's event loop
        await engine.dispose()


@pytest_asyncio.fixture
async def session():
    async with AsyncSessionLocal() as s:
        yield s


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def register(client, name="Ada Lovelace", email="ada@example.com", password="secret123"):
    """Register a user and return (user_json, auth_headers)."""
    resp = await client.post(
        "/auth/register", json={"name": name, "email": email, "password": password}
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body, {"Authorization": f"Bearer {body['token']}"}


async def create_post(client, headers, title="My project", specialization="web-dev", **extra):
    payload = {
        "title": title,
        "description": f"Write-up for {title}",
        "specialization": specialization,
        **extra,
    }
    resp = await client.post("/posts/", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["post"]
