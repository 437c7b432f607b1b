"""
Project Showcase API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (weekly post quotas)
  4. Start the nightly archiver
  5. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from showcase.archiver import start_archiver, stop_archiver
from showcase.config import settings
from showcase.database import dispose_db, init_db
from showcase.telemetry import setup_tracing, instrument_app
from showcase.clients.redis_client import close_redis, init_redis
from showcase.routers import auth, posts

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Project Showcase API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    if settings.archiver_enabled:
        start_archiver()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await stop_archiver()
    await close_redis()
    await dispose_db()


app = FastAPI(
    title="Project Showcase API",
    description=(
        "Share project write-ups, like and comment on them, and browse a "
        "decay-ranked home feed and an all-time leaderboard."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics, scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
