"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (any SQLAlchemy async URL; TiDB/MySQL in deployment) ─────
    database_url: str = "mysql+aiomysql://root:@tidb:4000/showcase"
    database_echo: bool = False

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_url: str = "redis://redis:6379/0"

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = 30

    # ── Posting rules ──────────────────────────────────────────────────────
    post_quota_limit: int = 5                  # posts per window
    post_quota_window_seconds: int = 7 * 86400  # rolling week
    leaderboard_default_limit: int = 10

    # ── Nightly archiver ───────────────────────────────────────────────────
    archiver_enabled: bool = True
    archive_after_days: int = 7
    archive_interval_seconds: int = 86400

    # ── HTTP ───────────────────────────────────────────────────────────────
    cors_origins: list[str] = ["http://localhost:3000"]

    # ── Observability ──────────────────────────────────────────────────────
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "showcase-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
