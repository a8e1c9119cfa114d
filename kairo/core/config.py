"""
Configuration helpers for the Kairo backend.

Settings are read once from the environment so that services and the storage
layer never touch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    access_token_ttl_seconds: int
    refresh_token_ttl_days: int
    max_active_refresh_tokens: int
    db_transaction_retries: int
    frontend_url: str
    log_level: str
    rate_limit_enabled: bool
    trusted_proxies: tuple[str, ...]


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", ""),
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        access_token_ttl_seconds=max(1, _int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"), 900)),
        refresh_token_ttl_days=max(1, _int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7"), 7)),
        max_active_refresh_tokens=max(1, _int(os.getenv("MAX_ACTIVE_REFRESH_TOKENS", "5"), 5)),
        db_transaction_retries=max(0, _int(os.getenv("DB_TRANSACTION_RETRIES", "3"), 3)),
        frontend_url=os.getenv("FRONTEND_URL", "").rstrip("/"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        rate_limit_enabled=_bool(os.getenv("RATE_LIMIT_ENABLED"), True),
        trusted_proxies=tuple(
            p.strip() for p in (os.getenv("TRUSTED_PROXIES") or "").split(",") if p.strip()
        ),
    )
