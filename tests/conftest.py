from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the kairo package importable when running the tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kairo.core import config as core_config  # noqa: E402
from kairo.core.rate_limiter import reset_rate_limits  # noqa: E402
from kairo.db import models  # noqa: E402
from kairo.db import session as db_session  # noqa: E402
from kairo.routers.deps import reset_dependencies  # noqa: E402

TEST_JWT_SECRET = "kairo-test-signing-key-0123456789abcdef"


def _clear_caches() -> None:
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    reset_dependencies()
    reset_rate_limits()


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Point the app at a temporary SQLite file and reset every settings/engine cache."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("MAX_ACTIVE_REFRESH_TOKENS", "5")
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("FRONTEND_URL", raising=False)
    monkeypatch.delenv("TRUSTED_PROXIES", raising=False)
    _clear_caches()

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield db_file

    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()
    _clear_caches()


@pytest.fixture()
def make_user(db_env):
    """Create users through the real registration path (argon2 hashing included)."""
    from kairo.services.auth_service import AuthService

    service = AuthService()

    def _make(email: str = "a@x.com", password: str = "correct-horse", name: str = "Ada"):
        return service.register(email, password, name)

    return _make
