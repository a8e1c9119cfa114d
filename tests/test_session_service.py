from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from kairo.core.tokens import hash_secret
from kairo.repositories.refresh_token_store import RefreshTokenNotFoundError, RefreshTokenStore
from kairo.repositories.user_repository import UserRepository
from kairo.services.errors import (
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthenticatedError,
)
from kairo.services.session_service import SessionService


@pytest.fixture()
def service(db_env):
    return SessionService()


@pytest.fixture()
def ada(make_user):
    return make_user("a@x.com", "correct-horse", "Ada")


def test_login_returns_tokens_and_public_user(service, ada):
    tokens = service.login("a@x.com", "correct-horse")

    assert tokens.access_token
    assert len(tokens.refresh_token) == 128
    assert tokens.user.id == ada.id
    assert tokens.user.email == "a@x.com"
    assert "password_hash" not in tokens.user.to_dict()
    assert service.codec.decode_access_token(tokens.access_token).user_id == ada.id


def test_refresh_secret_is_never_stored_in_plaintext(service, ada):
    tokens = service.login("a@x.com", "correct-horse")
    # the stored key is the digest; consuming by the raw secret finds nothing
    store = service.store
    with pytest.raises(RefreshTokenNotFoundError):
        store.consume(tokens.refresh_token)
    assert store.consume(hash_secret(tokens.refresh_token)).user_id == ada.id


def test_login_is_case_insensitive_on_email(service, ada):
    assert service.login("  A@X.COM ", "correct-horse").user.id == ada.id


def test_login_failures_are_indistinguishable(service, ada):
    with pytest.raises(InvalidCredentialsError) as wrong_password:
        service.login("a@x.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        service.login("ghost@x.com", "correct-horse")
    assert str(wrong_password.value) == str(unknown_email.value) == "Invalid credentials"


def test_refresh_rotates_and_old_secret_dies(service, ada):
    original = service.login("a@x.com", "correct-horse").refresh_token

    rotated = service.refresh(original)
    assert rotated.refresh_token != original
    assert rotated.user.id == ada.id
    assert rotated.access_token

    with pytest.raises(TokenInvalidError) as exc:
        service.refresh(original)
    assert exc.value.message == "Invalid refresh token"

    # the replacement still works exactly once
    assert service.refresh(rotated.refresh_token).user.id == ada.id


def test_refresh_with_unknown_secret(service, ada):
    with pytest.raises(TokenInvalidError, match="Invalid refresh token"):
        service.refresh("made-up-secret")
    with pytest.raises(TokenInvalidError):
        service.refresh("")


def test_refresh_with_expired_secret(make_user):
    make_user("a@x.com", "correct-horse")
    service = SessionService(refresh_ttl=timedelta(seconds=-1))
    secret = service.login("a@x.com", "correct-horse").refresh_token

    with pytest.raises(TokenExpiredError) as exc:
        service.refresh(secret)
    assert exc.value.message == "Refresh token expired"
    assert isinstance(exc.value, UnauthenticatedError)
    # second attempt no longer finds the row at all
    with pytest.raises(TokenInvalidError):
        service.refresh(secret)


def test_refresh_fails_when_user_was_deleted(service, ada):
    secret = service.login("a@x.com", "correct-horse").refresh_token
    UserRepository().delete(ada.id)
    with pytest.raises(TokenInvalidError):
        service.refresh(secret)


def test_logout_revokes_and_is_idempotent(service, ada):
    secret = service.login("a@x.com", "correct-horse").refresh_token
    service.logout(secret)
    service.logout(secret)
    service.logout(None)
    with pytest.raises(TokenInvalidError):
        service.refresh(secret)


def test_get_current_user(service, ada):
    assert service.get_current_user(ada.id).email == "a@x.com"
    assert service.get_current_user("no-such-id") is None


def test_sixth_login_evicts_oldest_session(service, ada):
    secrets_issued = [service.login("a@x.com", "correct-horse").refresh_token for _ in range(5)]
    assert service.store.count_active(ada.id) == 5

    service.login("a@x.com", "correct-horse")
    assert service.store.count_active(ada.id) == 5

    with pytest.raises(TokenInvalidError):
        service.refresh(secrets_issued[0])
    assert service.refresh(secrets_issued[1]).user.id == ada.id


def test_active_sessions_never_exceed_cap(make_user):
    user = make_user("a@x.com", "correct-horse")
    service = SessionService(store=RefreshTokenStore(max_active=3))
    live = []
    for step in range(12):
        if step % 3 == 2 and live:
            live.append(service.refresh(live.pop()).refresh_token)
        else:
            live.append(service.login("a@x.com", "correct-horse").refresh_token)
        assert service.store.count_active(user.id) <= 3


def test_concurrent_refresh_issues_one_session(service, ada):
    secret = service.login("a@x.com", "correct-horse").refresh_token
    contenders = 5
    start = threading.Barrier(contenders)

    def attempt(_):
        start.wait(timeout=10)
        try:
            return service.refresh(secret).refresh_token
        except UnauthenticatedError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=contenders) as pool:
        outcomes = list(pool.map(attempt, range(contenders)))

    winners = [o for o in outcomes if isinstance(o, str)]
    losers = [o for o in outcomes if isinstance(o, UnauthenticatedError)]
    assert len(winners) == 1
    assert len(losers) == contenders - 1
    assert all(isinstance(o, TokenInvalidError) and o.message == "Invalid refresh token" for o in losers)
    assert service.store.count_active(ada.id) == 1
