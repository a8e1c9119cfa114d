from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from kairo.core.tokens import TokenCodec, hash_secret, mint_refresh_secret
from kairo.services.errors import TokenInvalidError

SECRET = "unit-test-signing-key-0123456789abcdef"


def test_access_token_roundtrip_binds_user_and_email():
    codec = TokenCodec(SECRET)
    token = codec.mint_access_token("user-1", "a@x.com")
    claims = codec.decode_access_token(token)
    assert claims.user_id == "user-1"
    assert claims.email == "a@x.com"


def test_access_token_carries_short_expiry():
    codec = TokenCodec(SECRET, access_ttl=timedelta(minutes=15))
    payload = jwt.decode(codec.mint_access_token("u", "e@x.com"), SECRET, algorithms=["HS256"])
    assert payload["exp"] - payload["iat"] == 15 * 60
    assert payload["type"] == "access"


def test_expired_access_token_is_rejected():
    codec = TokenCodec(SECRET, access_ttl=timedelta(seconds=-30))
    token = codec.mint_access_token("user-1", "a@x.com")
    with pytest.raises(TokenInvalidError, match="expired"):
        codec.decode_access_token(token)


def test_access_token_signed_with_other_key_is_rejected():
    token = TokenCodec("another-signing-key-0123456789abcdef").mint_access_token("user-1", "a@x.com")
    with pytest.raises(TokenInvalidError):
        TokenCodec(SECRET).decode_access_token(token)


def test_token_without_access_type_is_rejected():
    forged = jwt.encode({"sub": "user-1", "email": "a@x.com", "exp": 9999999999}, SECRET, algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        TokenCodec(SECRET).decode_access_token(forged)


def test_garbage_token_is_rejected():
    with pytest.raises(TokenInvalidError):
        TokenCodec(SECRET).decode_access_token("not.a.jwt")


def test_codec_requires_signing_key():
    with pytest.raises(RuntimeError):
        TokenCodec("")


def test_refresh_secrets_are_random_and_long():
    secrets_seen = {mint_refresh_secret() for _ in range(50)}
    assert len(secrets_seen) == 50
    assert all(len(s) == 128 for s in secrets_seen)


def test_hash_secret_is_deterministic_and_one_way():
    secret = mint_refresh_secret()
    assert hash_secret(secret) == hash_secret(secret)
    assert hash_secret(secret) != secret
    assert len(hash_secret(secret)) == 64
    assert hash_secret(secret) != hash_secret(mint_refresh_secret())
