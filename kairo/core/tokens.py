"""
Token helpers:
- short-lived access tokens (JWT signed with the configured key, via PyJWT)
- opaque refresh secrets and the digest used to store them
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from kairo.core.config import Settings, get_settings
from kairo.services.errors import TokenInvalidError

ACCESS_TOKEN_TYPE = "access"
REFRESH_SECRET_BYTES = 64


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    email: str


def mint_refresh_secret() -> str:
    """Return a random opaque refresh secret (512 bits, hex encoded)."""
    return secrets.token_hex(REFRESH_SECRET_BYTES)


def hash_secret(secret: str) -> str:
    """Deterministic SHA-256 digest used as the storage key of a refresh secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class TokenCodec:
    """Mints and validates access tokens; stateless apart from the signing key."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", access_ttl: timedelta = timedelta(minutes=15)):
        if not secret:
            raise RuntimeError("JWT_SECRET must be configured to issue access tokens.")
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TokenCodec":
        settings = settings or get_settings()
        return cls(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        )

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def mint_access_token(self, user_id: str, email: str) -> str:
        now = self._now()
        payload = {
            "sub": str(user_id),
            "email": email,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int((now + self.access_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> AccessClaims:
        """Validate signature, expiry and token type; raise TokenInvalidError otherwise."""
        try:
            decoded = jwt.decode(
                token or "",
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenInvalidError("Access token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError("Invalid access token") from exc

        if decoded.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenInvalidError("Invalid access token")
        user_id = str(decoded.get("sub") or "")
        if not user_id:
            raise TokenInvalidError("Invalid access token")
        return AccessClaims(user_id=user_id, email=str(decoded.get("email") or ""))
