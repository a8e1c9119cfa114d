"""
Session use cases: login, refresh-token rotation, logout, current user.

Access tokens are stateless JWTs. Refresh secrets are opaque random strings
handed to the client once; only their SHA-256 digest is stored, and every
successful refresh consumes the presented secret and issues a new one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from kairo.core.config import get_settings
from kairo.core.tokens import TokenCodec, hash_secret, mint_refresh_secret
from kairo.repositories.refresh_token_store import (
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    RefreshTokenStore,
)
from kairo.repositories.user_repository import UserProfile, UserRepository
from kairo.services.credentials import CredentialVerifier
from kairo.services.errors import TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

INVALID_REFRESH_TOKEN = "Invalid refresh token"
EXPIRED_REFRESH_TOKEN = "Refresh token expired"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    user: UserProfile

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "user": self.user.to_dict(),
        }


class SessionService:
    """Issues, rotates and revokes sessions for authenticated users."""

    def __init__(
        self,
        *,
        users: Optional[UserRepository] = None,
        codec: Optional[TokenCodec] = None,
        store: Optional[RefreshTokenStore] = None,
        verifier: Optional[CredentialVerifier] = None,
        refresh_ttl: Optional[timedelta] = None,
    ):
        settings = get_settings()
        self.users = users or UserRepository()
        self.codec = codec or TokenCodec.from_settings(settings)
        self.store = store or RefreshTokenStore(max_active=settings.max_active_refresh_tokens)
        self.verifier = verifier or CredentialVerifier(self.users)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.refresh_token_ttl_days)

    def _issue(self, user_id: str, email: str) -> tuple[str, str]:
        access_token = self.codec.mint_access_token(user_id, email)
        secret = mint_refresh_secret()
        self.store.issue(user_id, hash_secret(secret), self.refresh_ttl)
        return access_token, secret

    def login(self, email: str, password: str) -> SessionTokens:
        verified = self.verifier.verify(email, password)
        access_token, secret = self._issue(verified.user_id, verified.email)
        logger.info("Session issued for user %s", verified.user_id)
        return SessionTokens(access_token=access_token, refresh_token=secret, user=verified.profile)

    def refresh(self, refresh_token: str) -> SessionTokens:
        """Rotate a refresh secret. The presented secret is unusable afterwards.

        Unknown, already-used and concurrently-claimed secrets all fail with the
        same TokenInvalidError; only expiry is reported separately.
        """
        try:
            record = self.store.consume(hash_secret(refresh_token or ""))
        except RefreshTokenExpiredError:
            logger.info("Refresh rejected: expired token")
            raise TokenExpiredError(EXPIRED_REFRESH_TOKEN) from None
        except RefreshTokenNotFoundError:
            logger.info("Refresh rejected: unknown or already used token")
            raise TokenInvalidError(INVALID_REFRESH_TOKEN) from None

        user = self.users.find_by_id(record.user_id)
        if user is None:
            logger.info("Refresh rejected: user %s no longer exists", record.user_id)
            raise TokenInvalidError(INVALID_REFRESH_TOKEN)

        access_token, secret = self._issue(user.id, user.email)
        logger.debug("Refresh token rotated for user %s", user.id)
        return SessionTokens(access_token=access_token, refresh_token=secret, user=UserProfile.from_user(user))

    def logout(self, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        removed = self.store.revoke(hash_secret(refresh_token))
        logger.debug("Logout removed %s refresh token(s)", removed)

    def get_current_user(self, user_id: str) -> Optional[UserProfile]:
        user = self.users.find_by_id(user_id)
        return UserProfile.from_user(user) if user else None
