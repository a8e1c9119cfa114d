"""E-mail/password verification that does not reveal whether an account exists."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from kairo.core import security
from kairo.repositories.user_repository import UserProfile, UserRepository
from kairo.services.errors import InvalidCredentialsError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class VerifiedUser:
    user_id: str
    email: str
    name: str
    profile: UserProfile


class CredentialVerifier:
    def __init__(self, users: Optional[UserRepository] = None):
        self.users = users or UserRepository()

    def verify(self, email: str, password: str) -> VerifiedUser:
        user = self.users.find_by_email(email)
        # One hash comparison per attempt, known e-mail or not.
        stored_hash = user.password_hash if user else security.DUMMY_PASSWORD_HASH
        password_ok = security.verify_password(password or "", stored_hash)
        if user is None or not password_ok:
            logger.info("Login rejected")
            raise InvalidCredentialsError(INVALID_CREDENTIALS)
        return VerifiedUser(user_id=user.id, email=user.email, name=user.name, profile=UserProfile.from_user(user))
