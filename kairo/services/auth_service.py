"""
Account registration use case.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from email_validator import EmailNotValidError, validate_email

from kairo.core.security import hash_password
from kairo.repositories.user_repository import UserProfile, UserRepository, normalize_email
from kairo.services.errors import RegistrationError

EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
# upper bound on argon2 input
PASSWORD_MAX_LENGTH = 128
NAME_MAX_LENGTH = 100


def is_valid_email(email: str) -> bool:
    """Syntax check only; deliverability (DNS) is never queried."""
    if not email or len(email) > EMAIL_MAX_LENGTH:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


@dataclass
class AuthService:
    """Creates accounts; sessions for them are handled by SessionService."""

    repository: UserRepository = field(default_factory=UserRepository)

    def register(self, email: str, password: str, name: str) -> UserProfile:
        raw_email = normalize_email(email)
        if not is_valid_email(raw_email):
            raise RegistrationError("Invalid email")
        password = password or ""
        if len(password) < PASSWORD_MIN_LENGTH:
            raise RegistrationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        if len(password) > PASSWORD_MAX_LENGTH:
            raise RegistrationError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters")
        display_name = (name or "").strip()
        if not display_name or len(display_name) > NAME_MAX_LENGTH:
            raise RegistrationError(f"Name must be 1-{NAME_MAX_LENGTH} characters")

        user = self.repository.create(raw_email, password_hash=hash_password(password), name=display_name)
        return UserProfile.from_user(user)
