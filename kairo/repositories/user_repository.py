"""User lookups and creation backed by SQLAlchemy.

Session code treats this as its UserStore: it reads users, it never mutates them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from kairo.db.models import User
from kairo.db.session import get_session, transaction
from kairo.services.errors import AccountExistsError


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class UserProfile:
    """Public projection of a user; never carries the password hash."""

    id: str
    email: str
    name: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class UserRepository:
    """CRUD helpers for the users table."""

    def find_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        with get_session() as session:
            stmt = select(User).where(User.email == normalized)
            return session.execute(stmt).scalar_one_or_none()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        with get_session() as session:
            return session.get(User, user_id)

    def create(self, email: str, password_hash: str, name: str) -> User:
        now = datetime.now(timezone.utc)
        entity = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=(name or "").strip(),
            created_at=now,
            updated_at=now,
        )
        try:
            with transaction() as session:
                session.add(entity)
        except IntegrityError as exc:
            raise AccountExistsError("Email already exists") from exc
        return entity

    def delete(self, user_id: str) -> None:
        with transaction() as session:
            user = session.get(User, user_id)
            if user:
                session.delete(user)
