"""
Persistent store of active refresh tokens.

This module is the only writer of the refresh_tokens table. Every public
method runs as one unit of work through ``run_in_transaction`` so a failure
at any step leaves the table exactly as it was.

Rotation safety rests on the conditional delete in ``consume``: the row is
claimed by deleting it and checking the affected-row count. Of N concurrent
consumers of the same token only one can observe a count of 1; the rest see 0
and are rejected exactly like an unknown token.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from kairo.core.config import get_settings
from kairo.db.models import RefreshToken, User
from kairo.db.session import run_in_transaction

logger = logging.getLogger(__name__)


class RefreshTokenNotFoundError(Exception):
    """Unknown token, or one another request consumed first."""


class RefreshTokenExpiredError(Exception):
    """The token exists but is past its expiry."""


@dataclass(frozen=True)
class RefreshTokenRecord:
    id: int
    token_hash: str
    user_id: str
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_row(cls, row: RefreshToken) -> "RefreshTokenRecord":
        return cls(
            id=row.id,
            token_hash=row.token_hash,
            user_id=row.user_id,
            expires_at=_as_utc(row.expires_at),
            created_at=_as_utc(row.created_at),
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every value written here is UTC.
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RefreshTokenStore:
    """Transactional issue / consume / revoke of hashed refresh tokens."""

    def __init__(
        self,
        *,
        max_active: Optional[int] = None,
        runner: Optional[Callable[[Callable[[Session], Any]], Any]] = None,
    ):
        self.max_active = max_active if max_active is not None else get_settings().max_active_refresh_tokens
        if self.max_active < 1:
            raise ValueError("max_active must be at least 1")
        self._run = runner or run_in_transaction

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # -------------------------------------- issue --------------------------------------
    def issue(self, user_id: str, token_hash: str, ttl: timedelta) -> RefreshTokenRecord:
        """Persist a new token for ``user_id``, keeping at most ``max_active`` live ones.

        Steps run in this order inside one transaction: drop expired rows, evict
        the oldest survivors down to ``max_active - 1``, insert the new row.
        Expired rows must be gone before counting so they never use up the cap.
        """
        def _work(session: Session) -> RefreshTokenRecord:
            # Lock the owning user row so concurrent issues for one user run one at a time.
            session.execute(select(User.id).where(User.id == user_id).with_for_update())
            now = self._now()
            pruned = session.execute(
                delete(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.expires_at <= now)
                .execution_options(synchronize_session=False)
            ).rowcount

            active_ids = (
                session.execute(
                    select(RefreshToken.id)
                    .where(RefreshToken.user_id == user_id)
                    .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
                    .with_for_update()
                )
                .scalars()
                .all()
            )
            keep = self.max_active - 1
            evicted = 0
            if len(active_ids) > keep:
                stale = active_ids[: len(active_ids) - keep]
                evicted = session.execute(
                    delete(RefreshToken)
                    .where(RefreshToken.id.in_(stale))
                    .execution_options(synchronize_session=False)
                ).rowcount

            entity = RefreshToken(
                token_hash=token_hash,
                user_id=user_id,
                expires_at=now + ttl,
                created_at=now,
            )
            session.add(entity)
            session.flush()
            if pruned or evicted:
                logger.info(
                    "Refresh tokens for user %s: pruned %s expired, evicted %s over limit",
                    user_id,
                    pruned,
                    evicted,
                )
            return RefreshTokenRecord.from_row(entity)

        return self._run(_work)

    # -------------------------------------- consume --------------------------------------
    def consume(self, token_hash: str) -> RefreshTokenRecord:
        """Claim a token for one-time use and return its record.

        Raises RefreshTokenNotFoundError when the token is unknown or was
        claimed by a concurrent call, RefreshTokenExpiredError when it is past
        its expiry (the row is removed in that case).
        """
        def _work(session: Session) -> tuple[RefreshTokenRecord, bool]:
            row = session.execute(
                select(RefreshToken).where(RefreshToken.token_hash == token_hash)
            ).scalar_one_or_none()
            if row is None:
                raise RefreshTokenNotFoundError()
            record = RefreshTokenRecord.from_row(row)

            if record.is_expired(self._now()):
                self._delete_exact(session, record)
                return record, True

            if self._delete_exact(session, record) != 1:
                logger.info("Refresh token for user %s was consumed concurrently", record.user_id)
                raise RefreshTokenNotFoundError()
            return record, False

        record, expired = self._run(_work)
        # Raised after commit so the expired row's deletion is kept.
        if expired:
            raise RefreshTokenExpiredError()
        return record

    def _delete_exact(self, session: Session, record: RefreshTokenRecord) -> int:
        return session.execute(
            delete(RefreshToken)
            .where(RefreshToken.id == record.id, RefreshToken.token_hash == record.token_hash)
            .execution_options(synchronize_session=False)
        ).rowcount

    # -------------------------------------- revoke / purge --------------------------------------
    def revoke(self, token_hash: str) -> int:
        """Delete the token if present; returns the number of rows removed (0 or 1)."""
        def _work(session: Session) -> int:
            return session.execute(
                delete(RefreshToken)
                .where(RefreshToken.token_hash == token_hash)
                .execution_options(synchronize_session=False)
            ).rowcount

        return self._run(_work)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every expired token regardless of owner. Meant for a scheduled sweep."""
        cutoff = now or self._now()

        def _work(session: Session) -> int:
            return session.execute(
                delete(RefreshToken)
                .where(RefreshToken.expires_at <= cutoff)
                .execution_options(synchronize_session=False)
            ).rowcount

        removed = self._run(_work)
        logger.info("Purged %s expired refresh tokens", removed)
        return removed

    # -------------------------------------- reads --------------------------------------
    def count_active(self, user_id: str) -> int:
        def _work(session: Session) -> int:
            stmt = select(func.count(RefreshToken.id)).where(
                RefreshToken.user_id == user_id,
                RefreshToken.expires_at > self._now(),
            )
            return int(session.execute(stmt).scalar_one())

        return self._run(_work)
