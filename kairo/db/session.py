"""Engine/session helpers for the SQL backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from kairo.core.config import get_settings

Base = declarative_base()
logger = logging.getLogger(__name__)

T = TypeVar("T")


@lru_cache
def get_engine():
    settings = get_settings()
    url = (settings.database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be configured to use the SQL backend.")
    engine = create_engine(url, future=True, pool_pre_ping=True)
    if engine.url.get_backend_name() == "sqlite":
        # SQLite needs this for ON DELETE CASCADE on refresh_tokens.user_id
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine


@lru_cache
def _get_sessionmaker():
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def get_session() -> Iterator[Session]:
    session: Session = _get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def transaction() -> Iterator[Session]:
    """One atomic unit of work: commit on success, roll back on any exception."""
    with get_session() as session:
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise


def run_in_transaction(work: Callable[[Session], T], *, retries: int | None = None) -> T:
    """Run ``work`` inside ``transaction()``, re-running the whole unit on transient failures.

    Only OperationalError (lock timeouts, serialization failures, dropped
    connections) is retried; every attempt starts from a fresh session so no
    partial state from a failed attempt is replayed.
    """
    attempts = 1 + (get_settings().db_transaction_retries if retries is None else max(0, retries))
    for attempt in range(1, attempts + 1):
        try:
            with transaction() as session:
                return work(session)
        except OperationalError as exc:
            if attempt >= attempts:
                raise
            logger.warning("Transaction attempt %s/%s failed, retrying: %s", attempt, attempts, exc.orig)
    raise AssertionError("unreachable")
