"""Database helpers (engine/session/transaction export)."""

from .session import Base, get_engine, get_session, run_in_transaction, transaction

__all__ = ["Base", "get_engine", "get_session", "run_in_transaction", "transaction"]
