#!/usr/bin/env python3
"""
Delete every expired refresh token, across all users.

Meant to be run periodically by an external scheduler (cron, systemd timer).
Session correctness does not depend on it; it only keeps the table small.

Usage:
  python scripts/purge_refresh_tokens.py [--grace-minutes 0]
"""
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone

from kairo.core.config import get_settings
from kairo.core.logging_config import configure_logging
from kairo.repositories.refresh_token_store import RefreshTokenStore


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Purge expired refresh tokens")
    ap.add_argument(
        "--grace-minutes",
        type=int,
        default=0,
        help="Only delete tokens that expired at least this many minutes ago",
    )
    args = ap.parse_args(argv)
    if args.grace_minutes < 0:
        raise SystemExit("--grace-minutes must be >= 0")

    configure_logging(get_settings().log_level)
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=args.grace_minutes)
    removed = RefreshTokenStore().purge_expired(now=cutoff)
    print(f"OK: {removed} expired refresh token(s) removed")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
