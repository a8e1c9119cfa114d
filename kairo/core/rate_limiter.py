"""
Fixed-window, per-client request throttling for the auth endpoints.

Counters live in process memory. The client is identified by the socket peer
address; ``X-Forwarded-For`` is only honoured when that peer is one of the
proxies listed in TRUSTED_PROXIES.
"""
from __future__ import annotations

import threading
import time
from typing import Dict, Iterable, Tuple

from fastapi import HTTPException, Request

from kairo.core.config import get_settings

_SWEEP_INTERVAL_SECONDS = 60.0


class _RateLimiter:
    def __init__(self) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        for key in [k for k, (_, reset) in self._hits.items() if now > reset]:
            del self._hits[key]
        self._next_sweep = now + _SWEEP_INTERVAL_SECONDS

    def check(self, key: str, limit: int, window_seconds: int) -> None:
        now = time.time()
        with self._lock:
            self._sweep(now)
            count, reset = self._hits.get(key, (0, now + window_seconds))
            if now > reset:
                count = 0
                reset = now + window_seconds
            count += 1
            self._hits[key] = (count, reset)
            if count > limit:
                raise HTTPException(429, "Too many requests. Try again shortly.")

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._next_sweep = 0.0


_limiter = _RateLimiter()


def _client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    peer = request.client.host if request.client and request.client.host else "unknown"
    trusted = set(trusted_proxies)
    if peer not in trusted:
        return peer
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded:
        return peer
    # rightmost hop not added by one of our own proxies
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    settings = get_settings()
    if not settings.rate_limit_enabled:
        return
    key = f"{scope}:{_client_ip(request, settings.trusted_proxies)}"
    _limiter.check(key, limit, window_seconds)


def reset_rate_limits() -> None:
    _limiter.reset()
