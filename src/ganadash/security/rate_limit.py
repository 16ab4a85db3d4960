from __future__ import annotations

"""In-process fixed-window counters for OTP and AI endpoints.

Counters live in this process only; behind several workers each worker
enforces its own window.
"""

import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Tuple

from fastapi import HTTPException, status


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"Rate limit exceeded; retry in {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds


@dataclass
class _Window:
    hits: int
    resets_at: float


class FixedWindowLimiter:
    def __init__(self) -> None:
        self._windows: Dict[Tuple[str, str], _Window] = {}
        self._lock = Lock()

    def hit(self, key: str, identifier: str, limit: int, window_seconds: int) -> None:
        now = time.monotonic()
        with self._lock:
            window = self._windows.get((key, identifier))
            if window is None or window.resets_at <= now:
                self._windows[(key, identifier)] = _Window(hits=1, resets_at=now + window_seconds)
                return
            if window.hits >= limit:
                raise RateLimitExceeded(max(1, int(window.resets_at - now)))
            window.hits += 1

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_limiter = FixedWindowLimiter()


def _positive_int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


def _disabled() -> bool:
    return os.getenv("GANADASH_RATE_LIMIT_DISABLED", "").strip().lower() in ("1", "true", "yes", "on")


def rate_limit_action(
    key: str,
    identifier: str,
    *,
    limit_env: str,
    window_env: str,
    default_limit: int,
    default_window_seconds: int,
) -> None:
    """Count one ``key`` action by ``identifier``.

    Limit and window come from ``limit_env`` / ``window_env`` when those hold
    positive integers. Raises :class:`RateLimitExceeded` once the window is full.
    """
    if _disabled():
        return
    _limiter.hit(
        key,
        identifier,
        _positive_int_env(limit_env, default_limit),
        _positive_int_env(window_env, default_window_seconds),
    )


def enforce_rate_limit(key: str, identifier: str, *, detail: str, **limits) -> None:
    """Route helper: a full window becomes a 429 with ``Retry-After``."""
    try:
        rate_limit_action(key, identifier, **limits)
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(exc.retry_after_seconds)},
        ) from exc


def reset_rate_limits() -> None:
    _limiter.clear()
