"""In-memory fixed-window rate limiting.

Counters live in process memory, so limits apply per worker process.
Good enough to stop a runaway client from spamming meeting requests;
a shared store would be needed for a hard global limit.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional

from flask import current_app, request
from flask_jwt_extended import get_jwt_identity

from ..errors import RateLimitError


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> Optional[int]:
        """Count one request for ``key``.

        Returns ``None`` when the request is allowed, otherwise the number
        of seconds until the window resets.
        """
        now = self._clock()
        with self._lock:
            self._purge(now)
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                self._windows[key] = _Window(count=1, reset_at=now + window_seconds)
                return None
            if window.count >= limit:
                return max(1, int(window.reset_at - now + 0.999))
            window.count += 1
            return None

    def _purge(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def rate_limited(scope: str, limit_key: str, window_key: str):
    """Limit a JWT-protected view per caller.

    ``limit_key`` and ``window_key`` name the config entries holding the
    request count and the window length in seconds.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            limiter: RateLimiter = current_app.extensions["rate_limiter"]
            caller = get_jwt_identity() or request.remote_addr or "anonymous"
            retry_after = limiter.hit(
                f"{caller}:{scope}",
                int(current_app.config[limit_key]),
                int(current_app.config[window_key]),
            )
            if retry_after is not None:
                raise RateLimitError("Too many requests. Please try again later.", retry_after)
            return view(*args, **kwargs)

        return wrapper

    return decorator
