"""Per-user, per-operation fixed-window rate limiting.

``check_rate_limit`` is a pure function over a caller-owned dict so it can be
tested without threads or clocks. ``RateLimiter`` wraps it with a lock and a
periodic sweep of expired windows; ``rate_limited`` turns it into a FastAPI
dependency.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends

from .auth import AuthContext, require_user
from .config import settings
from ..exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Operation classes with their own budgets.
FILE_UPLOAD = "file_upload"
FOLDER_CREATE = "folder_create"
FILE_DELETE = "file_delete"
API_CALL = "api_call"
SEARCH = "search"

_SWEEP_EVERY = 200

# {key: (count, window_start)}
WindowStore = dict[str, tuple[int, float]]


def check_rate_limit(
    store: WindowStore,
    key: str,
    max_requests: int,
    window_seconds: float,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Count one request for *key* in the current fixed window.

    Args:
        store: Mutable per-key window state. Modified in place.
        key: ``"<operation>:<user_id>"``.
        max_requests: Allowed requests per window. ``<= 0`` disables the limit.
        window_seconds: Window length.
        now: Wall-clock timestamp (injectable for testing).

    Returns:
        ``(allowed, reset_at)`` where *reset_at* is the timestamp at which the
        current window ends.
    """
    if now is None:
        now = time.time()
    if max_requests <= 0:
        return True, now

    count, window_start = store.get(key, (0, now))
    if now - window_start >= window_seconds:
        count, window_start = 0, now

    reset_at = window_start + window_seconds
    if count >= max_requests:
        return False, reset_at

    store[key] = (count + 1, window_start)
    return True, reset_at


def sweep_expired(store: WindowStore, window_seconds: float, now: float) -> int:
    """Drop windows that ended before *now*. Returns the number removed."""
    stale = [k for k, (_, start) in store.items() if now - start >= window_seconds]
    for k in stale:
        del store[k]
    return len(stale)


class RateLimiter:
    """Process-wide counter store shared by all request threads."""

    def __init__(self, window_seconds: Optional[float] = None):
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self._store: WindowStore = {}
        self._lock = threading.Lock()
        self._calls = 0

    @staticmethod
    def limit_for(operation: str) -> int:
        return {
            FILE_UPLOAD: settings.rate_limit_file_upload,
            FOLDER_CREATE: settings.rate_limit_folder_create,
            FILE_DELETE: settings.rate_limit_file_delete,
            API_CALL: settings.rate_limit_api_call,
            SEARCH: settings.rate_limit_search,
        }.get(operation, settings.rate_limit_api_call)

    def check(self, user_id: str, operation: str, now: Optional[float] = None) -> tuple[bool, float]:
        if now is None:
            now = time.time()
        with self._lock:
            self._calls += 1
            if self._calls % _SWEEP_EVERY == 0:
                sweep_expired(self._store, self.window_seconds, now)
            return check_rate_limit(
                self._store,
                f"{operation}:{user_id}",
                self.limit_for(operation),
                self.window_seconds,
                now,
            )

    def enforce(self, user_id: str, operation: str) -> None:
        """Raise RateLimitExceededError when *user_id* is over budget for *operation*."""
        now = time.time()
        allowed, reset_at = self.check(user_id, operation, now)
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"user_id": user_id, "operation": operation},
            )
            raise RateLimitExceededError(
                operation,
                reset_time=datetime.fromtimestamp(reset_at, tz=timezone.utc),
                retry_after=int(reset_at - now) + 1,
            )

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
            self._calls = 0


limiter = RateLimiter()


def rate_limited(operation: str) -> Callable[..., AuthContext]:
    """Build a dependency that authenticates the caller and charges *operation*."""

    def _dependency(auth: AuthContext = Depends(require_user)) -> AuthContext:
        limiter.enforce(auth.user_id, operation)
        return auth

    return _dependency
