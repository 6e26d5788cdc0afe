"""
Per-user Quota Tracker
-----------------------
Fixed-window request counter keyed by user identity.

Each identity gets a window {count, reset_at} on its first request. Inside
the window at most `limit` requests are admitted; the first request at or
after `reset_at` replaces the window with a fresh one (lazy expiry).

State is in memory for the life of the process. One instance is built at
startup and handed to every dispatcher.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

DEFAULT_LIMIT = 5
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class QuotaWindow:
    count: int
    reset_at: float


class QuotaTracker:
    """
    Decides admit/deny for each request.

    The read-modify-write on a window happens under a lock, so two handlers
    running on different threads cannot both see `count < limit` and both
    admit past the limit.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, QuotaWindow] = {}
        self._lock = threading.Lock()

    def admit(self, identity: str) -> bool:
        """Return True if the request is admitted, False if the quota is spent."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(identity)

            if window is None or now >= window.reset_at:
                self._windows[identity] = QuotaWindow(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.limit:
                logger.debug(
                    f"[Quota] Denied {identity} | {window.count}/{self.limit} | "
                    f"resets in {window.reset_at - now:.1f}s"
                )
                return False

            window.count += 1
            return True

    def remaining(self, identity: str) -> int:
        """Requests left in the current window (full limit if none is active)."""
        with self._lock:
            window = self._windows.get(identity)
            if window is None or self._clock() >= window.reset_at:
                return self.limit
            return max(self.limit - window.count, 0)

    def window(self, identity: str) -> Optional[QuotaWindow]:
        """Snapshot of the stored window for an identity, expired or not."""
        with self._lock:
            window = self._windows.get(identity)
            return None if window is None else QuotaWindow(window.count, window.reset_at)
