"""Fixed-window attempt throttling for login.

The first attempt from an identifier opens a window of ``window_seconds``;
inside it at most ``max_attempts`` attempts pass. The window does not slide.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from cmsportal.config import settings


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Per-identifier attempt counter with a fixed reset time"""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._swept_at = clock()
        self._lock = threading.Lock()

    def is_rate_limited(self, identifier: str) -> bool:
        """Record an attempt and report whether it must be refused.

        A refused attempt does not extend the count or the window.
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._windows.get(identifier)

            if window is None or now > window.reset_at:
                self._windows[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
                return False

            if window.count >= self.max_attempts:
                return True

            window.count += 1
            return False

    def _sweep(self, now: float) -> None:
        # Drop elapsed windows; one pass per window length is enough
        if now - self._swept_at < self.window_seconds:
            return
        self._windows = {k: w for k, w in self._windows.items() if now <= w.reset_at}
        self._swept_at = now

    def get_remaining_time(self, identifier: str) -> int:
        """Whole seconds until the identifier's window resets, never negative"""
        with self._lock:
            window = self._windows.get(identifier)
        if window is None:
            return 0
        return max(0, math.ceil(window.reset_at - self._clock()))

    def reset(self, identifier: Optional[str] = None) -> None:
        with self._lock:
            if identifier is None:
                self._windows.clear()
            else:
                self._windows.pop(identifier, None)


login_rate_limiter = RateLimiter(
    max_attempts=settings.LOGIN_MAX_ATTEMPTS,
    window_seconds=settings.LOGIN_WINDOW_SECONDS,
)
