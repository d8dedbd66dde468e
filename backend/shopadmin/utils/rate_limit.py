"""Login attempt throttling.

Attempts are counted per client address and e-mail inside a sliding
window. Limits are read from the settings object on every check so they
follow runtime changes.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class LoginThrottle:
    """Counts login attempts per `(client, email)` pair."""

    def __init__(self, settings, clock=time.monotonic):
        self.settings = settings
        self._clock = clock
        self._attempts = defaultdict(deque)
        self._lock = threading.Lock()

    @staticmethod
    def key(client: str | None, email: str) -> str:
        return f"{client or 'unknown'}:{(email or '').strip().lower()}"

    def check(self, client: str | None, email: str) -> int:
        """Record an attempt and return the seconds to wait, 0 if allowed."""
        limit = self.settings.LOGIN_RATE_LIMIT_PER_MIN
        window = self.settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
        now = self._clock()
        with self._lock:
            attempts = self._attempts[self.key(client, email)]
            while attempts and attempts[0] <= now - window:
                attempts.popleft()
            if len(attempts) >= limit:
                return max(1, int(window - (now - attempts[0])))
            attempts.append(now)
        return 0

    def succeeded(self, client: str | None, email: str) -> None:
        with self._lock:
            self._attempts.pop(self.key(client, email), None)

    def clear(self) -> None:
        with self._lock:
            self._attempts.clear()
