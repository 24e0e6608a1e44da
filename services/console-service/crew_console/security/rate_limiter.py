"""In-memory sliding window limiter for sign-in attempts."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from threading import Lock
from typing import Deque


class LoginAttemptLimiter:
    """Thread-safe sliding window limiter keyed by username."""

    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        self._max_attempts = max_attempts
        self._window = window_seconds
        self._attempts: defaultdict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Record an attempt and return ``True`` while the key is under its limit."""
        now = time.time()
        with self._lock:
            queue = self._attempts[key]
            while queue and now - queue[0] > self._window:
                queue.popleft()
            if len(queue) >= self._max_attempts:
                return False
            queue.append(now)
            return True

    def reset(self, key: str) -> None:
        """Forget recorded attempts for the key, called after a successful sign-in."""
        with self._lock:
            self._attempts.pop(key, None)
