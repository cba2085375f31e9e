"""
Sliding-window request limiter for the AI classifier
"""

import threading
import time
from collections import deque
from typing import Callable, Deque

from ..config import AI_MAX_REQUESTS_PER_WINDOW, AI_RATE_WINDOW
from ..errors import RateLimitExceeded


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` within any ``window`` seconds."""

    def __init__(self, max_requests: int = AI_MAX_REQUESTS_PER_WINDOW,
                 window: float = AI_RATE_WINDOW,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self._requests: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float):
        while self._requests and now - self._requests[0] >= self.window:
            self._requests.popleft()

    def can_make_request(self) -> bool:
        with self._lock:
            self._prune(self.clock())
            return len(self._requests) < self.max_requests

    def remaining(self) -> int:
        with self._lock:
            self._prune(self.clock())
            return max(0, self.max_requests - len(self._requests))

    def check(self):
        """Raise RateLimitExceeded when the window is full."""
        if not self.can_make_request():
            raise RateLimitExceeded(self.remaining(), self.max_requests)

    def record(self):
        with self._lock:
            self._requests.append(self.clock())

    def status(self) -> dict:
        return {'remaining': self.remaining(), 'limit': self.max_requests}
