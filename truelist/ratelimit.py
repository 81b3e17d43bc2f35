"""Client-side token bucket shared by every call of one Client."""

import logging
import threading
import time
from typing import Callable, Optional

from .cancel import CancelToken
from .errors import CancelledError

logger = logging.getLogger(__name__)

DEFAULT_RATE = 10  # requests per window
MIN_SLEEP = 0.01


class RateLimiter:
    """Admits at most ``capacity`` calls per ``window`` seconds.

    The bucket is refilled all at once when a window rolls over rather than
    trickling tokens back. Only the check/reset/decrement step runs under the
    lock; waiting happens outside it.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_RATE,
        window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = capacity
        self._window_start = clock()

    @property
    def tokens(self) -> int:
        with self._lock:
            return self._tokens

    def _try_take(self) -> float:
        """Take a token if one is free; otherwise return how long to wait."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._window_start
            if elapsed >= self.window:
                self._tokens = self.capacity
                self._window_start = now
                elapsed = 0.0
            if self._tokens > 0:
                self._tokens -= 1
                return 0.0
        return max(self.window - elapsed, MIN_SLEEP)

    def acquire(self, cancel: Optional[CancelToken] = None) -> None:
        """Block until a token is available, then consume it."""
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            delay = self._try_take()
            if delay == 0.0:
                return
            logger.debug("rate limiter exhausted, waiting %.3fs", delay)
            if cancel is None:
                self._sleep(delay)
            elif cancel.wait(delay):
                raise CancelledError("cancelled while waiting for rate limit")
