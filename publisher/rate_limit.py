"""
Rate Limiting - fixed-window request counting per token

Used to throttle generate-and-publish requests. Each token (a user, an API
key, or a shared constant) gets its own counter that resets once the window
elapses.
"""

import time
from collections import OrderedDict
from typing import Callable


class RateLimiter:
    """
    Fixed-window limiter keyed by token.

    Args:
        interval_seconds: Window length
        max_tokens: Maximum distinct tokens tracked; the least recently used
            token is evicted beyond this
        clock: Time source (monotonic seconds)
    """

    def __init__(
        self,
        interval_seconds: float = 60,
        max_tokens: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval_seconds = interval_seconds
        self.max_tokens = max_tokens
        self._clock = clock
        self._windows: OrderedDict[str, list] = OrderedDict()  # token -> [window_start, count]

    def check(self, limit: int, token: str) -> bool:
        """
        Record a request for token if it is within the limit.

        Returns:
            True if the request is allowed, False if the limit is reached
        """
        now = self._clock()
        window = self._windows.get(token)

        if window is None or now - window[0] >= self.interval_seconds:
            window = [now, 0]

        if window[1] >= limit:
            self._windows[token] = window
            self._windows.move_to_end(token)
            return False

        window[1] += 1
        self._windows[token] = window
        self._windows.move_to_end(token)

        while len(self._windows) > self.max_tokens:
            self._windows.popitem(last=False)

        return True

    def remaining(self, limit: int, token: str) -> int:
        """Requests left for token in the current window."""
        window = self._windows.get(token)
        if window is None or self._clock() - window[0] >= self.interval_seconds:
            return limit
        return max(0, limit - window[1])

    def reset(self) -> None:
        self._windows.clear()
