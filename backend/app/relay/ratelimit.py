"""Local call budget for the upstream provider."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window call budget with a cooldown armed by upstream 429s.

    ``max_calls`` of 0 disables the window check; the cooldown still applies.
    """

    def __init__(
        self,
        max_calls: int = 60,
        window: float = 60.0,
        cooldown: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        self._max_calls = max_calls
        self._window = window
        self._cooldown = cooldown
        self._clock = clock
        self._calls: deque[float] = deque()
        self._cooldown_until = 0.0

    def try_acquire(self) -> bool:
        """Consume one call from the budget. False when refused."""
        now = self._clock()
        if now < self._cooldown_until:
            return False
        if self._max_calls == 0:
            return True

        while self._calls and now - self._calls[0] >= self._window:
            self._calls.popleft()
        if len(self._calls) >= self._max_calls:
            logger.warning("Local rate limit reached (%d calls / %.0fs)", self._max_calls, self._window)
            return False
        self._calls.append(now)
        return True

    def penalize(self) -> None:
        """Back off after the upstream reported a rate limit."""
        self._cooldown_until = self._clock() + self._cooldown
        logger.warning("Upstream rate limit hit; cooling down for %.1fs", self._cooldown)

    @property
    def cooling_down(self) -> bool:
        return self._clock() < self._cooldown_until

    def remaining(self) -> int | None:
        """Calls left in the current window, or None when unlimited."""
        if self._max_calls == 0:
            return None
        now = self._clock()
        recent = sum(1 for ts in self._calls if now - ts < self._window)
        return max(self._max_calls - recent, 0)
