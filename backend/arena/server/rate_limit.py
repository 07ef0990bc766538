"""Per-connection throttling of inbound WebSocket frames."""

import time
from collections.abc import Callable


class TokenBucket:
    """Token bucket holding at most ``burst`` tokens, refilled at ``rate`` per second.

    Typing notices arrive in quick bursts, so the bucket starts full.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = float(burst)
        self._clock = clock
        self._tokens = self._burst
        self._stamp = clock()

    @property
    def tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self._burst, self._tokens + (now - self._stamp) * self._rate)
        self._stamp = now

    def consume(self) -> bool:
        """Spend one token; False means the frame should be rejected."""
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False
