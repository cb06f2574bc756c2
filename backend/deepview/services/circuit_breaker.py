"""
Cooldown circuit breaker for generation providers.

After a permanent failure (auth, quota, unprocessable input, rate limit) the
breaker opens for a fixed window; while open, generation requests skip the
provider and go straight to the fallback path. The state is a single
timestamp, read and written without a lock: at the window boundary one extra
request may slip through, which is acceptable.
"""

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitBreaker:
    def __init__(
        self,
        cooldown_seconds: float,
        name: str = "video",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._clock = clock
        self.cooldown_until: Optional[float] = None

    def is_open(self) -> bool:
        """True while inside the cooldown window. Clears the state once it has elapsed."""
        if self.cooldown_until is None:
            return False
        if self._clock() < self.cooldown_until:
            return True
        logger.info(f"{self.name} circuit breaker cooldown elapsed")
        self.cooldown_until = None
        return False

    def trip(self, reason: str = "") -> None:
        """Open the breaker for one cooldown window starting now."""
        self.cooldown_until = self._clock() + self.cooldown_seconds
        logger.warning(
            f"{self.name} circuit breaker tripped for {self.cooldown_seconds}s"
            + (f": {reason}" if reason else "")
        )

    def reset(self) -> None:
        self.cooldown_until = None

    def seconds_remaining(self) -> int:
        if not self.is_open():
            return 0
        return max(0, int(round(self.cooldown_until - self._clock())))
