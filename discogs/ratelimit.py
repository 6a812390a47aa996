"""Rate limiting for Discogs API requests.

Implements:
- RateGate: sliding-window admission (N requests per trailing 60 seconds)
- Server-declared cooldowns absorbed from 429 / exhausted-quota signals
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
DEFAULT_MAX_REQUESTS_PER_MINUTE = 60
DEFAULT_EXHAUSTED_COOLDOWN = 60.0

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateGate:
    """Serialize and throttle outbound requests.

    Every admission runs inside one ``asyncio.Lock``: the cooldown wait, the
    window prune, the cap wait and the append happen as a single critical
    section, so concurrent callers are queued rather than raced. A caller
    sleeping inside the gate holds the lock; cancelling it releases the lock.
    """

    def __init__(
        self,
        max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE,
        exhausted_cooldown: float = DEFAULT_EXHAUSTED_COOLDOWN,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_requests_per_minute < 1:
            raise ValueError("max_requests_per_minute must be at least 1")
        self.max_requests_per_minute = max_requests_per_minute
        self.exhausted_cooldown = exhausted_cooldown
        self._clock = clock
        self._sleep = sleep
        self._window: deque[float] = deque()
        self._cooldown_until: float | None = None
        self._lock = asyncio.Lock()

    async def admit(self) -> None:
        """Wait until a request may be sent, then record it."""
        async with self._lock:
            now = self._clock()

            # A 429 seen while sleeping may extend the cooldown; re-read after each wait
            while self._cooldown_until is not None and (wait := self._cooldown_until - now) > 0:
                logger.info(f"Discogs cooldown active, waiting {wait:.1f}s")
                await self._sleep(wait)
                now = self._clock()
            if self._cooldown_until is not None and self._cooldown_until <= now:
                self._cooldown_until = None

            self._prune(now)

            if len(self._window) >= self.max_requests_per_minute:
                wait = WINDOW_SECONDS - (now - self._window[0])
                if wait > 0:
                    logger.debug(
                        f"Rate window full ({len(self._window)}/{self.max_requests_per_minute}), "
                        f"waiting {wait:.1f}s"
                    )
                    await self._sleep(wait)
                    now = self._clock()
                self._prune(now)
                # Oldest entries have aged out by now, even if float drift says otherwise
                while len(self._window) >= self.max_requests_per_minute:
                    self._window.popleft()

            self._window.append(now)

    def signal_cooldown(self, seconds: float) -> None:
        """Block admissions for ``seconds`` from now. The latest call wins."""
        self._cooldown_until = self._clock() + max(0.0, seconds)
        logger.debug(f"Discogs cooldown set for {seconds:.1f}s")

    def signal_exhausted(self) -> None:
        """Apply the default cooldown after the server reports zero remaining quota."""
        logger.info(
            f"Discogs reported no remaining quota, cooling down {self.exhausted_cooldown:.0f}s"
        )
        self.signal_cooldown(self.exhausted_cooldown)

    def pending_cooldown(self) -> float:
        """Seconds left on the current cooldown, 0 if none."""
        if self._cooldown_until is None:
            return 0.0
        return max(0.0, self._cooldown_until - self._clock())

    @property
    def window_size(self) -> int:
        """Number of admissions still inside the trailing window."""
        self._prune(self._clock())
        return len(self._window)

    def reset(self) -> None:
        """Forget all admissions and cooldowns."""
        self._window.clear()
        self._cooldown_until = None
        logger.debug("Reset rate gate state")

    def _prune(self, now: float) -> None:
        while self._window and now - self._window[0] >= WINDOW_SECONDS:
            self._window.popleft()
