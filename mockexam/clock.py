"""
Session countdown. One unit per elapsed second while the exam is in progress.

Two ways to drive it:
- drive(): coroutine that ticks on the running event loop;
- sync(): catch-up ticks from monotonic elapsed time, for front ends that
  only run code when the page reruns (Streamlit).
Both end up in tick(), so expiry fires once per start whichever drive is used.
"""
import asyncio
import logging
import time
from typing import Callable, Optional

from mockexam.engine import EXAM_DURATION_SECONDS, LOW_TIME_WARNING_SECONDS

logger = logging.getLogger(__name__)


def format_time(seconds: int) -> str:
    """Render remaining seconds as MM:SS (minutes are not wrapped into hours)."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


class SessionClock:
    def __init__(
        self,
        total_seconds: int = EXAM_DURATION_SECONDS,
        on_expire: Optional[Callable[[], None]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if total_seconds <= 0:
            raise ValueError("total_seconds must be positive")
        self.total_seconds = int(total_seconds)
        self.on_expire = on_expire
        self._monotonic = monotonic
        self.remaining = self.total_seconds
        self._running = False
        self._expired = False
        self._anchor: Optional[float] = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def elapsed(self) -> int:
        return self.total_seconds - self.remaining

    @property
    def is_low(self) -> bool:
        return self.remaining < LOW_TIME_WARNING_SECONDS

    def start(self) -> None:
        self.remaining = self.total_seconds
        self._expired = False
        self._ticks = 0
        self._anchor = self._monotonic()
        self._running = True
        logger.debug("Clock started at %s", format_time(self.remaining))

    def stop(self) -> None:
        if self._running:
            logger.debug("Clock stopped at %s", format_time(self.remaining))
        self._running = False

    def reset(self) -> None:
        self.stop()
        self.remaining = self.total_seconds
        self._expired = False
        self._ticks = 0
        self._anchor = None

    def tick(self) -> bool:
        """Advance one second. Returns True only on the tick that reaches zero."""
        if not self._running:
            return False
        self.remaining -= 1
        self._ticks += 1
        if self.remaining > 0:
            return False
        self.remaining = 0
        self._running = False
        if self._expired:
            return False
        self._expired = True
        logger.info("Clock reached zero after %d ticks", self._ticks)
        if self.on_expire is not None:
            self.on_expire()
        return True

    def sync(self, now: Optional[float] = None) -> int:
        """Apply every tick owed since start(). Returns the number of ticks applied."""
        if not self._running or self._anchor is None:
            return 0
        now = self._monotonic() if now is None else now
        owed = int(now - self._anchor) - self._ticks
        applied = 0
        while owed > 0 and self._running:
            self.tick()
            owed -= 1
            applied += 1
        return applied

    async def drive(self, interval: float = 1.0) -> None:
        """Tick on the event loop until stopped or expired. Sleeps to absolute targets so ticks do not drift."""
        while self._running:
            target = self._anchor + (self._ticks + 1) * interval
            await asyncio.sleep(max(0.0, target - self._monotonic()))
            if self._running:
                self.tick()
