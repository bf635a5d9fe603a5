"""
Elapsed-time clock for an active workout session.

SessionClock.start() returns a Ticker that takes an elapsed-time snapshot
immediately and then once per interval from an asyncio task.  Consumers
read Ticker.latest (or the on_tick callback argument) and derive display
strings from it; nothing else is mutated from inside the timer.
"""

import asyncio
from datetime import datetime
from typing import Callable

from .config import TICK_INTERVAL_S
from .errors import StaleResultError

TickCallback = Callable[[int], None]


def format_duration(ms: int | float) -> str:
    """
    Format a duration as zero-padded HH:MM:SS.

    Floors to whole seconds and clamps negative values (clock skew) to
    zero.  Hours are not wrapped at 24.

    Args:
        ms: Duration in milliseconds

    Returns:
        e.g. "00:01:05"
    """
    total_seconds = max(0, int(ms // 1000))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class Ticker:
    """
    Elapsed-time snapshots for one session start.

    A ticker belongs to exactly one clock generation.  Once stopped, or once
    its clock has started a newer ticker, further ticks are discarded.
    """

    def __init__(
        self,
        clock: "SessionClock",
        origin: datetime,
        generation: int,
        on_tick: TickCallback | None = None,
    ):
        self.origin = origin
        self.generation = generation
        self.latest: int = 0
        self._clock = clock
        self._on_tick = on_tick
        self._stopped = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return not self._stopped and self.generation == self._clock.generation

    @property
    def display(self) -> str:
        """Latest snapshot as HH:MM:SS."""
        return format_duration(self.latest)

    def _tick(self) -> int:
        if not self.running:
            raise StaleResultError(self.generation, self._clock.generation)
        elapsed = (self._clock.now() - self.origin).total_seconds() * 1000
        self.latest = max(0, int(elapsed))
        if self._on_tick is not None:
            self._on_tick(self.latest)
        return self.latest

    def refresh(self) -> int:
        """
        Take a snapshot now.

        On a stopped ticker this returns the last snapshot without emitting.
        """
        try:
            return self._tick()
        except StaleResultError:
            return self.latest

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._clock.interval_s)
                self._tick()
        except StaleResultError:
            return

    def _schedule(self) -> None:
        # Without a running loop the ticker only advances on refresh()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        """Halt emission and cancel the periodic task."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class SessionClock:
    """
    Owner of at most one running Ticker.

    Args:
        now: Time source, injectable for tests
        interval_s: Seconds between periodic ticks
    """

    def __init__(
        self,
        now: Callable[[], datetime] = datetime.now,
        interval_s: float = TICK_INTERVAL_S,
    ):
        self.now = now
        self.interval_s = interval_s
        self.generation = 0
        self.ticker: Ticker | None = None

    def start(self, origin: datetime, on_tick: TickCallback | None = None) -> Ticker:
        """
        Start ticking from origin, replacing any running ticker.

        The first snapshot is taken synchronously so a display never shows
        a stale zero for a whole interval.
        """
        self.stop()
        self.generation += 1
        ticker = Ticker(self, origin, self.generation, on_tick)
        self.ticker = ticker
        ticker.refresh()
        ticker._schedule()
        return ticker

    def stop(self) -> None:
        """Stop the current ticker, if any, and release its task."""
        if self.ticker is not None:
            self.ticker.stop()
            self.ticker = None
        self.generation += 1

    def elapsed_ms(self) -> int:
        """Latest snapshot of the running ticker, or 0."""
        return self.ticker.latest if self.ticker is not None else 0
