"""
Tickers that drive the generation schedulers.

IntervalTicker runs a coroutine callback forever on the event loop:

    ticker = IntervalTicker("job-queue")
    ticker.on_tick(queue.tick, interval=30, initial_delay=5)
    ...
    await ticker.stop()

ManualTicker has the same interface but only fires when told to, so tests
can drive a scheduler one tick at a time.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[object]]


@dataclass
class CycleResult:
    """
    Outcome of one scheduler tick.

    status is one of: skipped, disabled, idle, catalog_complete, success,
    failed, completed.
    """
    status: str
    subject_id: Optional[int] = None
    job_id: Optional[int] = None
    requested: int = 0
    saved: int = 0
    error: Optional[str] = None
    reclaimed: int = 0


class IntervalTicker:
    """Calls ``callback`` every ``interval`` seconds until stopped."""

    def __init__(self, name: str):
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_tick(self, callback: TickCallback, interval: float, initial_delay: float = 0.0) -> None:
        if self.running:
            raise RuntimeError(f"Ticker {self.name} is already running")
        self._task = asyncio.create_task(self._run(callback, interval, initial_delay))

    async def _run(self, callback: TickCallback, interval: float, initial_delay: float) -> None:
        logger.info(f"{self.name} ticker started (every {interval:.0f}s)")

        if initial_delay > 0:
            await asyncio.sleep(initial_delay)

        while True:
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A failing tick must not kill the loop
                logger.error(f"Error in {self.name} tick: {e}", exc_info=True)

            await asyncio.sleep(interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"{self.name} ticker stopped")


class ManualTicker:
    """Ticker for tests: records the registration and fires on demand."""

    def __init__(self, name: str = "manual"):
        self.name = name
        self.callback: Optional[TickCallback] = None
        self.interval: Optional[float] = None
        self.initial_delay: Optional[float] = None
        self.results: List[object] = []

    @property
    def running(self) -> bool:
        return self.callback is not None

    def on_tick(self, callback: TickCallback, interval: float, initial_delay: float = 0.0) -> None:
        self.callback = callback
        self.interval = interval
        self.initial_delay = initial_delay

    async def fire(self, times: int = 1) -> List[object]:
        if self.callback is None:
            raise RuntimeError(f"Ticker {self.name} has no callback")
        fired = []
        for _ in range(times):
            fired.append(await self.callback())
        self.results.extend(fired)
        return fired

    async def stop(self) -> None:
        self.callback = None
