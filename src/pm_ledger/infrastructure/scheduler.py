"""TickScheduler — drives MarketLedger.tick() on a fixed period.

The ledger never schedules itself. This task calls ``tick()`` every
``interval`` seconds and publishes the returned snapshot; a skipped tick
(previous one still committing) publishes nothing. An exception in one tick
is logged and the loop carries on.
"""

import asyncio
import logging

from src.pm_ledger.domain.events import BroadcastSinkProtocol
from src.pm_ledger.engine.ledger import MarketLedger

logger = logging.getLogger(__name__)


class TickScheduler:
    def __init__(
        self, ledger: MarketLedger, sink: BroadcastSinkProtocol, interval: float
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._ledger = ledger
        self._sink = sink
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="market-tick")
        logger.info("Tick scheduler started (every %.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tick scheduler stopped")

    async def run_once(self) -> bool:
        """One tick + publish. Returns False when the tick was skipped."""
        snapshot = await self._ledger.tick()
        if snapshot is None:
            return False
        self._sink.publish(snapshot)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Tick failed")
