# merchant/services/poller.py
import asyncio
import contextlib
from typing import Optional, Set

from merchant.enums import ProjectionOutcome
from merchant.errors import MerchantError
from merchant.models import TickStats
from merchant.stores.dedup_ledger import DedupLedger
from utils.logger import logger


class Poller:
    """
    Periodic fetch-and-apply loop over the merchant event feed.

    States: idle -> start() -> running (timer armed) -> stop() -> idle.
    Ticks never overlap: they share one lock, and a timer firing that finds a
    tick still in flight is skipped. stop() disarms the timer only; an
    in-flight tick is allowed to finish. Consumed events are not acknowledged
    remotely, redeliveries are absorbed by the DedupLedger.
    """

    def __init__(self, gateway, ledger: DedupLedger, projector, *,
                 interval_s: float = 30.0,
                 log=None) -> None:
        self._gateway = gateway
        self._ledger = ledger
        self._projector = projector
        self._interval_s = float(interval_s)
        self._log = log or logger

        self._timer: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def start(self, *, immediate: bool = True) -> None:
        """Arm the timer; an already armed timer is cancelled first."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._run(immediate), name="poller-timer")
        self._log.info(f"Event polling started, interval={self._interval_s:g}s")

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer
        self._log.info("Event polling stopped")

    async def _run(self, immediate: bool) -> None:
        if immediate:
            self._fire()
        while True:
            await asyncio.sleep(self._interval_s)
            self._fire()

    def _fire(self) -> None:
        if self._tick_lock.locked():
            self.ticks_skipped += 1
            self._log.warning("Previous tick still running, skipping this one")
            return
        task = asyncio.create_task(self._safe_tick(), name="poller-tick")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            # keep the timer alive whatever a single tick does
            self._log.exception("Unexpected error during polling tick")

    async def tick(self) -> TickStats:
        """Fetch one batch and apply every event not yet applied, in arrival order."""
        async with self._tick_lock:
            stats = TickStats()
            try:
                events = await self._gateway.fetch_events()
            except MerchantError as e:
                self._log.error(f"Error while polling events: {e}")
                stats.failed = True
                return stats

            stats.fetched = len(events)
            if not events:
                return stats
            self._log.info(f"Received {len(events)} events")

            for event in events:
                if await self._ledger.already_applied(event.id):
                    stats.duplicates += 1
                    self._log.debug(f"Event {event.id} already applied, skipping")
                    continue

                outcome = await self._projector.apply(event)
                if outcome is ProjectionOutcome.RETRY:
                    stats.retried += 1
                    continue

                await self._ledger.mark_applied(event.id)
                stats.applied += 1

            self._log.info(
                f"Tick done: fetched={stats.fetched} applied={stats.applied} "
                f"duplicates={stats.duplicates} retried={stats.retried}"
            )
            return stats
