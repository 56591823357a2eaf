"""Reminder scheduler lifecycle.

ReminderScheduler owns the recurring trigger of the scan engine. It is
created once by the hosting process (API server or background worker),
started once the entity store is reachable and stopped on shutdown.

- start() and stop() are idempotent.
- At most one scan cycle runs at a time: a tick that fires while the
  previous cycle is still running is skipped, not queued.
- An exception escaping a cycle is logged; the next tick runs normally.
- stop() only prevents future ticks. An in-flight cycle is left to finish;
  hosts await wait_for_idle() before closing the store.
"""

import asyncio
import enum
from typing import Optional
from zoneinfo import ZoneInfo

import database
from config import Settings, settings as default_settings
from logger_config import setup_logger
from notification_service import NotificationDispatcher, build_dispatcher
from reminder_scanner import ReminderScanEngine, ScanSummary

logger = setup_logger(__name__, 'scheduler.log')


class SchedulerState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class ReminderScheduler:
    """Run ReminderScanEngine.run_scan_cycle() on a fixed interval."""

    def __init__(
        self,
        engine: ReminderScanEngine,
        tick_seconds: float = 60,
        run_on_start: bool = True
    ):
        self._engine = engine
        self._tick_seconds = tick_seconds
        self._run_on_start = run_on_start
        self._state = SchedulerState.STOPPED
        self._ticker: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None
        self.skipped_ticks = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle is not None and not self._cycle.done()

    def start(self) -> None:
        """Begin firing scan cycles. Must be called from a running event loop."""
        if self.is_running:
            logger.info("Reminder scheduler is already running.")
            return

        self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())
        self._state = SchedulerState.RUNNING
        logger.info(f"Reminder scheduler started. Checking reminders every {self._tick_seconds} seconds.")

    def stop(self) -> None:
        """Cancel future ticks. A cycle already running is allowed to finish."""
        if not self.is_running:
            return

        self._ticker.cancel()
        self._ticker = None
        self._state = SchedulerState.STOPPED
        logger.info("Reminder scheduler stopped.")

    async def wait_for_idle(self) -> None:
        """Wait for the in-flight cycle, if any, to complete."""
        if self._cycle is not None:
            await asyncio.wait({self._cycle})

    def tick(self) -> bool:
        """Launch one scan cycle unless one is still running.

        Returns:
            bool: True if a cycle was launched, False if the tick was skipped
        """
        if self.cycle_in_flight:
            self.skipped_ticks += 1
            logger.warning("[Scheduler] Previous reminder scan still running; skipping this tick.")
            return False

        self._cycle = asyncio.get_running_loop().create_task(self._run_guarded())
        return True

    async def run_once(self) -> Optional[ScanSummary]:
        """Run one cycle now and wait for it.

        Returns:
            ScanSummary of the cycle, or None if a cycle was already running
            or the cycle raised
        """
        if not self.tick():
            return None
        return await self._cycle

    async def _tick_loop(self) -> None:
        if not self._run_on_start:
            await asyncio.sleep(self._tick_seconds)
        while True:
            self.tick()
            await asyncio.sleep(self._tick_seconds)

    async def _run_guarded(self) -> Optional[ScanSummary]:
        try:
            return await self._engine.run_scan_cycle()
        except Exception as e:
            logger.error(f"[Scheduler] Error during reminder check: {str(e)}", exc_info=True)
            return None


def build_scheduler(
    config: Optional[Settings] = None,
    session_factory=None,
    dispatcher: Optional[NotificationDispatcher] = None
) -> ReminderScheduler:
    """Create a scheduler wired to the configured store and providers."""
    config = config or default_settings
    engine = ReminderScanEngine(
        session_factory=session_factory or database.SessionLocal,
        dispatcher=dispatcher or build_dispatcher(config),
        buffer_minutes=config.REMINDER_BUFFER_MINUTES,
        tz=ZoneInfo(config.TIMEZONE),
        product_name=config.PRODUCT_NAME,
        mark_unsendable=config.MARK_UNSENDABLE_AS_SENT,
    )
    return ReminderScheduler(
        engine,
        tick_seconds=config.SCHEDULER_TICK_SECONDS,
        run_on_start=config.SCHEDULER_RUN_ON_START,
    )
