"""Background Worker for the Reminder Scheduler service.

Runs the reminder scheduler as a standalone process, for deployments where
the API server is started with SCHEDULER_ENABLED=false.

The worker:
- Checks the entity store connection, then starts the scheduler
- Scans tasks, events and goals for due reminders every
  SCHEDULER_TICK_SECONDS (default 60 seconds)
- Stops on SIGINT/SIGTERM and lets a running scan cycle finish before exiting
"""

import asyncio
import signal
import sys

from sqlalchemy import text

import database
from config import settings
from logger_config import setup_logger
from scheduler import build_scheduler

logger = setup_logger(__name__, 'worker.log')


def check_database() -> None:
    """Fail fast when the entity store is unreachable."""
    with database.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


async def worker_loop() -> None:
    """Run the scheduler until a shutdown signal arrives."""
    logger.info(f"Reminder buffer: {settings.REMINDER_BUFFER_MINUTES} minutes")
    logger.info(f"Check interval: {settings.SCHEDULER_TICK_SECONDS} seconds")

    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, shutdown_requested.set)

    check_database()
    logger.info("Entity store reachable")

    scheduler = build_scheduler(settings)
    scheduler.start()
    try:
        await shutdown_requested.wait()
        logger.info("Shutdown signal received, stopping scheduler...")
    finally:
        scheduler.stop()
        await scheduler.wait_for_idle()

    logger.info("Background worker shutting down gracefully")


def main():
    """Main entry point for the background worker."""
    logger.info("=" * 60)
    logger.info("Reminder Scheduler - Background Worker")
    logger.info("=" * 60)

    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error in background worker: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info("Background worker stopped")
    sys.exit(0)


if __name__ == "__main__":
    main()
