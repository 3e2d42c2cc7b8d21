"""
Periodic job scheduler.

Enqueues the daily multiplier recalculation and serves the health
endpoints. Run with ``python -m jobs.scheduler``; the actors themselves
run in ``dramatiq jobs.worker``.
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from app.config.logging import setup_logging
from app.config.settings import Settings, settings
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.multiplier_recalculation import recalculate_all_multipliers

DAILY_RECALCULATION_JOB = "daily_multiplier_recalculation"


def enqueue_daily_recalculation() -> None:
    """Send the batch recalculation to the worker queue."""
    message = recalculate_all_multipliers.send()
    logger.info(
        f"Daily multiplier recalculation enqueued: {message.message_id}"
    )


def create_scheduler(config: Settings | None = None) -> AsyncIOScheduler:
    """Build the scheduler with every periodic job registered."""
    config = config or settings
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        enqueue_daily_recalculation,
        CronTrigger(hour=config.multiplier_recalc_hour, minute=0, timezone="UTC"),
        id=DAILY_RECALCULATION_JOB,
        name="Daily multiplier recalculation",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler


async def run() -> None:
    setup_logging()

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    runner = await start_health_server(settings.health_host, settings.health_port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("Scheduler started")
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        set_scheduler(None)
        await stop_health_server(runner)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    asyncio.run(run())
