"""
Commission distribution task.

Pays the referral chain of a volunteer for one qualifying event.
Idempotent by reference: a replay is logged and treated as done.
"""

from decimal import Decimal

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import settings
from app.services.events import EventPublisher, LoggingEventPublisher
from app.services.ripple import RippleTask
from app.services.ripple_worker import RippleWorker
from calculator import RewardsConfig
from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401
from jobs.tasks.multiplier_recalculation import recalculate_multiplier
from jobs.utils.database import task_session_maker


@dramatiq.actor(max_retries=3, time_limit=120_000)  # 2 min timeout
def distribute_commission(
    profile_id: int, base_amount: str, reference: str
) -> None:
    """
    Distribute referral commissions for one event.

    Args:
        profile_id: Volunteer whose event pays the chain
        base_amount: Decimal amount as string
        reference: Idempotency key of the event
    """
    follow_up = run_async(
        distribute_commission_async(profile_id, Decimal(base_amount), reference)
    )
    for task in follow_up:
        recalculate_multiplier.send(task.profile_id)


async def distribute_commission_async(
    profile_id: int,
    base_amount: Decimal,
    reference: str,
    session_maker: async_sessionmaker[AsyncSession] = task_session_maker,
    config: RewardsConfig | None = None,
    publisher: EventPublisher | None = None,
) -> list[RippleTask]:
    """
    Async implementation of distribute_commission.

    Returns:
        Multiplier recalculations for the paid referrers
    """
    publisher = publisher or LoggingEventPublisher()
    async with session_maker() as session:
        worker = RippleWorker(session, config or settings.rewards_config())
        follow_up = await worker.run(
            RippleTask.distribute(profile_id, base_amount, reference)
        )

    for event in worker.events:
        await publisher.publish(event)

    logger.info(
        f"Commission distribution {reference} done: "
        f"{len(worker.events)} postings"
    )
    return follow_up
