"""
Dramatiq dispatcher.

Sends ripple tasks to their actors and wires the production engine.
"""

from collections.abc import Sequence
from typing import assert_never

from loguru import logger

from app.config.database import async_session_maker
from app.config.settings import settings
from app.services.engine import RewardsEngine
from app.services.events import EventPublisher, LoggingEventPublisher
from app.services.ripple import RippleKind, RippleTask
from jobs.tasks.commission_distribution import distribute_commission
from jobs.tasks.multiplier_recalculation import recalculate_multiplier


class DramatiqDispatcher:
    """Enqueues each ripple task as a dramatiq message."""

    def dispatch(self, tasks: Sequence[RippleTask]) -> None:
        for task in tasks:
            match task.kind:
                case RippleKind.RECALCULATE_MULTIPLIER:
                    recalculate_multiplier.send(task.profile_id)
                case RippleKind.DISTRIBUTE_COMMISSION:
                    distribute_commission.send(
                        task.profile_id,
                        str(task.base_amount),
                        task.reference,
                    )
                case _:
                    assert_never(task.kind)

        logger.debug(f"Dispatched {len(tasks)} ripple tasks")


def build_engine(publisher: EventPublisher | None = None) -> RewardsEngine:
    """Engine wired to the database, the task queue and the settings."""
    return RewardsEngine(
        async_session_maker,
        config=settings.rewards_config(),
        dispatcher=DramatiqDispatcher(),
        publisher=publisher or LoggingEventPublisher(),
        webhook_secret=settings.webhook_secret,
    )
