"""
Ripple worker.

Executes one ripple task in its own transaction. Used by the dramatiq
actors and by the in-process drain in tests.
"""

from typing import assert_never

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.events import EngineEvent
from app.services.multiplier_service import MultiplierService
from app.services.referral.commission_distributor import CommissionDistributor
from app.services.ripple import RippleKind, RippleTask
from app.utils.exceptions import DuplicateEventError
from calculator import RewardsConfig


class RippleWorker:
    """Runs ripple tasks against a session."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        self.session = session
        self.config = config
        self.events: list[EngineEvent] = []

    async def run(self, task: RippleTask) -> list[RippleTask]:
        """
        Execute one task and commit.

        Args:
            task: Task to run

        Returns:
            Follow-up tasks to dispatch; a multiplier recalculation
            never produces any

        Raises:
            TransientInfraError: Database unavailable, retry later
        """
        match task.kind:
            case RippleKind.RECALCULATE_MULTIPLIER:
                await MultiplierService(
                    self.session, self.config
                ).recalculate(task.profile_id)
                return []
            case RippleKind.DISTRIBUTE_COMMISSION:
                try:
                    summary = await CommissionDistributor(
                        self.session, self.config
                    ).process(
                        task.profile_id, task.base_amount, task.reference
                    )
                except DuplicateEventError:
                    logger.info(
                        "Commission already distributed, skipping",
                        extra={"reference": task.reference},
                    )
                    return []
                self.events.extend(summary.events)
                return summary.ripple
            case _:
                assert_never(task.kind)
