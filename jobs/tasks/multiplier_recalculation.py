"""
Multiplier recalculation tasks.

Single-profile recalculation triggered by ripple tasks, and the daily
batch over every active profile.
"""

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import settings
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.multiplier_service import MultiplierService, MultiplierUpdate
from calculator import RewardsConfig
from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401
from jobs.utils.database import task_session_maker

BATCH_SIZE = 100


@dramatiq.actor(max_retries=3, time_limit=60_000)  # 1 min timeout
def recalculate_multiplier(profile_id: int) -> None:
    """
    Recompute the activity multiplier of one profile.

    Idempotent: the value is recomputed from scratch. Never propagates
    to other profiles.

    Args:
        profile_id: Profile to recompute
    """
    run_async(recalculate_multiplier_async(profile_id))


async def recalculate_multiplier_async(
    profile_id: int,
    session_maker: async_sessionmaker[AsyncSession] = task_session_maker,
    config: RewardsConfig | None = None,
) -> MultiplierUpdate | None:
    """Async implementation of recalculate_multiplier."""
    async with session_maker() as session:
        return await MultiplierService(
            session, config or settings.rewards_config()
        ).recalculate(profile_id)


@dramatiq.actor(max_retries=3, time_limit=3_600_000)  # 1 hour timeout
def recalculate_all_multipliers(organization_id: int | None = None) -> None:
    """
    Daily recalculation of every active profile.

    Args:
        organization_id: Restrict to one organization (optional)
    """
    logger.info("Starting daily multiplier recalculation...")
    result = run_async(recalculate_all_multipliers_async(organization_id))
    logger.info(
        f"Daily multiplier recalculation complete: "
        f"{result['processed']} processed, {result['updated']} updated, "
        f"{result['failed']} failed"
    )


async def recalculate_all_multipliers_async(
    organization_id: int | None = None,
    session_maker: async_sessionmaker[AsyncSession] = task_session_maker,
    config: RewardsConfig | None = None,
) -> dict:
    """
    Async implementation of recalculate_all_multipliers.

    Each profile is recomputed in its own transaction; a failure is
    logged and the batch continues.

    Returns:
        Counts of processed, updated and failed profiles
    """
    config = config or settings.rewards_config()
    result = {"processed": 0, "updated": 0, "failed": 0}

    async with session_maker() as session:
        profile_repo = VolunteerProfileRepository(session)
        async for batch in profile_repo.iter_active_ids(
            organization_id, BATCH_SIZE
        ):
            for profile_id in batch:
                try:
                    async with session_maker() as profile_session:
                        update = await MultiplierService(
                            profile_session, config
                        ).recalculate(profile_id)
                except Exception as e:
                    result["failed"] += 1
                    logger.error(
                        f"Multiplier recalculation failed for profile "
                        f"{profile_id}: {e}"
                    )
                    continue

                result["processed"] += 1
                if update is not None and update.persisted:
                    result["updated"] += 1

            logger.debug(
                f"Multiplier batch done: {len(batch)} profiles, "
                f"last id {batch[-1]}"
            )

    return result
