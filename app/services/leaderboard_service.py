"""
Volunteer leaderboard.

Ranks volunteers of an organization by XP earned in a period.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LeaderboardPeriod
from app.repositories.ledger_repository import LedgerRepository
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.base_service import BaseService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import InvalidProfileError

DEFAULT_LEADERBOARD_LIMIT = 100

PERIOD_LENGTHS = {
    LeaderboardPeriod.DAILY: timedelta(days=1),
    LeaderboardPeriod.WEEKLY: timedelta(weeks=1),
    LeaderboardPeriod.MONTHLY: timedelta(days=30),
}


@dataclass
class LeaderboardEntry:
    rank: int
    profile_id: int
    period_xp: int
    total_xp: int


@dataclass
class VolunteerRank:
    profile_id: int
    rank: int
    total_volunteers: int
    percentile: float


def period_start(
    period: LeaderboardPeriod, now: datetime | None = None
) -> datetime | None:
    """Start of a leaderboard period, None for all time."""
    length = PERIOD_LENGTHS.get(period)
    if length is None:
        return None
    return (now or utc_now()) - length


def percentile(rank: int, total: int) -> float:
    """
    Share of volunteers at or below ``rank``.

    Examples:
        >>> percentile(1, 4)
        100.0
        >>> percentile(4, 4)
        25.0
    """
    if total == 0:
        return 100.0
    return round((total - rank + 1) / total * 100, 2)


class LeaderboardService(BaseService):
    """Leaderboard queries."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.ledger_repo = LedgerRepository(session)
        self.profile_repo = VolunteerProfileRepository(session)

    async def _ranking(
        self,
        organization_id: int,
        period: LeaderboardPeriod,
        now: datetime | None,
    ) -> list[tuple[int, int, int]]:
        since = period_start(period, now)
        ranking = await self.ledger_repo.xp_ranking(organization_id, since)
        if since is not None:
            # Periodic boards list only volunteers active in the period
            ranking = [row for row in ranking if row[1] > 0]
        return ranking

    async def leaderboard(
        self,
        organization_id: int,
        period: LeaderboardPeriod | str = LeaderboardPeriod.MONTHLY,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        now: datetime | None = None,
    ) -> list[LeaderboardEntry]:
        """
        Top volunteers by XP earned in the period, ties by total XP.

        Args:
            organization_id: Organization ID
            period: daily, weekly, monthly or all_time
            limit: Maximum entries
            now: Period end

        Returns:
            Entries ordered by rank
        """
        period = LeaderboardPeriod(period)
        ranking = await self._ranking(organization_id, period, now)
        return [
            LeaderboardEntry(
                rank=position,
                profile_id=profile_id,
                period_xp=period_xp,
                total_xp=total_xp,
            )
            for position, (profile_id, period_xp, total_xp) in enumerate(
                ranking[:limit], start=1
            )
        ]

    async def volunteer_rank(
        self,
        profile_id: int,
        period: LeaderboardPeriod | str = LeaderboardPeriod.ALL_TIME,
        now: datetime | None = None,
    ) -> VolunteerRank:
        """
        Rank of one volunteer by total XP among the period's volunteers.

        Raises:
            InvalidProfileError: Unknown profile
        """
        profile = await self.profile_repo.get_by_id(profile_id)
        if profile is None:
            raise InvalidProfileError(
                "Unknown volunteer profile", profile_id=profile_id
            )

        period = LeaderboardPeriod(period)
        ranking = await self._ranking(profile.organization_id, period, now)
        rank = sum(1 for row in ranking if row[2] > profile.total_xp) + 1
        total = len(ranking)
        return VolunteerRank(
            profile_id=profile_id,
            rank=rank,
            total_volunteers=total,
            percentile=percentile(rank, total),
        )
