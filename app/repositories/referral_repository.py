"""
Referral repository.

Data access layer for Referral model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referral import Referral
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.base import BaseRepository
from calculator.constants import MAX_REFERRAL_DEPTH


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def get_by_referred(
        self, referred_id: int
    ) -> list[Referral]:
        """
        Get the upline edges of a referred profile, nearest first.

        Args:
            referred_id: Referred profile ID

        Returns:
            List of referrals ordered by level
        """
        stmt = (
            select(Referral)
            .where(Referral.referred_id == referred_id)
            .order_by(Referral.level)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_level_counts(
        self, referrer_id: int
    ) -> dict[int, int]:
        """
        Get referral counts for all levels in a single query.

        Args:
            referrer_id: Referrer profile ID

        Returns:
            Dict mapping level to count, every level 1-5 present
        """
        stmt = (
            select(
                Referral.level,
                func.count(Referral.id).label("count")
            )
            .where(Referral.referrer_id == referrer_id)
            .group_by(Referral.level)
        )

        result = await self.session.execute(stmt)
        rows = result.all()

        # Build result dict with all levels (default to 0)
        level_counts = {
            level: 0 for level in range(1, MAX_REFERRAL_DEPTH + 1)
        }
        for row in rows:
            level_counts[row.level] = row.count

        return level_counts

    async def count_active_direct(
        self, referrer_id: int, active_since: datetime
    ) -> int:
        """
        Count active level-1 referrals.

        A referral counts when its edge is active and the referred
        profile had activity after ``active_since``.

        Args:
            referrer_id: Referrer profile ID
            active_since: Activity window start

        Returns:
            Number of active direct referrals
        """
        stmt = (
            select(func.count(Referral.id))
            .join(
                VolunteerProfile,
                VolunteerProfile.id == Referral.referred_id,
            )
            .where(
                Referral.referrer_id == referrer_id,
                Referral.level == 1,
                Referral.active.is_(True),
                VolunteerProfile.last_activity_at.is_not(None),
                VolunteerProfile.last_activity_at > active_since,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def deactivate_for_profile(self, profile_id: int) -> int:
        """
        Mark every edge touching a profile as inactive.

        Args:
            profile_id: Retired profile ID

        Returns:
            Number of edges changed
        """
        edges = await self.session.execute(
            select(Referral).where(
                (Referral.referrer_id == profile_id)
                | (Referral.referred_id == profile_id),
                Referral.active.is_(True),
            )
        )
        changed = 0
        for edge in edges.scalars().all():
            edge.active = False
            changed += 1
        await self.session.flush()
        return changed
