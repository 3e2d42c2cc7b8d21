"""
Volunteer profile repository.

Data access layer for VolunteerProfile model, including upline walks.
"""

from collections.abc import AsyncIterator

from sqlalchemy import Integer, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.volunteer_profile import VolunteerProfile
from app.repositories.base import BaseRepository
from app.validators.unified import normalize_referral_code
from calculator.constants import MAX_REFERRAL_DEPTH


class VolunteerProfileRepository(BaseRepository[VolunteerProfile]):
    """Volunteer profile repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize volunteer profile repository."""
        super().__init__(VolunteerProfile, session)

    async def get_by_referral_code(
        self, referral_code: str
    ) -> VolunteerProfile | None:
        """Get profile by its referral code (case-insensitive)."""
        return await self.get_by(
            referral_code=normalize_referral_code(referral_code)
        )

    async def get_by_identity(
        self, identity_id: int, organization_id: int
    ) -> VolunteerProfile | None:
        """Get the profile of an identity within an organization."""
        return await self.get_by(
            identity_id=identity_id, organization_id=organization_id
        )

    async def get_upline(
        self, profile_id: int, depth: int = MAX_REFERRAL_DEPTH
    ) -> list[VolunteerProfile]:
        """
        Get upline chain using a recursive CTE.

        The recursion is bounded by ``depth``, so the query terminates
        even on corrupted data; a revisited node ends the chain.

        Args:
            profile_id: Starting profile (not included in result)
            depth: Maximum number of ancestors to return

        Returns:
            Ancestors from direct referrer (level 1) to level ``depth``
        """
        chain = (
            select(
                VolunteerProfile.id.label("id"),
                VolunteerProfile.upline_id.label("upline_id"),
                literal_column("0", Integer).label("depth"),
            )
            .where(VolunteerProfile.id == profile_id)
            .cte("upline_chain", recursive=True)
        )
        parent = aliased(VolunteerProfile)
        chain = chain.union_all(
            select(
                parent.id,
                parent.upline_id,
                (chain.c.depth + 1).label("depth"),
            )
            .join(chain, parent.id == chain.c.upline_id)
            .where(chain.c.depth < depth)
        )

        stmt = (
            select(VolunteerProfile)
            .join(chain, VolunteerProfile.id == chain.c.id)
            .where(chain.c.depth > 0)
            .order_by(chain.c.depth)
        )
        result = await self.session.execute(stmt)

        upline: list[VolunteerProfile] = []
        seen = {profile_id}
        for profile in result.scalars().all():
            if profile.id in seen:
                break
            seen.add(profile.id)
            upline.append(profile)
        return upline

    async def get_direct_referrals(
        self, profile_id: int, limit: int | None = None
    ) -> list[VolunteerProfile]:
        """Profiles whose upline is ``profile_id``."""
        stmt = (
            select(VolunteerProfile)
            .where(VolunteerProfile.upline_id == profile_id)
            .order_by(VolunteerProfile.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def iter_active_ids(
        self,
        organization_id: int | None = None,
        batch_size: int = 100,
    ) -> AsyncIterator[list[int]]:
        """
        Yield ids of non-retired profiles in batches.

        Uses keyset pagination on the primary key.
        """
        last_id = 0
        while True:
            stmt = (
                select(VolunteerProfile.id)
                .where(
                    VolunteerProfile.id > last_id,
                    VolunteerProfile.retired_at.is_(None),
                )
                .order_by(VolunteerProfile.id)
                .limit(batch_size)
            )
            if organization_id is not None:
                stmt = stmt.where(
                    VolunteerProfile.organization_id == organization_id
                )
            result = await self.session.execute(stmt)
            ids = list(result.scalars().all())
            if not ids:
                return
            yield ids
            last_id = ids[-1]
