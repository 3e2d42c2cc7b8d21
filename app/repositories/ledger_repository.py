"""
Ledger repository.

Data access layer for LedgerEntry model. Append and read only; the
model's mapper events refuse updates and deletes.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.ledger_entry import LedgerEntry
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.base import BaseRepository


def _to_decimal(value) -> Decimal:
    """Normalize aggregate results (SQLite returns floats)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Ledger repository with balance and reference queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(LedgerEntry, session)

    async def reference_exists(
        self,
        external_reference: str,
        entry_types: tuple[LedgerEntryType, ...] | None = None,
    ) -> bool:
        """
        Check whether an external reference was already posted.

        Args:
            external_reference: Idempotency key
            entry_types: Optional restriction on entry type

        Returns:
            True if at least one entry carries the reference
        """
        stmt = select(func.count(LedgerEntry.id)).where(
            LedgerEntry.external_reference == external_reference
        )
        if entry_types:
            stmt = stmt.where(
                LedgerEntry.entry_type.in_([t.value for t in entry_types])
            )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def balance(self, profile_id: int) -> Decimal:
        """Sum of all entry amounts of a profile."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.profile_id == profile_id
        )
        result = await self.session.execute(stmt)
        return _to_decimal(result.scalar())

    async def earnings_between(
        self, profile_id: int, start: datetime, end: datetime
    ) -> Decimal:
        """Sum of positive entries with ``start <= created_at < end``."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.profile_id == profile_id,
            LedgerEntry.amount > 0,
            LedgerEntry.created_at >= start,
            LedgerEntry.created_at < end,
        )
        result = await self.session.execute(stmt)
        return _to_decimal(result.scalar())

    async def total_by_type(
        self, profile_id: int, entry_type: LedgerEntryType
    ) -> Decimal:
        """Sum of amounts of one entry type for a profile."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.profile_id == profile_id,
            LedgerEntry.entry_type == entry_type.value,
        )
        result = await self.session.execute(stmt)
        return _to_decimal(result.scalar())

    async def count_since(
        self,
        profile_id: int,
        entry_type: LedgerEntryType,
        since: datetime,
    ) -> int:
        """Count entries of a type posted to a profile after ``since``."""
        stmt = select(func.count(LedgerEntry.id)).where(
            LedgerEntry.profile_id == profile_id,
            LedgerEntry.entry_type == entry_type.value,
            LedgerEntry.created_at > since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def average_amount_since(
        self, entry_type: LedgerEntryType, since: datetime
    ) -> Decimal | None:
        """
        Rolling average amount of an entry type.

        Returns:
            Average, or None when no entries fall in the window
        """
        stmt = select(func.avg(LedgerEntry.amount)).where(
            LedgerEntry.entry_type == entry_type.value,
            LedgerEntry.created_at > since,
        )
        result = await self.session.execute(stmt)
        value = result.scalar()
        return None if value is None else _to_decimal(value)

    async def get_for_profile(
        self,
        profile_id: int,
        entry_type: LedgerEntryType | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        """Entries of a profile, oldest first."""
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.profile_id == profile_id)
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        )
        if entry_type is not None:
            stmt = stmt.where(LedgerEntry.entry_type == entry_type.value)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def xp_ranking(
        self,
        organization_id: int,
        since: datetime | None = None,
    ) -> list[tuple[int, int, int]]:
        """
        Rank non-retired profiles of an organization by earned XP.

        XP earned in a period is the sum of ``xp_amount`` on
        task_completion entries created after ``since``. Without
        ``since`` the stored ``total_xp`` is used.

        Args:
            organization_id: Organization ID
            since: Period start, None for all time

        Returns:
            (profile_id, period_xp, total_xp) tuples, best first
        """
        if since is None:
            stmt = (
                select(
                    VolunteerProfile.id,
                    VolunteerProfile.total_xp.label("period_xp"),
                    VolunteerProfile.total_xp,
                )
                .where(
                    VolunteerProfile.organization_id == organization_id,
                    VolunteerProfile.retired_at.is_(None),
                )
                .order_by(
                    VolunteerProfile.total_xp.desc(), VolunteerProfile.id
                )
            )
        else:
            earned = (
                select(
                    LedgerEntry.profile_id.label("profile_id"),
                    func.sum(LedgerEntry.xp_amount).label("xp"),
                )
                .where(
                    LedgerEntry.entry_type
                    == LedgerEntryType.TASK_COMPLETION.value,
                    LedgerEntry.created_at >= since,
                )
                .group_by(LedgerEntry.profile_id)
                .subquery()
            )
            period_xp = func.coalesce(earned.c.xp, 0)
            stmt = (
                select(
                    VolunteerProfile.id,
                    period_xp.label("period_xp"),
                    VolunteerProfile.total_xp,
                )
                .outerjoin(earned, earned.c.profile_id == VolunteerProfile.id)
                .where(
                    VolunteerProfile.organization_id == organization_id,
                    VolunteerProfile.retired_at.is_(None),
                )
                .order_by(
                    period_xp.desc(),
                    VolunteerProfile.total_xp.desc(),
                    VolunteerProfile.id,
                )
            )

        result = await self.session.execute(stmt)
        return [
            (row[0], int(row[1] or 0), int(row[2] or 0))
            for row in result.all()
        ]
