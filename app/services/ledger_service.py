"""
Ledger service.

Posts append-only ledger entries and answers balance queries.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.ledger_entry import LedgerEntry, describe_entry
from app.repositories.ledger_repository import LedgerRepository
from app.services.base_service import BaseService
from app.utils.datetime_utils import month_bounds, utc_now
from app.utils.exceptions import DuplicateEventError


class LedgerService(BaseService):
    """Append-only ledger operations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.ledger_repo = LedgerRepository(session)

    async def post(
        self,
        profile_id: int,
        entry_type: LedgerEntryType,
        amount: Decimal,
        *,
        xp_amount: int | None = None,
        external_reference: str | None = None,
        description: str | None = None,
        extra_data: dict[str, Any] | None = None,
        **context: Any,
    ) -> LedgerEntry:
        """
        Append one entry. Does not commit.

        Args:
            profile_id: Profile the entry belongs to
            entry_type: Movement type
            amount: Signed token amount
            xp_amount: XP carried by the entry, if any
            external_reference: Idempotency key
            description: Overrides the default description
            extra_data: Stored in the metadata column
            **context: Values for the default description

        Returns:
            Created entry

        Raises:
            DuplicateEventError: Same (profile, type, reference) exists
        """
        if description is None:
            description = describe_entry(
                entry_type,
                external_reference=external_reference,
                **context,
            )

        try:
            entry = await self.ledger_repo.create(
                profile_id=profile_id,
                entry_type=entry_type.value,
                amount=amount,
                xp_amount=xp_amount,
                external_reference=external_reference,
                description=description,
                extra_data=extra_data,
            )
        except IntegrityError as e:
            raise DuplicateEventError(
                "Ledger reference already posted",
                profile_id=profile_id,
                entry_type=entry_type.value,
                external_reference=external_reference,
            ) from e

        self.logger.debug(
            "Ledger entry posted",
            extra={
                "profile_id": profile_id,
                "entry_type": entry_type.value,
                "amount": str(amount),
                "external_reference": external_reference,
            },
        )
        return entry

    async def balance(self, profile_id: int) -> Decimal:
        """Current balance: the sum of every entry of the profile."""
        return await self.ledger_repo.balance(profile_id)

    async def monthly_earnings(
        self, profile_id: int, month: datetime | None = None
    ) -> Decimal:
        """Sum of positive entries within the calendar month of ``month``."""
        start, end = month_bounds(month or utc_now())
        return await self.ledger_repo.earnings_between(profile_id, start, end)

    async def entries(
        self,
        profile_id: int,
        entry_type: LedgerEntryType | None = None,
    ) -> list[LedgerEntry]:
        """Entries of a profile, oldest first."""
        return await self.ledger_repo.get_for_profile(profile_id, entry_type)
