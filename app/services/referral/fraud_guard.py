"""
Advisory fraud checks for external sales.

Flags are reported with the distribution summary and logged; they never
block a sale.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.ledger_repository import LedgerRepository
from app.services.referral.config import (
    DEFAULT_AVERAGE_SALE,
    FRESH_UPLINE_LIMIT,
    FRESH_UPLINE_WINDOW_HOURS,
    RAPID_PURCHASE_LIMIT,
    RAPID_PURCHASE_WINDOW_HOURS,
    SALE_AVERAGE_WINDOW_DAYS,
    UNUSUAL_SALE_FACTOR,
)


class FraudFlag(StrEnum):
    """Advisory fraud indicators."""

    RAPID_PURCHASES = "rapid_purchases"
    UNUSUAL_AMOUNT = "unusual_amount"
    FRESH_UPLINE = "fresh_upline"


class FraudGuard:
    """Computes advisory flags for a sale before it is posted."""

    def __init__(self, session: AsyncSession) -> None:
        self.ledger_repo = LedgerRepository(session)

    async def assess(
        self,
        buyer: VolunteerProfile,
        amount: Decimal,
        upline: list[VolunteerProfile],
        now: datetime,
    ) -> list[FraudFlag]:
        """
        Evaluate the three advisory rules for one sale.

        Args:
            buyer: Profile the sale is recorded against
            amount: Sale amount
            upline: Buyer's ancestors
            now: Evaluation time

        Returns:
            Raised flags, possibly empty
        """
        flags: list[FraudFlag] = []

        recent = await self.ledger_repo.count_since(
            buyer.id,
            LedgerEntryType.TOKEN_PURCHASE,
            now - timedelta(hours=RAPID_PURCHASE_WINDOW_HOURS),
        )
        # The sale being recorded counts towards the window
        if recent + 1 > RAPID_PURCHASE_LIMIT:
            flags.append(FraudFlag.RAPID_PURCHASES)

        average = await self.ledger_repo.average_amount_since(
            LedgerEntryType.TOKEN_PURCHASE,
            now - timedelta(days=SALE_AVERAGE_WINDOW_DAYS),
        )
        if average is None or average <= 0:
            average = DEFAULT_AVERAGE_SALE
        if amount > average * UNUSUAL_SALE_FACTOR:
            flags.append(FraudFlag.UNUSUAL_AMOUNT)

        fresh_since = now - timedelta(hours=FRESH_UPLINE_WINDOW_HOURS)
        fresh = sum(1 for a in upline if a.created_at > fresh_since)
        if fresh > FRESH_UPLINE_LIMIT:
            flags.append(FraudFlag.FRESH_UPLINE)

        if flags:
            logger.warning(
                "Sale flagged for review",
                extra={
                    "profile_id": buyer.id,
                    "amount": str(amount),
                    "flags": [f.value for f in flags],
                },
            )
        return flags
