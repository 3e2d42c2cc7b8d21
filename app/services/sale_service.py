"""
External sale service.

Records a token sale against a volunteer and pays the referral chain in
the same transaction.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.repositories.ledger_repository import LedgerRepository
from app.services.base_service import BaseService, transaction
from app.services.ledger_service import LedgerService
from app.services.profile_service import ProfileService
from app.services.referral.commission_distributor import (
    CommissionDistributor,
    DistributionSummary,
)
from app.services.referral.fraud_guard import FraudGuard
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import DuplicateEventError, ValidationError
from app.validators.unified import (
    MAX_AMOUNT,
    validate_amount,
    validate_reference,
)
from calculator import RewardsConfig

SALE_REFERENCE_TYPES = (
    LedgerEntryType.TOKEN_PURCHASE,
    LedgerEntryType.REFERRAL_COMMISSION,
)


class SaleService(BaseService):
    """Token sales reported by an external system."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        super().__init__(session)
        self.config = config
        self.profiles = ProfileService(session, config)
        self.ledger = LedgerService(session)
        self.ledger_repo = LedgerRepository(session)
        self.distributor = CommissionDistributor(session, config)
        self.fraud_guard = FraudGuard(session)

    @transaction
    async def record_external_sale(
        self,
        profile_id: int,
        amount: Decimal | str | int,
        external_reference: str,
        now: datetime | None = None,
    ) -> DistributionSummary:
        """
        Post a token purchase and distribute commissions up the chain.

        The reference is checked against the ledger before any write and
        is unique per (profile, entry type) in storage, so a replay
        commits nothing.

        Args:
            profile_id: Buyer profile
            amount: Sale amount, positive
            external_reference: Idempotency key of the sale
            now: Evaluation time for the fraud checks

        Returns:
            DistributionSummary with advisory fraud flags

        Raises:
            ValidationError: Bad amount or reference
            InvalidProfileError: Unknown or retired buyer
            DuplicateEventError: Reference already processed
        """
        now = now or utc_now()

        is_valid, value, error = validate_amount(amount, max_val=MAX_AMOUNT)
        if not is_valid:
            raise ValidationError(error, amount=str(amount))
        is_valid, reference, error = validate_reference(external_reference)
        if not is_valid:
            raise ValidationError(error)

        buyer = await self.profiles.lock_valid_profile(profile_id)

        if await self.ledger_repo.reference_exists(
            reference, SALE_REFERENCE_TYPES
        ):
            raise DuplicateEventError(
                "Sale already recorded", external_reference=reference
            )

        upline = await self.distributor.chain_manager.get_upline(buyer.id)
        flags = await self.fraud_guard.assess(buyer, value, upline, now)

        await self.ledger.post(
            buyer.id,
            LedgerEntryType.TOKEN_PURCHASE,
            value,
            external_reference=reference,
            extra_data={"fraud_flags": [f.value for f in flags]}
            if flags
            else None,
        )

        summary = await self.distributor.distribute(buyer.id, value, reference)
        summary.fraud_flags = [f.value for f in flags]

        self.logger.info(
            "External sale recorded",
            extra={
                "profile_id": buyer.id,
                "amount": str(value),
                "reference": reference,
                "total_distributed": str(summary.total_distributed),
            },
        )
        return summary
