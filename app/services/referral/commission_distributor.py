"""
Commission distributor.

Walks the upline of a volunteer and posts one referral_commission ledger
entry per paid level. Each distribution is keyed by an external
reference and runs at most once.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.repositories.ledger_repository import LedgerRepository
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.base_service import BaseService, transaction
from app.services.events import CommissionEarned
from app.services.ledger_service import LedgerService
from app.services.referral.chain_manager import ReferralChainManager
from app.services.ripple import RippleTask, recalculation_tasks
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    DuplicateEventError,
    InvalidProfileError,
    ValidationError,
)
from calculator import CommissionCalculator, RewardsConfig


@dataclass
class CommissionPosting:
    """One paid level."""

    level: int
    referrer_id: int
    rate: Decimal
    amount: Decimal


@dataclass
class DistributionSummary:
    """Result of one distribution."""

    source_profile_id: int
    reference: str
    base_amount: Decimal
    postings: list[CommissionPosting] = field(default_factory=list)
    total_distributed: Decimal = Decimal("0")
    levels_walked: int = 0
    duplicate: bool = False
    fraud_flags: list[str] = field(default_factory=list)
    ripple: list[RippleTask] = field(default_factory=list)
    events: list[CommissionEarned] = field(default_factory=list)

    @property
    def postings_count(self) -> int:
        return len(self.postings)


class CommissionDistributor(BaseService):
    """
    Posts referral commissions up a chain.

    ``distribute`` joins the caller's transaction; ``process`` is the
    standalone unit of work used by the distribution job.
    """

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        super().__init__(session)
        self.config = config
        self.calculator = CommissionCalculator(config)
        self.chain_manager = ReferralChainManager(session, config)
        self.ledger = LedgerService(session)
        self.ledger_repo = LedgerRepository(session)
        self.profile_repo = VolunteerProfileRepository(session)

    async def distribute(
        self,
        source_profile_id: int,
        base_amount: Decimal,
        reference: str,
    ) -> DistributionSummary:
        """
        Post commissions for one qualifying event. Does not commit.

        Args:
            source_profile_id: Volunteer whose event pays the chain
            base_amount: Amount the commissions are a share of
            reference: Idempotency key of the event

        Returns:
            DistributionSummary with postings and follow-up tasks

        Raises:
            ValidationError: Non-positive amount or empty reference
            DuplicateEventError: Reference already distributed
        """
        base_amount = Decimal(str(base_amount))
        if base_amount <= 0:
            raise ValidationError(
                "Base amount must be positive", base_amount=str(base_amount)
            )
        if not reference or not reference.strip():
            raise ValidationError("External reference is required")

        if await self.ledger_repo.reference_exists(
            reference, (LedgerEntryType.REFERRAL_COMMISSION,)
        ):
            raise DuplicateEventError(
                "Commission already distributed", reference=reference
            )

        upline = await self.chain_manager.get_upline(source_profile_id)
        lines = self.calculator.plan(
            base_amount, self.chain_manager.to_links(upline, utc_now())
        )

        summary = DistributionSummary(
            source_profile_id=source_profile_id,
            reference=reference,
            base_amount=base_amount,
            levels_walked=len(lines),
        )

        for line in lines:
            if not line.payable:
                continue

            await self.ledger.post(
                line.referrer_id,
                LedgerEntryType.REFERRAL_COMMISSION,
                line.amount,
                external_reference=reference,
                extra_data={
                    "level": line.level,
                    "rate": str(line.rate),
                    "source_profile_id": source_profile_id,
                },
                level=line.level,
                rate=line.rate,
                source_profile_id=source_profile_id,
            )
            summary.postings.append(
                CommissionPosting(
                    level=line.level,
                    referrer_id=line.referrer_id,
                    rate=line.rate,
                    amount=line.amount,
                )
            )
            summary.events.append(
                CommissionEarned(
                    profile_id=line.referrer_id,
                    amount=line.amount,
                    level=line.level,
                    reference=reference,
                )
            )

        summary.total_distributed = self.calculator.total_payable(lines)
        summary.ripple = recalculation_tasks(
            p.referrer_id for p in summary.postings
        )

        self.logger.info(
            "Referral commissions distributed",
            extra={
                "source_profile_id": source_profile_id,
                "reference": reference,
                "total_distributed": str(summary.total_distributed),
                "postings": summary.postings_count,
            },
        )
        return summary

    @transaction
    async def process(
        self,
        source_profile_id: int,
        base_amount: Decimal,
        reference: str,
    ) -> DistributionSummary:
        """
        Distribute and commit.

        Raises:
            InvalidProfileError: Unknown source profile
            DuplicateEventError: Reference already distributed
        """
        source = await self.profile_repo.get_by_id(source_profile_id)
        if source is None:
            raise InvalidProfileError(
                "Unknown volunteer profile", profile_id=source_profile_id
            )
        return await self.distribute(source_profile_id, base_amount, reference)
