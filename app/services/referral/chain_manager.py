"""
Referral chain management module.

Handles upline retrieval and referral edge creation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.referral import Referral
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.ledger_repository import LedgerRepository
from app.repositories.referral_repository import ReferralRepository
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.referral.config import CYCLE_CHECK_DEPTH
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    AlreadyReferredError,
    ReferralCycleError,
    SelfReferralError,
)
from calculator import CommissionCalculator, RewardsConfig, UplineLink


@dataclass
class ChainStatistics:
    """Position of a profile in the referral structure."""

    profile_id: int
    depth: int
    has_full_chain: bool
    referrers: list[dict] = field(default_factory=list)
    downline_counts: dict[int, int] = field(default_factory=dict)
    total_commission_earned: Decimal = Decimal("0")


class ReferralChainManager:
    """Manages referral chain operations."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        """Initialize chain manager."""
        self.session = session
        self.config = config
        self.profile_repo = VolunteerProfileRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.ledger_repo = LedgerRepository(session)
        self.commission = CommissionCalculator(config)

    async def get_upline(self, profile_id: int) -> list[VolunteerProfile]:
        """
        Get upline chain, direct referrer first.

        Args:
            profile_id: Profile ID

        Returns:
            At most ``max_referral_depth`` ancestors
        """
        chain = await self.profile_repo.get_upline(
            profile_id, self.config.max_referral_depth
        )
        logger.debug(
            "Upline chain retrieved",
            extra={"profile_id": profile_id, "chain_length": len(chain)},
        )
        return chain

    def to_links(
        self, upline: list[VolunteerProfile], now: datetime | None = None
    ) -> list[UplineLink]:
        """Convert ancestors to calculator input."""
        now = now or utc_now()
        return [
            UplineLink(
                level=level,
                profile_id=ancestor.id,
                activity_multiplier=float(ancestor.activity_multiplier),
                is_active=not ancestor.is_retired
                and ancestor.is_active(
                    now, self.config.active_referral_window_days
                ),
                is_retired=ancestor.is_retired,
            )
            for level, ancestor in enumerate(upline, start=1)
        ]

    async def build_chain(
        self, referred: VolunteerProfile, referrer: VolunteerProfile
    ) -> list[Referral]:
        """
        Attach ``referred`` below ``referrer`` and materialize its edges.

        Creates the level 1 edge to the referrer and one edge per
        ancestor of the referrer, up to the configured depth. Every
        check runs before the first write; nothing is committed here,
        so a failure later in the caller's transaction leaves no
        partial chain.

        Args:
            referred: Profile being referred
            referrer: Direct referrer

        Returns:
            Created edges ordered by level

        Raises:
            SelfReferralError: referred is the referrer
            AlreadyReferredError: referred already has an upline
            ReferralCycleError: referred is an ancestor of referrer
        """
        if referred.id == referrer.id:
            raise SelfReferralError(
                "A volunteer cannot refer themselves",
                profile_id=referred.id,
            )

        if referred.upline_id is not None or await self.referral_repo.exists(
            referred_id=referred.id
        ):
            raise AlreadyReferredError(
                "Volunteer already belongs to a referral chain",
                profile_id=referred.id,
            )

        ancestors = await self.profile_repo.get_upline(
            referrer.id, CYCLE_CHECK_DEPTH
        )
        chain_ids = [referrer.id] + [a.id for a in ancestors]
        if referred.id in chain_ids:
            logger.warning(
                "Referral loop detected",
                extra={
                    "referred_id": referred.id,
                    "referrer_id": referrer.id,
                    "chain_ids": chain_ids,
                },
            )
            raise ReferralCycleError(
                "Referral would create a cycle",
                referred_id=referred.id,
                referrer_id=referrer.id,
            )

        upline = [referrer] + ancestors
        referred.upline_id = referrer.id

        edges = []
        for level, ancestor in enumerate(
            upline[: self.config.max_referral_depth], start=1
        ):
            edge = await self.referral_repo.create(
                referrer_id=ancestor.id,
                referred_id=referred.id,
                level=level,
                commission_rate=self.commission.rate_for_level(level),
                active=True,
            )
            edges.append(edge)

            logger.debug(
                "Referral relationship created",
                extra={
                    "referrer_id": ancestor.id,
                    "referred_id": referred.id,
                    "level": level,
                },
            )

        logger.info(
            "Referral chain created",
            extra={
                "referred_id": referred.id,
                "referrer_id": referrer.id,
                "levels_created": len(edges),
            },
        )
        return edges

    async def chain_statistics(self, profile_id: int) -> ChainStatistics:
        """
        Describe the upline and downline of a profile.

        Args:
            profile_id: Profile ID

        Returns:
            ChainStatistics
        """
        upline = await self.get_upline(profile_id)
        edges = {
            edge.referrer_id: edge
            for edge in await self.referral_repo.get_by_referred(profile_id)
        }
        referrers = [
            {
                "profile_id": ancestor.id,
                "level": level,
                "rate": self.commission.rate_for_level(level),
                "activity_multiplier": ancestor.activity_multiplier,
                "active": ancestor.id in edges
                and edges[ancestor.id].active,
            }
            for level, ancestor in enumerate(upline, start=1)
        ]
        return ChainStatistics(
            profile_id=profile_id,
            depth=len(upline),
            has_full_chain=len(upline) >= self.config.max_referral_depth,
            referrers=referrers,
            downline_counts=await self.referral_repo.get_level_counts(
                profile_id
            ),
            total_commission_earned=await self.ledger_repo.total_by_type(
                profile_id, LedgerEntryType.REFERRAL_COMMISSION
            ),
        )

    def maximum_possible_commission(self, amount: Decimal) -> Decimal:
        """Commission paid out if every level of the chain is filled."""
        return self.commission.maximum_possible_commission(amount)
