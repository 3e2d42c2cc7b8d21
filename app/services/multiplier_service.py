"""
Activity multiplier service.

Recomputes a volunteer's multiplier from scratch and persists it when
the change is larger than the configured tolerance.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.referral_repository import ReferralRepository
from app.repositories.task_assignment_repository import (
    TaskAssignmentRepository,
)
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.base_service import BaseService, transaction
from app.services.ledger_service import LedgerService
from app.services.ripple import RippleTask, recalculation_tasks
from app.utils.datetime_utils import utc_now, window_start
from app.utils.exceptions import InvalidProfileError
from calculator import (
    ActivityMultiplierCalculator,
    MultiplierBreakdown,
    MultiplierInputs,
    RewardsConfig,
)
from calculator.utils import format_multiplier

MULTIPLIER_QUANTUM = Decimal("0.0001")


@dataclass
class MultiplierUpdate:
    """Outcome of one recomputation."""

    profile_id: int
    old_value: Decimal
    new_value: Decimal
    persisted: bool
    breakdown: MultiplierBreakdown


class MultiplierService(BaseService):
    """Activity multiplier recomputation."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        super().__init__(session)
        self.config = config
        self.calculator = ActivityMultiplierCalculator(config)
        self.profile_repo = VolunteerProfileRepository(session)
        self.assignment_repo = TaskAssignmentRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.ledger = LedgerService(session)

    async def gather_inputs(
        self, profile: VolunteerProfile, now: datetime
    ) -> MultiplierInputs:
        """Read everything the calculator needs for ``profile``."""
        approved = await self.assignment_repo.count_approved_since(
            profile.id, window_start(self.config.activity_window_days, now)
        )
        active_referrals = await self.referral_repo.count_active_direct(
            profile.id,
            window_start(self.config.active_referral_window_days, now),
        )
        return MultiplierInputs(
            level=profile.level,
            approved_tasks_last_30d=approved,
            active_referrals=active_referrals,
            last_activity_at=profile.last_activity_at,
            now=now,
        )

    async def recompute(
        self, profile_id: int, now: datetime | None = None
    ) -> MultiplierUpdate | None:
        """
        Recompute and store the multiplier of one profile. Does not commit.

        The profile row is locked for the rest of the transaction. The
        calculation timestamp is always recorded; the value is written,
        with an audit entry, only when it moved by more than the
        tolerance.

        Args:
            profile_id: Profile ID
            now: Evaluation time

        Returns:
            MultiplierUpdate, or None for a retired profile

        Raises:
            InvalidProfileError: Unknown profile
        """
        now = now or utc_now()
        profile = await self.profile_repo.get_for_update(profile_id)
        if profile is None:
            raise InvalidProfileError(
                "Unknown volunteer profile", profile_id=profile_id
            )
        if profile.is_retired:
            self.logger.debug(
                "Skipping multiplier for retired profile",
                extra={"profile_id": profile_id},
            )
            return None

        breakdown = self.calculator.calculate(
            await self.gather_inputs(profile, now)
        )
        old_value = Decimal(profile.activity_multiplier)
        new_value = Decimal(str(breakdown.final)).quantize(MULTIPLIER_QUANTUM)
        persisted = self.calculator.needs_update(
            float(old_value), breakdown.final
        )

        profile.last_multiplier_calculation_at = now
        if persisted:
            profile.activity_multiplier = new_value
            await self.ledger.post(
                profile.id,
                LedgerEntryType.ACTIVITY_MULTIPLIER_ADJUSTMENT,
                Decimal("0"),
                extra_data={
                    "old_multiplier": str(old_value),
                    "new_multiplier": str(new_value),
                },
                multiplier=format_multiplier(new_value),
            )
            self.logger.info(
                "Activity multiplier updated",
                extra={
                    "profile_id": profile.id,
                    "old": str(old_value),
                    "new": str(new_value),
                },
            )
        else:
            new_value = old_value

        await self.session.flush()
        return MultiplierUpdate(
            profile_id=profile.id,
            old_value=old_value,
            new_value=new_value,
            persisted=persisted,
            breakdown=breakdown,
        )

    @transaction
    async def recalculate(self, profile_id: int) -> MultiplierUpdate | None:
        """Recompute one profile and commit. Never propagates."""
        return await self.recompute(profile_id)

    async def propagation_targets(self, profile_id: int) -> list[RippleTask]:
        """
        Profiles whose multiplier depends on ``profile_id``'s activity.

        The profile itself, its upline up to the referral depth and at
        most ``propagation_max_referrals`` direct referrals.
        """
        upline = await self.profile_repo.get_upline(
            profile_id, self.config.max_referral_depth
        )
        referrals = await self.profile_repo.get_direct_referrals(
            profile_id, limit=self.config.propagation_max_referrals
        )
        return recalculation_tasks(
            [profile_id]
            + [p.id for p in upline]
            + [p.id for p in referrals]
        )
