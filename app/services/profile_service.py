"""
Volunteer profile service.

Registration, soft retirement, XP awards and read-only projections of
volunteer profiles.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LedgerEntryType
from app.models.volunteer_profile import VolunteerProfile
from app.repositories.referral_repository import ReferralRepository
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.base_service import BaseService, transaction
from app.services.events import VolunteerLeveledUp
from app.services.ledger_service import LedgerService
from app.services.referral.chain_manager import ReferralChainManager
from app.services.referral.config import (
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
)
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    ConflictError,
    InvalidProfileError,
    ValidationError,
)
from calculator import LevelingCalculator, RewardsConfig

MAX_CODE_ATTEMPTS = 10


@dataclass
class Registration:
    """Outcome of register_volunteer."""

    profile: VolunteerProfile
    created: bool
    referral_levels: int = 0


@dataclass
class ProfileSnapshot:
    """Read-only projection for dashboards."""

    profile_id: int
    level: int
    total_xp: int
    multiplier: Decimal
    progress_pct: float
    xp_to_next_level: int | None
    referral_code: str
    is_retired: bool


@dataclass
class XpAward:
    """Effect of one XP award on a profile."""

    profile_id: int
    xp: int
    total_xp: int
    old_level: int
    new_level: int
    level_bonuses: dict[int, Decimal] = field(default_factory=dict)

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level

    def level_up_event(self) -> VolunteerLeveledUp | None:
        if not self.leveled_up:
            return None
        return VolunteerLeveledUp(
            profile_id=self.profile_id,
            old_level=self.old_level,
            new_level=self.new_level,
        )


def generate_referral_code() -> str:
    """Random upper-case alphanumeric code."""
    return "".join(
        secrets.choice(REFERRAL_CODE_ALPHABET)
        for _ in range(REFERRAL_CODE_LENGTH)
    )


class ProfileService(BaseService):
    """Volunteer profile operations."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        super().__init__(session)
        self.config = config
        self.leveling = LevelingCalculator(config.level_thresholds)
        self.profile_repo = VolunteerProfileRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.chain_manager = ReferralChainManager(session, config)
        self.ledger = LedgerService(session)

    async def get_valid_profile(self, profile_id: int) -> VolunteerProfile:
        """
        Get a profile that can take part in new activity.

        Raises:
            InvalidProfileError: Unknown or retired profile
        """
        profile = await self.profile_repo.get_by_id(profile_id)
        if profile is None or profile.is_retired:
            raise InvalidProfileError(
                "Unknown or retired volunteer profile", profile_id=profile_id
            )
        return profile

    async def lock_valid_profile(self, profile_id: int) -> VolunteerProfile:
        """Same as get_valid_profile, holding the row lock."""
        profile = await self.profile_repo.get_for_update(profile_id)
        if profile is None or profile.is_retired:
            raise InvalidProfileError(
                "Unknown or retired volunteer profile", profile_id=profile_id
            )
        return profile

    async def register_volunteer(
        self,
        identity_id: int,
        organization_id: int,
        referral_code: str | None = None,
    ) -> Registration:
        """
        Create the profile of a confirmed identity.

        Idempotent: a second call for the same identity and organization
        returns the existing profile. When ``referral_code`` is given
        the referral chain is built in the same transaction.

        Args:
            identity_id: Owning identity
            organization_id: Organization the profile belongs to
            referral_code: Code of the referring volunteer

        Returns:
            Registration

        Raises:
            ValidationError: Unknown referral code or other organization
            ConflictError: Could not allocate a unique referral code
        """
        try:
            registration = await self._register(
                identity_id, organization_id, referral_code
            )
            await self.commit()
        except IntegrityError:
            await self.rollback()
            # Lost a registration race for the same identity
            existing = await self.profile_repo.get_by_identity(
                identity_id, organization_id
            )
            if existing is None:
                raise
            return Registration(profile=existing, created=False)
        except Exception:
            await self.rollback()
            raise

        if registration.created:
            self.logger.info(
                "Volunteer registered",
                extra={
                    "profile_id": registration.profile.id,
                    "identity_id": identity_id,
                    "organization_id": organization_id,
                    "referral_levels": registration.referral_levels,
                },
            )
        return registration

    async def _register(
        self,
        identity_id: int,
        organization_id: int,
        referral_code: str | None,
    ) -> Registration:
        existing = await self.profile_repo.get_by_identity(
            identity_id, organization_id
        )
        if existing is not None:
            return Registration(profile=existing, created=False)

        referrer = None
        if referral_code:
            referrer = await self.profile_repo.get_by_referral_code(
                referral_code
            )
            if referrer is None or referrer.is_retired:
                raise ValidationError(
                    "Unknown referral code", referral_code=referral_code
                )
            if referrer.organization_id != organization_id:
                raise ValidationError(
                    "Referral code belongs to another organization",
                    referral_code=referral_code,
                )

        profile = await self.profile_repo.create(
            identity_id=identity_id,
            organization_id=organization_id,
            level=self.leveling.level_for_xp(0),
            total_xp=0,
            activity_multiplier=Decimal(str(self.config.base_multiplier)),
            referral_code=await self._unique_referral_code(),
        )

        edges = []
        if referrer is not None:
            edges = await self.chain_manager.build_chain(profile, referrer)
            await self.session.flush()

        return Registration(
            profile=profile, created=True, referral_levels=len(edges)
        )

    async def _unique_referral_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_referral_code()
            if not await self.profile_repo.exists(referral_code=code):
                return code
        raise ConflictError("Could not allocate a unique referral code")

    @transaction
    async def retire_profile(self, profile_id: int) -> VolunteerProfile:
        """
        Soft-retire a profile. Its ledger and chain edges are kept, the
        edges are marked inactive.

        Raises:
            InvalidProfileError: Unknown profile
        """
        profile = await self.profile_repo.get_for_update(profile_id)
        if profile is None:
            raise InvalidProfileError(
                "Unknown volunteer profile", profile_id=profile_id
            )
        if profile.is_retired:
            return profile

        profile.retired_at = utc_now()
        edges = await self.referral_repo.deactivate_for_profile(profile_id)
        self.logger.info(
            "Volunteer retired",
            extra={"profile_id": profile_id, "edges_deactivated": edges},
        )
        return profile

    async def award_xp(
        self,
        profile: VolunteerProfile,
        xp: int,
        *,
        task_title: str,
        assignment_id: int | None = None,
        now: datetime | None = None,
    ) -> XpAward:
        """
        Add XP to a locked profile. Does not commit.

        Posts the task_completion entry, recomputes the level from the
        new total and posts one level_bonus entry per level reached.

        Args:
            profile: Profile locked by the caller
            xp: XP to add, non-negative
            task_title: Used in the ledger description
            assignment_id: Source assignment, stored with the entry
            now: Activity time

        Returns:
            XpAward
        """
        if xp < 0:
            raise ValidationError("XP award cannot be negative", xp=xp)

        old_level = profile.level
        profile.total_xp = profile.total_xp + xp
        profile.level = self.leveling.level_for_xp(profile.total_xp)
        profile.last_activity_at = now or utc_now()

        await self.ledger.post(
            profile.id,
            LedgerEntryType.TASK_COMPLETION,
            Decimal(xp),
            xp_amount=xp,
            extra_data=(
                {"assignment_id": assignment_id}
                if assignment_id is not None
                else None
            ),
            task_title=task_title,
        )

        award = XpAward(
            profile_id=profile.id,
            xp=xp,
            total_xp=profile.total_xp,
            old_level=old_level,
            new_level=profile.level,
        )
        for level in self.leveling.levels_gained(old_level, profile.level):
            bonus = self.config.level_rewards.get(level)
            if not bonus:
                continue
            await self.ledger.post(
                profile.id,
                LedgerEntryType.LEVEL_BONUS,
                Decimal(bonus),
                extra_data={"level": level},
                level=level,
            )
            award.level_bonuses[level] = Decimal(bonus)

        if award.leveled_up:
            self.logger.info(
                "Volunteer leveled up",
                extra={
                    "profile_id": profile.id,
                    "old_level": old_level,
                    "new_level": profile.level,
                },
            )

        await self.session.flush()
        return award

    async def get_profile_snapshot(self, profile_id: int) -> ProfileSnapshot:
        """
        Read-only dashboard projection.

        Raises:
            InvalidProfileError: Unknown profile
        """
        profile = await self.profile_repo.get_by_id(profile_id)
        if profile is None:
            raise InvalidProfileError(
                "Unknown volunteer profile", profile_id=profile_id
            )
        progress = self.leveling.progress(profile.total_xp)
        return ProfileSnapshot(
            profile_id=profile.id,
            level=profile.level,
            total_xp=profile.total_xp,
            multiplier=Decimal(profile.activity_multiplier),
            progress_pct=self.leveling.progress_percentage(
                profile.total_xp, profile.level
            ),
            xp_to_next_level=progress.xp_to_next_level,
            referral_code=profile.referral_code,
            is_retired=profile.is_retired,
        )
