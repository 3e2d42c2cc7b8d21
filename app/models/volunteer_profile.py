"""
VolunteerProfile model.

One gamification profile per participant per organization.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MultiplierType, UTCDateTime


class VolunteerProfile(Base):
    """
    VolunteerProfile entity.

    Attributes:
        id: Primary key
        identity_id: Owning identity (user) reference
        organization_id: Organization the profile belongs to
        level: Current level, derived from total_xp
        total_xp: Cumulative XP, never decreases
        activity_multiplier: Current multiplier in [1.0, max]
        referral_code: Unique code, immutable once issued
        upline_id: Direct referrer (single link, never cyclic)
        last_activity_at: Last XP-earning or referral activity
        last_multiplier_calculation_at: Last multiplier recomputation
        retired_at: Soft-retire timestamp (profiles are never deleted)
    """

    __tablename__ = "volunteer_profiles"
    __table_args__ = (
        UniqueConstraint(
            "identity_id",
            "organization_id",
            name="uq_volunteer_profiles_identity_org",
        ),
        CheckConstraint("level >= 1", name="check_profile_level_positive"),
        CheckConstraint(
            "total_xp >= 0", name="check_profile_total_xp_non_negative"
        ),
        CheckConstraint(
            "activity_multiplier >= 1.0",
            name="check_profile_multiplier_min",
        ),
        CheckConstraint(
            "upline_id IS NULL OR upline_id <> id",
            name="check_profile_not_own_upline",
        ),
        Index("ix_volunteer_profiles_level_xp", "level", "total_xp"),
        Index("ix_volunteer_profiles_last_activity", "last_activity_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    identity_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )

    # Progression
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_xp: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    activity_multiplier: Mapped[Decimal] = mapped_column(
        MultiplierType, nullable=False, default=Decimal("1.0")
    )

    # Referral
    referral_code: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )
    upline_id: Mapped[int | None] = mapped_column(
        ForeignKey("volunteer_profiles.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Activity tracking
    last_activity_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    last_multiplier_calculation_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Soft retire
    retired_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<VolunteerProfile(id={self.id}, level={self.level}, "
            f"total_xp={self.total_xp}, "
            f"multiplier={self.activity_multiplier})>"
        )

    @property
    def is_retired(self) -> bool:
        """Check if profile is soft-retired."""
        return self.retired_at is not None

    def is_active(self, now: datetime, window_days: int = 30) -> bool:
        """Check if profile had activity within the window."""
        if self.last_activity_at is None:
            return False
        return self.last_activity_at > now - timedelta(days=window_days)
