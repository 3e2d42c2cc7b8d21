"""
Referral model.

Represents one edge of the upline chain, materialized per level:
the direct referrer gets level 1, each of its ancestors levels 2..5.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import RateType, UTCDateTime
from calculator import round_money


class Referral(Base):
    """Referral model - multi-level referral relationships."""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint(
            "referrer_id", "referred_id", name="uq_referrals_pair"
        ),
        CheckConstraint(
            "referrer_id <> referred_id", name="check_referral_not_self"
        ),
        CheckConstraint(
            "level >= 1 AND level <= 5", name="check_referral_level_range"
        ),
        CheckConstraint(
            "commission_rate > 0 AND commission_rate < 1",
            name="check_referral_rate_range",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Referrer (ancestor who earns commissions)
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("volunteer_profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Referred volunteer
    referred_id: Mapped[int] = mapped_column(
        ForeignKey("volunteer_profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Referral level (1 = direct, 5 = deepest)
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    commission_rate: Mapped[Decimal] = mapped_column(
        RateType, nullable=False
    )

    # The only mutable attribute
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Referral(referrer={self.referrer_id}, "
            f"referred={self.referred_id}, level={self.level})>"
        )

    def calculate_commission(self, amount: Decimal) -> Decimal:
        """Commission share of ``amount`` at this edge's rate."""
        return round_money(amount * self.commission_rate)
