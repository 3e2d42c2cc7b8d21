"""Pydantic models for the rewards calculators."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calculator.constants import (
    ACTIVE_REFERRAL_WINDOW_DAYS,
    ACTIVITY_WINDOW_DAYS,
    BASE_MULTIPLIER,
    DEFAULT_COMMISSION_RATES,
    DEFAULT_LEVEL_REWARDS,
    DEFAULT_LEVEL_THRESHOLDS,
    DEFAULT_PROPAGATION_MAX_REFERRALS,
    DEFAULT_TASK_DEADLINE_DAYS,
    INACTIVITY_GRACE_DAYS,
    MAX_MULTIPLIER,
    MAX_REFERRAL_DEPTH,
    MINIMUM_COMMISSION,
    MULTIPLIER_TOLERANCE,
    WEEKLY_DECAY_FACTOR,
)


class RewardsConfig(BaseModel):
    """Immutable configuration shared by the calculators and services.

    Built once from application settings and passed explicitly into every
    calculator, so the calculators stay pure.
    """

    model_config = ConfigDict(frozen=True)

    level_thresholds: tuple[int, ...] = Field(
        default=DEFAULT_LEVEL_THRESHOLDS,
        description="Cumulative XP needed to reach level i+2",
    )
    level_rewards: dict[int, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_LEVEL_REWARDS),
        description="Tokens posted as level_bonus when a level is reached",
    )
    commission_rates: dict[int, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_COMMISSION_RATES),
        description="Commission rate per referral level",
    )
    minimum_commission: Decimal = Field(default=MINIMUM_COMMISSION, ge=0)
    max_referral_depth: int = Field(default=MAX_REFERRAL_DEPTH, ge=1, le=5)
    scale_commission_by_multiplier: bool = False

    base_multiplier: float = Field(default=BASE_MULTIPLIER, gt=0)
    max_multiplier: float = Field(default=MAX_MULTIPLIER, gt=0)
    multiplier_tolerance: float = Field(default=MULTIPLIER_TOLERANCE, ge=0)
    inactivity_grace_days: int = Field(default=INACTIVITY_GRACE_DAYS, ge=0)
    weekly_decay_factor: float = Field(default=WEEKLY_DECAY_FACTOR, gt=0, le=1)
    activity_window_days: int = Field(default=ACTIVITY_WINDOW_DAYS, gt=0)
    active_referral_window_days: int = Field(
        default=ACTIVE_REFERRAL_WINDOW_DAYS, gt=0
    )

    task_deadline_days: int = Field(default=DEFAULT_TASK_DEADLINE_DAYS, gt=0)
    propagation_max_referrals: int = Field(
        default=DEFAULT_PROPAGATION_MAX_REFERRALS, ge=0
    )

    @field_validator("commission_rates")
    @classmethod
    def validate_commission_rates(
        cls, v: dict[int, Decimal]
    ) -> dict[int, Decimal]:
        """Rates must be keyed by level 1..5 and lie in (0, 1)."""
        for level, rate in v.items():
            if not 1 <= level <= MAX_REFERRAL_DEPTH:
                raise ValueError(f"Commission level out of range: {level}")
            if not Decimal("0") < rate < Decimal("1"):
                raise ValueError(
                    f"Commission rate for level {level} must be in (0, 1)"
                )
        return v


class LevelProgress(BaseModel):
    """Level position of a given XP total."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1)
    total_xp: int = Field(..., ge=0)
    xp_to_next_level: int | None = Field(
        default=None, description="None when already at max level"
    )
    progress_percentage: float = Field(..., ge=0, le=100)
    is_max_level: bool = False


class MultiplierInputs(BaseModel):
    """Everything the activity multiplier depends on."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1)
    approved_tasks_last_30d: int = Field(default=0, ge=0)
    active_referrals: int = Field(default=0, ge=0)
    last_activity_at: datetime | None = None
    now: datetime


class MultiplierBreakdown(BaseModel):
    """Result of one multiplier recomputation, with its components."""

    model_config = ConfigDict(frozen=True)

    base: float
    level_bonus: float
    activity_bonus: float
    referral_bonus: float
    subtotal: float
    days_inactive: float = 0.0
    decay_factor: float = 1.0
    after_decay: float
    final: float


class UplineLink(BaseModel):
    """One ancestor in a referral chain, ordered from the direct referrer."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1, le=MAX_REFERRAL_DEPTH)
    profile_id: int
    activity_multiplier: float = BASE_MULTIPLIER
    is_active: bool = False
    is_retired: bool = False


class CommissionLine(BaseModel):
    """Commission computed for one level of the chain."""

    model_config = ConfigDict(frozen=True)

    level: int
    referrer_id: int
    rate: Decimal
    amount: Decimal
    payable: bool = Field(
        ..., description="False when below the minimum commission or retired"
    )
