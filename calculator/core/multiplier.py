"""
Activity multiplier calculator.

Recomputes a volunteer's multiplier from scratch:

    base + level bonus + activity bonus + referral bonus,
    then inactivity decay (floored at base + level bonus),
    then capped at the maximum multiplier.
"""

from datetime import datetime

from calculator.constants import (
    LEVEL_BONUS_PER_LEVEL,
    MAX_BONUS_REFERRALS,
    REFERRAL_BONUS_PER_REFERRAL,
    TASKS_PER_ACTIVITY_GROUP,
)
from calculator.core.models import (
    MultiplierBreakdown,
    MultiplierInputs,
    RewardsConfig,
)


SECONDS_PER_DAY = 86400


class ActivityMultiplierCalculator:
    """Pure, deterministic activity multiplier computation."""

    def __init__(self, config: RewardsConfig) -> None:
        self.config = config

    def level_bonus(self, level: int) -> float:
        """+0.1 per level above 1."""
        return LEVEL_BONUS_PER_LEVEL * max(level - 1, 0)

    def activity_bonus(self, approved_tasks: int) -> float:
        """
        Bonus per group of 10 approved tasks, with diminishing returns.

        Example:
            >>> ActivityMultiplierCalculator(RewardsConfig()).activity_bonus(25)
            0.1
        """
        groups = max(approved_tasks, 0) // TASKS_PER_ACTIVITY_GROUP
        if groups == 0:
            return 0.0
        if groups <= 2:
            return 0.05 * groups
        if groups <= 5:
            return 0.10 + 0.03 * (groups - 2)
        return 0.19 + 0.01 * (groups - 5)

    def referral_bonus(self, active_referrals: int) -> float:
        """+0.02 per active referral, counting at most 10."""
        return REFERRAL_BONUS_PER_REFERRAL * min(
            max(active_referrals, 0), MAX_BONUS_REFERRALS
        )

    def days_inactive(
        self, last_activity_at: datetime | None, now: datetime
    ) -> float:
        """Fractional days since last activity (0 when unknown)."""
        if last_activity_at is None:
            return 0.0
        elapsed = (now - last_activity_at).total_seconds() / SECONDS_PER_DAY
        return max(elapsed, 0.0)

    def apply_decay(
        self, value: float, floor: float, days_inactive: float
    ) -> tuple[float, float]:
        """
        Apply inactivity decay.

        Returns:
            Tuple of (decayed value, decay factor)
        """
        if days_inactive <= self.config.inactivity_grace_days:
            return value, 1.0

        factor = self.config.weekly_decay_factor ** (days_inactive / 7.0)
        return max(value * factor, floor), factor

    def calculate(self, inputs: MultiplierInputs) -> MultiplierBreakdown:
        """
        Recompute the multiplier for the given inputs.

        Args:
            inputs: Level, 30-day approvals, active referrals, last activity

        Returns:
            Breakdown whose ``final`` lies in [base, max_multiplier]
        """
        base = self.config.base_multiplier
        level_bonus = self.level_bonus(inputs.level)
        activity_bonus = self.activity_bonus(inputs.approved_tasks_last_30d)
        referral_bonus = self.referral_bonus(inputs.active_referrals)
        subtotal = base + level_bonus + activity_bonus + referral_bonus

        days_inactive = self.days_inactive(inputs.last_activity_at, inputs.now)
        after_decay, decay_factor = self.apply_decay(
            subtotal, base + level_bonus, days_inactive
        )

        final = min(after_decay, self.config.max_multiplier)
        final = max(final, min(base, self.config.max_multiplier))

        return MultiplierBreakdown(
            base=base,
            level_bonus=level_bonus,
            activity_bonus=activity_bonus,
            referral_bonus=referral_bonus,
            subtotal=subtotal,
            days_inactive=days_inactive,
            decay_factor=decay_factor,
            after_decay=after_decay,
            final=round(final, 4),
        )

    def needs_update(self, stored: float, new_value: float) -> bool:
        """True when the change exceeds the persistence tolerance."""
        return abs(float(stored) - new_value) > self.config.multiplier_tolerance
