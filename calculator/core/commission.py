"""
Referral commission calculator.

Turns a base reward amount and an ordered upline into per-level
commission lines. Posting the lines is the caller's job.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from calculator.core.models import CommissionLine, RewardsConfig, UplineLink


CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class CommissionCalculator:
    """Pure commission computation for a referral chain."""

    def __init__(self, config: RewardsConfig) -> None:
        self.config = config

    def rate_for_level(self, level: int) -> Decimal:
        """Commission rate for a chain level (0 when not configured)."""
        return self.config.commission_rates.get(level, Decimal("0"))

    def amount_for_level(
        self,
        base_amount: Decimal,
        level: int,
        multiplier: float | None = None,
    ) -> Decimal:
        """
        Commission for one level.

        Formula: round(base_amount * rate, 2), optionally scaled by the
        referrer's activity multiplier and rounded again.

        Example:
            >>> calc = CommissionCalculator(RewardsConfig())
            >>> calc.amount_for_level(Decimal("1000"), 1)
            Decimal('100.00')
        """
        if base_amount <= 0:
            return Decimal("0.00")

        amount = round_money(base_amount * self.rate_for_level(level))
        if multiplier is not None:
            amount = round_money(amount * Decimal(str(multiplier)))
        return amount

    def maximum_possible_commission(self, base_amount: Decimal) -> Decimal:
        """Total commission if every configured level were filled."""
        total = sum(
            (
                self.rate_for_level(level)
                for level in range(1, self.config.max_referral_depth + 1)
            ),
            Decimal("0"),
        )
        return round_money(base_amount * total)

    def plan(
        self, base_amount: Decimal, upline: Sequence[UplineLink]
    ) -> list[CommissionLine]:
        """
        Compute commission lines for an upline.

        Walks the upline from the direct referrer and stops at the
        configured depth. Lines below the minimum commission and lines of
        retired referrers are kept with ``payable=False`` so callers can
        report them; a retired referrer still occupies its level.

        Args:
            base_amount: Reward amount the commissions are a share of
            upline: Ancestors ordered by level, direct referrer first

        Returns:
            One line per visited level
        """
        lines: list[CommissionLine] = []
        for expected_level, link in enumerate(upline, start=1):
            if expected_level > self.config.max_referral_depth:
                break

            multiplier = None
            if self.config.scale_commission_by_multiplier and link.is_active:
                multiplier = link.activity_multiplier

            amount = self.amount_for_level(
                base_amount, expected_level, multiplier
            )
            lines.append(
                CommissionLine(
                    level=expected_level,
                    referrer_id=link.profile_id,
                    rate=self.rate_for_level(expected_level),
                    amount=amount,
                    payable=not link.is_retired
                    and amount >= self.config.minimum_commission
                    and amount > 0,
                )
            )
        return lines

    def total_payable(self, lines: Sequence[CommissionLine]) -> Decimal:
        """Sum of the payable lines."""
        return sum(
            (line.amount for line in lines if line.payable), Decimal("0")
        )
