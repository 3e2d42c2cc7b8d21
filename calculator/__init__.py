"""
Volunteer rewards calculators.

Standalone package for XP leveling, activity multipliers and referral
commissions. Has no database or application dependencies.

Example:
    >>> from decimal import Decimal
    >>> from calculator import CommissionCalculator, RewardsConfig
    >>>
    >>> calc = CommissionCalculator(RewardsConfig())
    >>> calc.amount_for_level(Decimal("1000"), 2)
    Decimal('80.00')
"""

from calculator.constants import (
    DEFAULT_COMMISSION_RATES,
    DEFAULT_LEVEL_REWARDS,
    DEFAULT_LEVEL_THRESHOLDS,
    MAX_MULTIPLIER,
    MAX_REFERRAL_DEPTH,
    MINIMUM_COMMISSION,
)
from calculator.core import (
    ActivityMultiplierCalculator,
    CommissionCalculator,
    CommissionLine,
    LevelingCalculator,
    LevelProgress,
    MultiplierBreakdown,
    MultiplierInputs,
    RewardsConfig,
    UplineLink,
    normalize_thresholds,
    round_money,
)
from calculator.utils import (
    format_multiplier,
    format_percentage,
)


__version__ = "1.0.0"
__all__ = [
    # Core
    "LevelingCalculator",
    "ActivityMultiplierCalculator",
    "CommissionCalculator",
    "normalize_thresholds",
    "round_money",
    # Models
    "RewardsConfig",
    "LevelProgress",
    "MultiplierInputs",
    "MultiplierBreakdown",
    "UplineLink",
    "CommissionLine",
    # Constants
    "DEFAULT_LEVEL_THRESHOLDS",
    "DEFAULT_LEVEL_REWARDS",
    "DEFAULT_COMMISSION_RATES",
    "MINIMUM_COMMISSION",
    "MAX_MULTIPLIER",
    "MAX_REFERRAL_DEPTH",
    # Formatters
    "format_multiplier",
    "format_percentage",
]
