"""Core calculation logic."""

from calculator.core.commission import CommissionCalculator, round_money
from calculator.core.leveling import LevelingCalculator, normalize_thresholds
from calculator.core.models import (
    CommissionLine,
    LevelProgress,
    MultiplierBreakdown,
    MultiplierInputs,
    RewardsConfig,
    UplineLink,
)
from calculator.core.multiplier import ActivityMultiplierCalculator

__all__ = [
    "ActivityMultiplierCalculator",
    "CommissionCalculator",
    "CommissionLine",
    "LevelProgress",
    "LevelingCalculator",
    "MultiplierBreakdown",
    "MultiplierInputs",
    "RewardsConfig",
    "UplineLink",
    "normalize_thresholds",
    "round_money",
]
