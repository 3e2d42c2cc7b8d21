"""
Default constants for the rewards calculators.

Values mirror the organization-level defaults of the volunteer program.
They are only defaults: every calculator receives its configuration
explicitly through ``RewardsConfig``.
"""

from decimal import Decimal

# Cumulative XP needed to reach level 2, 3, 4, 5 and 6
DEFAULT_LEVEL_THRESHOLDS: tuple[int, ...] = (100, 300, 600, 1000, 2000)

# Commission rate per referral level (1 = direct referrer)
DEFAULT_COMMISSION_RATES: dict[int, Decimal] = {
    1: Decimal("0.10"),  # 10%
    2: Decimal("0.08"),  # 8%
    3: Decimal("0.06"),  # 6%
    4: Decimal("0.04"),  # 4%
    5: Decimal("0.02"),  # 2%
}

# Minimum 1 cent to avoid micro-transactions
MINIMUM_COMMISSION = Decimal("0.01")

# Maximum depth of the referral chain
MAX_REFERRAL_DEPTH = 5

# Activity multiplier bounds
BASE_MULTIPLIER = 1.0
MAX_MULTIPLIER = 3.0
MULTIPLIER_TOLERANCE = 0.01

# Multiplier components
LEVEL_BONUS_PER_LEVEL = 0.1
REFERRAL_BONUS_PER_REFERRAL = 0.02
MAX_BONUS_REFERRALS = 10
TASKS_PER_ACTIVITY_GROUP = 10

# Inactivity decay: 5% per week once inactive for more than a week
INACTIVITY_GRACE_DAYS = 7
WEEKLY_DECAY_FACTOR = 0.95

# Rolling windows
ACTIVITY_WINDOW_DAYS = 30
ACTIVE_REFERRAL_WINDOW_DAYS = 30

# Tokens granted when a level is reached
DEFAULT_LEVEL_REWARDS: dict[int, Decimal] = {
    2: Decimal("50"),
    3: Decimal("100"),
    4: Decimal("200"),
    5: Decimal("500"),
}

DEFAULT_TASK_DEADLINE_DAYS = 7
DEFAULT_PROPAGATION_MAX_REFERRALS = 50
