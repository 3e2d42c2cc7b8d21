"""
Shared fixtures for unit tests.

This module provides calculator instances built from the default
configuration and a fixed evaluation time.
"""

from datetime import UTC, datetime

import pytest

from calculator import (
    ActivityMultiplierCalculator,
    CommissionCalculator,
    LevelingCalculator,
    RewardsConfig,
)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def leveling(rewards_config: RewardsConfig) -> LevelingCalculator:
    """Leveling calculator with thresholds 100, 300, 600, 1000, 2000."""
    return LevelingCalculator(rewards_config.level_thresholds)


@pytest.fixture
def multiplier_calc(
    rewards_config: RewardsConfig,
) -> ActivityMultiplierCalculator:
    """Activity multiplier calculator with default bounds."""
    return ActivityMultiplierCalculator(rewards_config)


@pytest.fixture
def commission_calc(rewards_config: RewardsConfig) -> CommissionCalculator:
    """Commission calculator with default rates."""
    return CommissionCalculator(rewards_config)
