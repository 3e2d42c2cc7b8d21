"""
Unit tests for the leveling calculator.

Tests cover:
- XP to level mapping and its monotonicity
- XP to next level and progress percentage
- Misconfigured threshold tables
"""

import pytest

from calculator import LevelingCalculator, normalize_thresholds


class TestLevelForXp:
    """Test XP to level mapping."""

    @pytest.mark.parametrize(
        "xp,expected",
        [
            (0, 1),
            (50, 1),
            (99, 1),
            (100, 2),
            (299, 2),
            (300, 3),
            (600, 4),
            (1000, 5),
            (1999, 5),
            (2000, 6),
            (1_000_000, 6),
        ],
    )
    def test_level_boundaries(self, leveling, xp, expected):
        """Level changes exactly at each threshold."""
        assert leveling.level_for_xp(xp) == expected

    def test_monotonic_in_xp(self, leveling):
        """More XP never means a lower level."""
        levels = [leveling.level_for_xp(xp) for xp in range(0, 2500, 7)]
        assert levels == sorted(levels)

    def test_idempotent(self, leveling):
        """Re-running on the same XP yields the same level."""
        assert {leveling.level_for_xp(450) for _ in range(5)} == {3}

    def test_two_tasks_of_fifty_reach_level_two(self, leveling):
        """50 XP stays at level 1, the second 50 XP reaches level 2."""
        assert leveling.level_for_xp(50) == 1
        assert leveling.level_for_xp(100) == 2


class TestXpToNextLevel:
    """Test remaining XP computation."""

    def test_xp_to_next_level(self, leveling):
        """Distance to the next threshold."""
        assert leveling.xp_to_next_level(150, 2) == 150

    def test_max_level_returns_none(self, leveling):
        """No next level at the top of the table."""
        assert leveling.xp_to_next_level(5000, 6) is None

    def test_xp_needed_for_level(self, leveling):
        """Cumulative XP per level."""
        assert leveling.xp_needed_for_level(1) == 0
        assert leveling.xp_needed_for_level(2) == 100
        assert leveling.xp_needed_for_level(6) == 2000


class TestProgressPercentage:
    """Test progress within a level."""

    def test_level_one_progress(self, leveling):
        """Progress from 0 to the first threshold."""
        assert leveling.progress_percentage(50, 1) == 50.0

    def test_mid_level_progress(self, leveling):
        """Progress between two thresholds."""
        # (200 - 100) / (300 - 100) * 100
        assert leveling.progress_percentage(200, 2) == 50.0

    def test_max_level_is_complete(self, leveling):
        """Max level reports 100%."""
        assert leveling.progress_percentage(2500, 6) == 100.0

    def test_progress_clamped(self, leveling):
        """A stale level never yields progress outside [0, 100]."""
        assert leveling.progress_percentage(50, 2) == 0.0
        assert leveling.progress_percentage(900, 2) == 100.0

    def test_progress_model(self, leveling):
        """Full progress projection."""
        progress = leveling.progress(350)
        assert progress.level == 3
        assert progress.xp_to_next_level == 250
        assert progress.progress_percentage == pytest.approx(16.67)
        assert progress.is_max_level is False


class TestMisconfiguredThresholds:
    """Test degraded threshold tables."""

    @pytest.mark.parametrize("thresholds", [None, [], ()])
    def test_empty_table_degrades_to_level_one(self, thresholds):
        """Empty table: level 1 and 100% progress, never an error."""
        calc = LevelingCalculator(thresholds)
        assert calc.level_for_xp(12345) == 1
        assert calc.progress_percentage(12345, 1) == 100.0
        assert calc.xp_to_next_level(12345, 1) is None

    def test_non_ascending_table_is_cut(self):
        """Table is truncated at the first non-increasing value."""
        assert normalize_thresholds([100, 0, 300, 250, 600]) == (100, 300)

    def test_garbage_entry_stops_table(self):
        """An unparsable entry ends the usable table."""
        assert normalize_thresholds([100, "abc", 300]) == (100,)

    def test_levels_gained(self, leveling):
        """Every level crossed by a single award is reported."""
        assert leveling.levels_gained(1, 4) == [2, 3, 4]
        assert leveling.levels_gained(3, 3) == []
