"""
Leveling calculator.

Maps cumulative XP to a level through an ascending threshold table,
where ``thresholds[i]`` is the XP needed to reach level ``i + 2``.
Pure logic: no database, no settings.
"""

from collections.abc import Sequence

from calculator.core.models import LevelProgress


def normalize_thresholds(thresholds: Sequence[int] | None) -> tuple[int, ...]:
    """
    Keep the usable part of a configured threshold table.

    Non-positive entries are discarded and the table is cut at the first
    value that does not strictly increase, so a misconfigured table degrades
    to fewer levels instead of raising.

    Example:
        >>> normalize_thresholds([100, 0, 300, 250, 600])
        (100, 300)
    """
    if not thresholds:
        return ()

    result: list[int] = []
    for raw in thresholds:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            break
        if value <= 0:
            continue
        if result and value <= result[-1]:
            break
        result.append(value)
    return tuple(result)


class LevelingCalculator:
    """
    XP to level conversion.

    Every method is deterministic in its arguments: re-running on the
    same XP always yields the same level.
    """

    def __init__(self, thresholds: Sequence[int] | None) -> None:
        self.thresholds = normalize_thresholds(thresholds)

    @property
    def max_level(self) -> int:
        """Highest reachable level."""
        return len(self.thresholds) + 1

    def level_for_xp(self, total_xp: int) -> int:
        """
        Get level for a cumulative XP total.

        Example:
            >>> LevelingCalculator([100, 300]).level_for_xp(150)
            2
        """
        level = 1
        for index, threshold in enumerate(self.thresholds):
            if total_xp >= threshold:
                level = index + 2
            else:
                break
        return level

    def xp_needed_for_level(self, target_level: int) -> int:
        """Cumulative XP needed to reach ``target_level``."""
        if target_level <= 1 or not self.thresholds:
            return 0
        if target_level > self.max_level:
            return self.thresholds[-1]
        return self.thresholds[target_level - 2]

    def xp_to_next_level(self, total_xp: int, level: int) -> int | None:
        """
        XP still missing for the next level.

        Returns:
            Missing XP, or None when already at max level
        """
        if level >= self.max_level:
            return None
        level = max(level, 1)
        return self.thresholds[level - 1] - total_xp

    def progress_percentage(self, total_xp: int, level: int) -> float:
        """
        Progress through the current level, clamped to [0, 100].

        Returns:
            100.0 at max level or for an empty table
        """
        if level >= self.max_level:
            return 100.0

        level = max(level, 1)
        current_threshold = self.thresholds[level - 2] if level > 1 else 0
        next_threshold = self.thresholds[level - 1]

        if next_threshold <= current_threshold:
            return 100.0

        progress = (total_xp - current_threshold) / (
            next_threshold - current_threshold
        ) * 100
        return round(min(max(progress, 0.0), 100.0), 2)

    def levels_gained(self, old_level: int, new_level: int) -> list[int]:
        """Levels reached when moving from ``old_level`` to ``new_level``."""
        return list(range(old_level + 1, new_level + 1))

    def progress(self, total_xp: int) -> LevelProgress:
        """Full level position for an XP total."""
        total_xp = max(total_xp, 0)
        level = self.level_for_xp(total_xp)
        return LevelProgress(
            level=level,
            total_xp=total_xp,
            xp_to_next_level=self.xp_to_next_level(total_xp, level),
            progress_percentage=self.progress_percentage(total_xp, level),
            is_max_level=level >= self.max_level,
        )
