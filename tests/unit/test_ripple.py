"""Unit tests for ripple tasks and small engine helpers."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from app.models.enums import LeaderboardPeriod
from app.services.events import CollectingEventPublisher, TaskApproved
from app.services.leaderboard_service import percentile, period_start
from app.services.ripple import (
    CollectingDispatcher,
    RippleKind,
    RippleTask,
    recalculation_tasks,
)
from app.services.task.assignment_service import (
    commission_reference,
    compute_xp_award,
)


class TestRippleTasks:
    """Tests for ripple task construction."""

    def test_recalculate_task(self):
        """Recalculation carries only the profile."""
        task = RippleTask.recalculate(7)
        assert task.kind == RippleKind.RECALCULATE_MULTIPLIER
        assert task.profile_id == 7
        assert task.base_amount is None

    def test_distribute_task(self):
        """Distribution carries amount and reference."""
        task = RippleTask.distribute(7, Decimal("50"), "task_assignment:3")
        assert task.kind == RippleKind.DISTRIBUTE_COMMISSION
        assert task.base_amount == Decimal("50")
        assert task.reference == "task_assignment:3"

    def test_recalculation_tasks_are_distinct(self):
        """Each profile appears once, in first-seen order."""
        tasks = recalculation_tasks([3, 1, 3, 2, 1])
        assert [t.profile_id for t in tasks] == [3, 1, 2]

    def test_collecting_dispatcher_drain(self):
        """Drain hands out tasks once."""
        dispatcher = CollectingDispatcher()
        dispatcher.dispatch([RippleTask.recalculate(1)])
        dispatcher.dispatch([RippleTask.recalculate(2)])

        assert [t.profile_id for t in dispatcher.drain()] == [1, 2]
        assert dispatcher.drain() == []


class TestXpAward:
    """Tests for the approval-time XP formula."""

    @pytest.mark.parametrize(
        "reward,multiplier,expected",
        [
            (50, Decimal("1.0"), 50),
            (50, Decimal("1.25"), 63),
            (10, Decimal("1.05"), 11),
            (10, Decimal("1.04"), 10),
            (100, 3.0, 300),
        ],
    )
    def test_compute_xp_award(self, reward, multiplier, expected):
        """Reward times multiplier, half rounded up."""
        assert compute_xp_award(reward, multiplier) == expected

    def test_commission_reference(self):
        """Approvals are keyed by assignment."""
        assert commission_reference(12) == "task_assignment:12"


class TestLeaderboardHelpers:
    """Tests for rank math."""

    def test_percentile(self):
        """Top rank is the 100th percentile."""
        assert percentile(1, 4) == 100.0
        assert percentile(4, 4) == 25.0
        assert percentile(2, 3) == 66.67

    def test_percentile_of_empty_board(self):
        """An empty board reports 100."""
        assert percentile(1, 0) == 100.0

    def test_period_start(self):
        """Periods are rolling windows ending now."""
        now = datetime(2026, 10, 19, tzinfo=UTC)
        assert period_start(LeaderboardPeriod.DAILY, now) == now - timedelta(
            days=1
        )
        assert period_start(LeaderboardPeriod.WEEKLY, now) == now - timedelta(
            weeks=1
        )
        assert period_start(LeaderboardPeriod.MONTHLY, now) == now - timedelta(
            days=30
        )
        assert period_start(LeaderboardPeriod.ALL_TIME, now) is None


class TestEventPublisher:
    """Tests for the in-memory publisher."""

    @pytest.mark.asyncio
    async def test_collects_events_by_type(self):
        """Published facts can be filtered by type."""
        publisher = CollectingEventPublisher()
        event = TaskApproved(assignment_id=1, profile_id=2, xp_awarded=50)

        await publisher.publish(event)

        assert publisher.of_type(TaskApproved) == [event]
