"""Integration tests for the dramatiq jobs and the ripple dispatcher."""

from decimal import Decimal

import dramatiq
import pytest
from dramatiq.brokers.stub import StubBroker

from app.config.settings import settings
from app.services.events import CollectingEventPublisher, CommissionEarned
from app.services.ripple import RippleKind, RippleTask
from jobs.broker import broker
from jobs.dispatcher import DramatiqDispatcher, build_engine
from jobs.tasks.commission_distribution import distribute_commission_async
from jobs.tasks.multiplier_recalculation import (
    recalculate_all_multipliers_async,
    recalculate_multiplier_async,
)


@pytest.fixture
def stub_broker():
    """The in-memory broker, emptied around each test."""
    broker.flush_all()
    yield broker
    broker.flush_all()


class TestBroker:
    """Tests for broker setup."""

    def test_test_environment_uses_stub_broker(self):
        """No Redis is needed under test."""
        assert isinstance(broker, StubBroker)
        assert dramatiq.get_broker() is broker

    def test_actors_registered(self):
        """Every ripple actor is declared on the broker."""
        actors = broker.get_declared_actors()
        assert {
            "recalculate_multiplier",
            "recalculate_all_multipliers",
            "distribute_commission",
        } <= actors


class TestDramatiqDispatcher:
    """Tests for enqueueing ripple tasks."""

    def test_dispatch_enqueues_messages(self, stub_broker):
        """Each task becomes one message for its actor."""
        DramatiqDispatcher().dispatch(
            [
                RippleTask.recalculate(7),
                RippleTask.distribute(7, Decimal("50"), "task_assignment:3"),
            ]
        )

        queue = stub_broker.queues["default"]
        messages = [
            dramatiq.Message.decode(queue.get_nowait())
            for _ in range(queue.qsize())
        ]
        assert [(m.actor_name, list(m.args)) for m in messages] == [
            ("recalculate_multiplier", [7]),
            ("distribute_commission", [7, "50", "task_assignment:3"]),
        ]

    def test_build_engine(self):
        """The production engine dispatches through dramatiq."""
        engine = build_engine()

        assert isinstance(engine.dispatcher, DramatiqDispatcher)
        assert engine.webhook_secret == settings.webhook_secret


class TestMultiplierJobs:
    """Tests for the multiplier actors' async bodies."""

    @pytest.mark.asyncio
    async def test_recalculate_one(
        self, rewards_engine, update_profile, session_maker, rewards_config
    ):
        """A single recalculation persists a changed value."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id
        await update_profile(profile_id, level=3, total_xp=300)

        update = await recalculate_multiplier_async(
            profile_id, session_maker=session_maker, config=rewards_config
        )

        assert update.persisted is True
        assert update.new_value == Decimal("1.2")

    @pytest.mark.asyncio
    async def test_recalculate_all(
        self, rewards_engine, update_profile, session_maker, rewards_config
    ):
        """The batch visits every active profile of the organization."""
        ids = []
        for identity_id in (1, 2, 3):
            registration = await rewards_engine.register_volunteer(
                identity_id, 1
            )
            ids.append(registration.profile.id)
        await rewards_engine.register_volunteer(4, 2)
        await update_profile(ids[0], level=3, total_xp=300)
        await rewards_engine.retire_profile(ids[2])

        result = await recalculate_all_multipliers_async(
            1, session_maker=session_maker, config=rewards_config
        )

        assert result == {"processed": 2, "updated": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_recalculate_all_organizations(
        self, rewards_engine, session_maker, rewards_config
    ):
        """Without an organization every profile is visited."""
        await rewards_engine.register_volunteer(1, 1)
        await rewards_engine.register_volunteer(2, 2)

        result = await recalculate_all_multipliers_async(
            session_maker=session_maker, config=rewards_config
        )

        assert result["processed"] == 2


class TestCommissionJob:
    """Tests for the commission actor's async body."""

    @pytest.mark.asyncio
    async def test_distribution_and_follow_up(
        self, make_chain, rewards_engine, session_maker, rewards_config
    ):
        """Paid referrers are returned for recalculation."""
        ids = await make_chain(3)
        publisher = CollectingEventPublisher()

        follow_up = await distribute_commission_async(
            ids[2],
            Decimal("50"),
            "task_assignment:1",
            session_maker=session_maker,
            config=rewards_config,
            publisher=publisher,
        )

        assert [t.kind for t in follow_up] == [
            RippleKind.RECALCULATE_MULTIPLIER,
            RippleKind.RECALCULATE_MULTIPLIER,
        ]
        assert [t.profile_id for t in follow_up] == [ids[1], ids[0]]
        assert len(publisher.of_type(CommissionEarned)) == 2
        assert await rewards_engine.balance(ids[1]) == Decimal("5")

    @pytest.mark.asyncio
    async def test_replay_is_skipped(
        self, make_chain, rewards_engine, session_maker, rewards_config
    ):
        """A redelivered message pays nothing twice."""
        ids = await make_chain(2)
        kwargs = {
            "session_maker": session_maker,
            "config": rewards_config,
            "publisher": CollectingEventPublisher(),
        }
        await distribute_commission_async(
            ids[1], Decimal("50"), "task_assignment:1", **kwargs
        )

        follow_up = await distribute_commission_async(
            ids[1], Decimal("50"), "task_assignment:1", **kwargs
        )

        assert follow_up == []
        assert await rewards_engine.balance(ids[0]) == Decimal("5")
