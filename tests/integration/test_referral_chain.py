"""Integration tests for referral chain construction and statistics."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.models import Referral, VolunteerProfile
from app.repositories.referral_repository import ReferralRepository
from app.repositories.volunteer_profile_repository import (
    VolunteerProfileRepository,
)
from app.services.referral import ReferralChainManager
from app.utils.exceptions import (
    AlreadyReferredError,
    ReferralCycleError,
    SelfReferralError,
)


class TestChainEdges:
    """Tests for materialized upline edges."""

    @pytest.mark.asyncio
    async def test_edges_follow_upline(self, make_chain, session):
        """Each ancestor gets one edge with its level and rate."""
        ids = await make_chain(4)

        edges = await ReferralRepository(session).get_by_referred(ids[3])

        assert [e.level for e in edges] == [1, 2, 3]
        assert [e.referrer_id for e in edges] == [ids[2], ids[1], ids[0]]
        assert [e.commission_rate for e in edges] == [
            Decimal("0.10"),
            Decimal("0.08"),
            Decimal("0.06"),
        ]
        assert all(e.active for e in edges)

    @pytest.mark.asyncio
    async def test_edges_capped_at_five_levels(self, make_chain, session):
        """Ancestors beyond level 5 get no edge."""
        ids = await make_chain(7)

        edges = await ReferralRepository(session).get_by_referred(ids[6])

        assert [e.level for e in edges] == [1, 2, 3, 4, 5]
        assert ids[0] not in [e.referrer_id for e in edges]

    @pytest.mark.asyncio
    async def test_upline_walk_is_bounded(self, make_chain, session):
        """The walk stops after five ancestors and never repeats one."""
        ids = await make_chain(8)

        upline = await VolunteerProfileRepository(session).get_upline(ids[7])

        assert [p.id for p in upline] == [ids[6], ids[5], ids[4], ids[3], ids[2]]


class TestBuildChain:
    """Tests for the rejection rules of ReferralChainManager.build_chain."""

    @pytest.mark.asyncio
    async def test_self_referral_rejected(
        self, rewards_engine, session, rewards_config
    ):
        """A volunteer cannot refer themselves."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id
        profile = await session.get(VolunteerProfile, profile_id)

        with pytest.raises(SelfReferralError):
            await ReferralChainManager(session, rewards_config).build_chain(
                profile, profile
            )

    @pytest.mark.asyncio
    async def test_already_referred_rejected(
        self, make_chain, session, rewards_config
    ):
        """A volunteer joins one chain only."""
        ids = await make_chain(4)
        referred = await session.get(VolunteerProfile, ids[1])
        referrer = await session.get(VolunteerProfile, ids[3])

        with pytest.raises(AlreadyReferredError):
            await ReferralChainManager(session, rewards_config).build_chain(
                referred, referrer
            )

    @pytest.mark.asyncio
    async def test_cycle_rejected_without_partial_edges(
        self, make_chain, session, rewards_config
    ):
        """Attaching the root below its own descendant fails cleanly."""
        ids = await make_chain(3)
        root = await session.get(VolunteerProfile, ids[0])
        descendant = await session.get(VolunteerProfile, ids[2])

        with pytest.raises(ReferralCycleError):
            await ReferralChainManager(session, rewards_config).build_chain(
                root, descendant
            )
        await session.rollback()

        result = await session.execute(
            select(func.count(Referral.id)).where(
                Referral.referred_id == ids[0]
            )
        )
        assert result.scalar() == 0
        root = await session.get(VolunteerProfile, ids[0])
        assert root.upline_id is None

    @pytest.mark.asyncio
    async def test_cycle_beyond_commission_depth_rejected(
        self, make_chain, session, rewards_config
    ):
        """Cycles are found deeper than the five paid levels."""
        ids = await make_chain(8)
        root = await session.get(VolunteerProfile, ids[0])
        deepest = await session.get(VolunteerProfile, ids[7])

        with pytest.raises(ReferralCycleError):
            await ReferralChainManager(session, rewards_config).build_chain(
                root, deepest
            )


class TestChainStatistics:
    """Tests for RewardsEngine.chain_statistics."""

    @pytest.mark.asyncio
    async def test_full_chain(self, rewards_engine, make_chain):
        """A profile with five ancestors has a full chain."""
        ids = await make_chain(7)

        stats = await rewards_engine.chain_statistics(ids[6])

        assert stats.depth == 5
        assert stats.has_full_chain is True
        assert [r["profile_id"] for r in stats.referrers] == [
            ids[5], ids[4], ids[3], ids[2], ids[1],
        ]
        assert [r["rate"] for r in stats.referrers] == [
            Decimal("0.10"),
            Decimal("0.08"),
            Decimal("0.06"),
            Decimal("0.04"),
            Decimal("0.02"),
        ]
        assert all(r["active"] for r in stats.referrers)

    @pytest.mark.asyncio
    async def test_retired_referrer_inactive(self, rewards_engine, make_chain):
        """Retiring a referrer deactivates its edge in the chain view."""
        ids = await make_chain(3)
        await rewards_engine.retire_profile(ids[1])

        stats = await rewards_engine.chain_statistics(ids[2])

        assert [(r["profile_id"], r["active"]) for r in stats.referrers] == [
            (ids[1], False),
            (ids[0], True),
        ]

    @pytest.mark.asyncio
    async def test_downline_counts(self, rewards_engine, make_chain):
        """The root sees one volunteer on each of the five levels."""
        ids = await make_chain(7)

        stats = await rewards_engine.chain_statistics(ids[0])

        assert stats.depth == 0
        assert stats.has_full_chain is False
        assert stats.downline_counts == {1: 1, 2: 1, 3: 1, 4: 1, 5: 1}
        assert stats.total_commission_earned == Decimal("0")

    @pytest.mark.asyncio
    async def test_commission_earned_included(
        self, rewards_engine, make_chain, sale_amount
    ):
        """Earned commissions are summed from the ledger."""
        ids = await make_chain(2)
        await rewards_engine.record_external_sale(ids[1], sale_amount, "s-1")

        stats = await rewards_engine.chain_statistics(ids[0])

        assert stats.total_commission_earned == Decimal("100")

    def test_maximum_possible_commission(self, rewards_engine, sale_amount):
        """Thirty percent of the sale with every level filled."""
        assert rewards_engine.maximum_possible_commission(
            sale_amount
        ) == Decimal("300.00")
