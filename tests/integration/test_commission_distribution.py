"""Integration tests for external sales and commission distribution."""

import json
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.models import LedgerEntry, LedgerEntryType
from app.services.events import CommissionEarned
from app.services.referral import CommissionDistributor
from app.services.ripple import RippleKind
from app.utils.exceptions import (
    DuplicateEventError,
    InvalidProfileError,
    SecurityError,
    ValidationError,
)
from app.utils.security import sign_payload


async def ledger_count(session_maker) -> int:
    async with session_maker() as session:
        result = await session.execute(select(func.count(LedgerEntry.id)))
        return result.scalar()


class TestRecordExternalSale:
    """Tests for RewardsEngine.record_external_sale."""

    @pytest.mark.asyncio
    async def test_full_chain_distribution(
        self, rewards_engine, make_chain, sale_amount
    ):
        """A 1000 sale pays 100, 80, 60, 40 and 20 up the chain."""
        ids = await make_chain(6)

        summary = await rewards_engine.record_external_sale(
            ids[5], sale_amount, "sale-1"
        )

        assert summary.duplicate is False
        assert [p.amount for p in summary.postings] == [
            Decimal("100.00"),
            Decimal("80.00"),
            Decimal("60.00"),
            Decimal("40.00"),
            Decimal("20.00"),
        ]
        assert [p.referrer_id for p in summary.postings] == [
            ids[4], ids[3], ids[2], ids[1], ids[0],
        ]
        assert summary.total_distributed == Decimal("300.00")
        assert summary.levels_walked == 5

    @pytest.mark.asyncio
    async def test_balances_after_sale(
        self, rewards_engine, make_chain, sale_amount
    ):
        """Buyer gets the purchase, each referrer its commission."""
        ids = await make_chain(6)

        await rewards_engine.record_external_sale(ids[5], sale_amount, "sale-1")

        assert await rewards_engine.balance(ids[5]) == Decimal("1000")
        assert await rewards_engine.balance(ids[4]) == Decimal("100")
        assert await rewards_engine.balance(ids[0]) == Decimal("20")

    @pytest.mark.asyncio
    async def test_short_chain(self, rewards_engine, make_chain, sale_amount):
        """Missing levels are simply not paid."""
        ids = await make_chain(3)

        summary = await rewards_engine.record_external_sale(
            ids[2], sale_amount, "sale-1"
        )

        assert [p.amount for p in summary.postings] == [
            Decimal("100.00"),
            Decimal("80.00"),
        ]
        assert summary.total_distributed == Decimal("180.00")

    @pytest.mark.asyncio
    async def test_buyer_without_upline(self, rewards_engine, sale_amount):
        """A sale without referrers posts only the purchase."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        summary = await rewards_engine.record_external_sale(
            profile_id, sale_amount, "sale-1"
        )

        assert summary.postings == []
        assert summary.total_distributed == Decimal("0")
        assert await rewards_engine.balance(profile_id) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_retired_referrer_skipped(
        self, rewards_engine, make_chain, sale_amount
    ):
        """Retired referrers earn nothing; deeper levels keep their rates."""
        ids = await make_chain(3)
        await rewards_engine.retire_profile(ids[1])

        summary = await rewards_engine.record_external_sale(
            ids[2], sale_amount, "sale-1"
        )

        assert [
            (p.level, p.referrer_id, p.amount) for p in summary.postings
        ] == [(2, ids[0], Decimal("80.00"))]
        assert summary.total_distributed == Decimal("80.00")
        assert await rewards_engine.balance(ids[1]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_retired_direct_referrer_gets_nothing(
        self, rewards_engine, make_chain, sale_amount
    ):
        """A sole retired referrer leaves the sale without commissions."""
        ids = await make_chain(2)
        await rewards_engine.retire_profile(ids[0])

        summary = await rewards_engine.record_external_sale(
            ids[1], sale_amount, "sale-1"
        )

        assert summary.postings == []
        assert await rewards_engine.balance(ids[0]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_replay_is_a_no_op(
        self, rewards_engine, make_chain, sale_amount, session_maker
    ):
        """The same reference is processed once."""
        ids = await make_chain(3)
        await rewards_engine.record_external_sale(ids[2], sale_amount, "sale-1")
        entries = await ledger_count(session_maker)

        replay = await rewards_engine.record_external_sale(
            ids[2], sale_amount, "sale-1"
        )

        assert replay.duplicate is True
        assert replay.postings == []
        assert await ledger_count(session_maker) == entries
        assert await rewards_engine.balance(ids[1]) == Decimal("100")

    @pytest.mark.asyncio
    async def test_commission_events_published(
        self, rewards_engine, make_chain, sale_amount, publisher
    ):
        """One CommissionEarned per paid level, after commit."""
        ids = await make_chain(3)

        await rewards_engine.record_external_sale(ids[2], sale_amount, "sale-1")

        events = publisher.of_type(CommissionEarned)
        assert [(e.profile_id, e.level, e.amount) for e in events] == [
            (ids[1], 1, Decimal("100.00")),
            (ids[0], 2, Decimal("80.00")),
        ]
        assert all(e.reference == "sale-1" for e in events)

    @pytest.mark.asyncio
    async def test_paid_referrers_recalculated(
        self, rewards_engine, make_chain, sale_amount, dispatcher
    ):
        """Every paid referrer gets a multiplier recalculation."""
        ids = await make_chain(3)
        dispatcher.drain()

        await rewards_engine.record_external_sale(ids[2], sale_amount, "sale-1")

        tasks = dispatcher.drain()
        assert all(t.kind == RippleKind.RECALCULATE_MULTIPLIER for t in tasks)
        assert [t.profile_id for t in tasks] == [ids[1], ids[0]]

    @pytest.mark.asyncio
    async def test_unknown_buyer(self, rewards_engine, sale_amount):
        """Sales need a known profile."""
        with pytest.raises(InvalidProfileError):
            await rewards_engine.record_external_sale(999, sale_amount, "s-1")

    @pytest.mark.asyncio
    async def test_retired_buyer(self, rewards_engine, sale_amount):
        """Retired profiles take no new sales."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id
        await rewards_engine.retire_profile(profile_id)

        with pytest.raises(InvalidProfileError):
            await rewards_engine.record_external_sale(
                profile_id, sale_amount, "s-1"
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, "-5", "abc", "1E10"])
    async def test_invalid_amount(self, rewards_engine, amount):
        """Amounts must be positive numbers that fit the ledger."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        with pytest.raises(ValidationError):
            await rewards_engine.record_external_sale(profile_id, amount, "s-1")

    @pytest.mark.asyncio
    async def test_reference_too_long(self, rewards_engine, sale_amount):
        """References longer than the ledger column are refused."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        with pytest.raises(ValidationError):
            await rewards_engine.record_external_sale(
                profile_id, sale_amount, "x" * 129
            )

    @pytest.mark.asyncio
    async def test_missing_reference(self, rewards_engine, sale_amount):
        """A reference is required."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        with pytest.raises(ValidationError):
            await rewards_engine.record_external_sale(
                profile_id, sale_amount, "  "
            )


class TestFraudFlags:
    """Tests for the advisory fraud checks."""

    @pytest.mark.asyncio
    async def test_fresh_upline_flagged(
        self, rewards_engine, make_chain, sale_amount
    ):
        """More than two ancestors created in the last day."""
        ids = await make_chain(6)

        summary = await rewards_engine.record_external_sale(
            ids[5], sale_amount, "sale-1"
        )

        assert summary.fraud_flags == ["fresh_upline"]
        assert summary.total_distributed == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_two_fresh_ancestors_not_flagged(
        self, rewards_engine, make_chain, sale_amount
    ):
        """Two new ancestors are within the limit."""
        ids = await make_chain(3)

        summary = await rewards_engine.record_external_sale(
            ids[2], sale_amount, "sale-1"
        )

        assert summary.fraud_flags == []

    @pytest.mark.asyncio
    async def test_rapid_purchases_flagged(self, rewards_engine):
        """The eleventh sale within an hour is flagged, not blocked."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        for n in range(10):
            summary = await rewards_engine.record_external_sale(
                profile_id, "10", f"sale-{n}"
            )
            assert "rapid_purchases" not in summary.fraud_flags

        summary = await rewards_engine.record_external_sale(
            profile_id, "10", "sale-10"
        )

        assert "rapid_purchases" in summary.fraud_flags
        assert await rewards_engine.balance(profile_id) == Decimal("110")

    @pytest.mark.asyncio
    async def test_unusual_amount_flagged(self, rewards_engine):
        """Ten times the recent average is flagged."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id
        await rewards_engine.record_external_sale(profile_id, "100", "sale-1")

        summary = await rewards_engine.record_external_sale(
            profile_id, "1001", "sale-2"
        )

        assert summary.fraud_flags == ["unusual_amount"]

    @pytest.mark.asyncio
    async def test_default_average_without_history(
        self, rewards_engine, sale_amount
    ):
        """With no sales yet the average defaults to 100."""
        profile_id = (await rewards_engine.register_volunteer(1, 1)).profile.id

        summary = await rewards_engine.record_external_sale(
            profile_id, sale_amount, "sale-1"
        )

        assert summary.fraud_flags == []


class TestSignedSale:
    """Tests for webhook-delivered sales."""

    @staticmethod
    def body(profile_id: int, reference: str = "hook-1") -> str:
        return json.dumps(
            {
                "profile_id": profile_id,
                "amount": "1000",
                "external_reference": reference,
            }
        )

    @pytest.mark.asyncio
    async def test_valid_signature(self, rewards_engine, make_chain):
        """A signed body is recorded like any other sale."""
        ids = await make_chain(2)
        body = self.body(ids[1])

        summary = await rewards_engine.record_signed_sale(
            body, sign_payload(body, rewards_engine.webhook_secret)
        )

        assert summary.reference == "hook-1"
        assert summary.total_distributed == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_bad_signature(self, rewards_engine, make_chain):
        """A wrong signature is refused before parsing."""
        ids = await make_chain(2)
        body = self.body(ids[1])

        with pytest.raises(SecurityError):
            await rewards_engine.record_signed_sale(
                body, sign_payload(body, "wrong-secret")
            )

    @pytest.mark.asyncio
    async def test_missing_signature(self, rewards_engine):
        """Unsigned bodies are refused."""
        with pytest.raises(SecurityError):
            await rewards_engine.record_signed_sale(self.body(1), None)

    @pytest.mark.asyncio
    async def test_malformed_body(self, rewards_engine):
        """A signed but invalid body is a validation error."""
        body = '{"profile_id": 1}'

        with pytest.raises(ValidationError):
            await rewards_engine.record_signed_sale(
                body, sign_payload(body, rewards_engine.webhook_secret)
            )


class TestCommissionDistributor:
    """Tests for the standalone distribution unit of work."""

    @pytest.mark.asyncio
    async def test_process_commits(
        self, make_chain, session, rewards_config, rewards_engine
    ):
        """Commission on a task reward, keyed by assignment."""
        ids = await make_chain(3)

        summary = await CommissionDistributor(
            session, rewards_config
        ).process(ids[2], Decimal("50"), "task_assignment:1")

        assert [p.amount for p in summary.postings] == [
            Decimal("5.00"),
            Decimal("4.00"),
        ]
        assert await rewards_engine.balance(ids[1]) == Decimal("5")

    @pytest.mark.asyncio
    async def test_process_twice_is_duplicate(
        self, make_chain, session, rewards_config
    ):
        """A reference is distributed once."""
        ids = await make_chain(2)
        distributor = CommissionDistributor(session, rewards_config)
        await distributor.process(ids[1], Decimal("50"), "task_assignment:1")

        with pytest.raises(DuplicateEventError):
            await distributor.process(
                ids[1], Decimal("50"), "task_assignment:1"
            )

    @pytest.mark.asyncio
    async def test_process_unknown_profile(self, session, rewards_config):
        """The source profile must exist."""
        with pytest.raises(InvalidProfileError):
            await CommissionDistributor(session, rewards_config).process(
                999, Decimal("50"), "task_assignment:1"
            )

    @pytest.mark.asyncio
    async def test_commission_entries_carry_reference(
        self, make_chain, session, rewards_config
    ):
        """Commission entries are typed and keyed by the reference."""
        ids = await make_chain(2)
        await CommissionDistributor(session, rewards_config).process(
            ids[1], Decimal("50"), "task_assignment:7"
        )

        result = await session.execute(
            select(LedgerEntry).where(LedgerEntry.profile_id == ids[0])
        )
        entries = list(result.scalars().all())
        assert len(entries) == 1
        assert entries[0].entry_type == LedgerEntryType.REFERRAL_COMMISSION
        assert entries[0].external_reference == "task_assignment:7"
