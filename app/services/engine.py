"""
Rewards engine facade.

Entry point used by the UI, admin and webhook layers. Every operation
runs in its own session; ripple tasks and notification facts are handed
out only after the operation's transaction has committed.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import LeaderboardPeriod, ReviewDecision
from app.models.task_assignment import TaskAssignment
from app.services.events import (
    EngineEvent,
    EventPublisher,
    LoggingEventPublisher,
)
from app.services.leaderboard_service import (
    DEFAULT_LEADERBOARD_LIMIT,
    LeaderboardEntry,
    LeaderboardService,
    VolunteerRank,
)
from app.services.ledger_service import LedgerService
from app.services.multiplier_service import MultiplierService, MultiplierUpdate
from app.services.profile_service import (
    ProfileService,
    ProfileSnapshot,
    Registration,
)
from app.services.referral import (
    ChainStatistics,
    DistributionSummary,
    ReferralChainManager,
)
from app.services.ripple import CollectingDispatcher, RippleTask, TaskDispatcher
from app.services.ripple_worker import RippleWorker
from app.services.sale_service import SaleService
from app.services.task import (
    AssignmentSnapshot,
    ReviewOutcome,
    TaskAssignmentService,
    TaskStatisticsService,
    TemplateStatistics,
)
from app.utils.exceptions import (
    DuplicateEventError,
    SecurityError,
    ValidationError,
)
from app.utils.security import mask_sensitive, verify_signature
from app.validators.payloads import SalePayload, SubmissionPayload
from calculator import CommissionCalculator, RewardsConfig


class RewardsEngine:
    """
    Volunteer rewards and referral engine.

    Args:
        session_maker: Factory for async sessions
        config: Reward configuration, defaults to built-in values
        dispatcher: Receives ripple tasks after commit
        publisher: Receives notification facts after commit
        webhook_secret: Shared secret for signed sales
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: RewardsConfig | None = None,
        dispatcher: TaskDispatcher | None = None,
        publisher: EventPublisher | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        self.session_maker = session_maker
        self.config = config or RewardsConfig()
        self.dispatcher = dispatcher or CollectingDispatcher()
        self.publisher = publisher or LoggingEventPublisher()
        self.webhook_secret = webhook_secret
        self.logger = logger.bind(service="RewardsEngine")

    async def _after_commit(
        self,
        ripple: Sequence[RippleTask] = (),
        events: Sequence[EngineEvent] = (),
    ) -> None:
        # The primary transaction is durable here; downstream failures
        # are left to the ripple retry and must not fail the call
        if ripple:
            try:
                self.dispatcher.dispatch(list(ripple))
            except Exception as e:
                self.logger.error(
                    "Failed to dispatch ripple tasks",
                    extra={"error": str(e), "tasks": len(ripple)},
                )
        for event in events:
            try:
                await self.publisher.publish(event)
            except Exception as e:
                self.logger.error(
                    "Failed to publish event",
                    extra={"error": str(e), "event": type(event).__name__},
                )

    # Profiles

    async def register_volunteer(
        self,
        identity_id: int,
        organization_id: int,
        referral_code: str | None = None,
    ) -> Registration:
        async with self.session_maker() as session:
            registration = await ProfileService(
                session, self.config
            ).register_volunteer(identity_id, organization_id, referral_code)

        if registration.created and registration.referral_levels:
            profile = registration.profile
            await self._after_commit(
                ripple=[RippleTask.recalculate(profile.upline_id)]
            )
        return registration

    async def retire_profile(self, profile_id: int) -> None:
        async with self.session_maker() as session:
            await ProfileService(session, self.config).retire_profile(
                profile_id
            )

    async def get_profile_snapshot(self, profile_id: int) -> ProfileSnapshot:
        async with self.session_maker() as session:
            return await ProfileService(
                session, self.config
            ).get_profile_snapshot(profile_id)

    async def recalculate_multiplier(
        self, profile_id: int
    ) -> MultiplierUpdate | None:
        async with self.session_maker() as session:
            return await MultiplierService(session, self.config).recalculate(
                profile_id
            )

    # Tasks

    async def accept_task(
        self,
        profile_id: int,
        template_id: int,
        now: datetime | None = None,
    ) -> int:
        """Create a pending assignment and return its id."""
        async with self.session_maker() as session:
            assignment = await TaskAssignmentService(
                session, self.config
            ).accept_task(profile_id, template_id, now)
            return assignment.id

    async def submit_task(
        self,
        assignment_id: int,
        payload: dict[str, Any] | SubmissionPayload | None = None,
        now: datetime | None = None,
    ) -> TaskAssignment:
        async with self.session_maker() as session:
            assignment, event = await TaskAssignmentService(
                session, self.config
            ).submit_task(assignment_id, payload, now)
        await self._after_commit(events=[event])
        return assignment

    async def review_task(
        self,
        assignment_id: int,
        decision: ReviewDecision | str,
        reviewer_id: int | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        async with self.session_maker() as session:
            outcome = await TaskAssignmentService(
                session, self.config
            ).review_task(assignment_id, decision, reviewer_id, notes, now)
        await self._after_commit(outcome.ripple, outcome.events)
        return outcome

    async def assignment_snapshot(
        self, assignment_id: int, now: datetime | None = None
    ) -> AssignmentSnapshot:
        async with self.session_maker() as session:
            return await TaskStatisticsService(session).assignment_snapshot(
                assignment_id, now
            )

    async def template_statistics(
        self, template_id: int
    ) -> TemplateStatistics:
        async with self.session_maker() as session:
            return await TaskStatisticsService(session).template_statistics(
                template_id
            )

    # Sales and commissions

    async def record_external_sale(
        self,
        profile_id: int,
        amount: Decimal | str | int,
        external_reference: str,
        now: datetime | None = None,
    ) -> DistributionSummary:
        """
        Record a sale and pay the chain.

        A replayed reference is a successful no-op: the returned summary
        has ``duplicate=True`` and nothing is written.
        """
        try:
            async with self.session_maker() as session:
                summary = await SaleService(
                    session, self.config
                ).record_external_sale(
                    profile_id, amount, external_reference, now
                )
        except DuplicateEventError:
            return DistributionSummary(
                source_profile_id=profile_id,
                reference=external_reference.strip(),
                base_amount=Decimal(str(amount)),
                duplicate=True,
            )

        await self._after_commit(summary.ripple, summary.events)
        return summary

    async def record_signed_sale(
        self, body: bytes | str, signature: str | None
    ) -> DistributionSummary:
        """
        Verify a webhook signature, parse the body and record the sale.

        Raises:
            SecurityError: Signature missing or wrong
            ValidationError: Body is not a valid sale
        """
        if not verify_signature(body, signature, self.webhook_secret):
            self.logger.warning(
                "Rejected sale with invalid signature",
                extra={"signature": mask_sensitive(signature)},
            )
            raise SecurityError("Invalid webhook signature")

        try:
            sale = SalePayload.model_validate_json(body)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid sale payload", errors=e.errors(include_url=False)
            ) from e

        return await self.record_external_sale(
            sale.profile_id, sale.amount, sale.external_reference
        )

    async def chain_statistics(self, profile_id: int) -> ChainStatistics:
        async with self.session_maker() as session:
            return await ReferralChainManager(
                session, self.config
            ).chain_statistics(profile_id)

    def maximum_possible_commission(self, amount: Decimal) -> Decimal:
        """Commission a fully filled chain would receive for ``amount``."""
        return CommissionCalculator(self.config).maximum_possible_commission(
            Decimal(str(amount))
        )

    # Ledger

    async def balance(self, profile_id: int) -> Decimal:
        async with self.session_maker() as session:
            return await LedgerService(session).balance(profile_id)

    async def monthly_earnings(
        self, profile_id: int, month: datetime | None = None
    ) -> Decimal:
        async with self.session_maker() as session:
            return await LedgerService(session).monthly_earnings(
                profile_id, month
            )

    # Leaderboard

    async def leaderboard(
        self,
        organization_id: int,
        period: LeaderboardPeriod | str = LeaderboardPeriod.MONTHLY,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[LeaderboardEntry]:
        async with self.session_maker() as session:
            return await LeaderboardService(session).leaderboard(
                organization_id, period, limit
            )

    async def volunteer_rank(
        self,
        profile_id: int,
        period: LeaderboardPeriod | str = LeaderboardPeriod.ALL_TIME,
    ) -> VolunteerRank:
        async with self.session_maker() as session:
            return await LeaderboardService(session).volunteer_rank(
                profile_id, period
            )

    # Ripple

    async def run_ripple(self, task: RippleTask) -> list[RippleTask]:
        """Execute one ripple task in a fresh session."""
        async with self.session_maker() as session:
            worker = RippleWorker(session, self.config)
            follow_up = await worker.run(task)
        await self._after_commit(events=worker.events)
        return follow_up

    async def drain(self, dispatcher: CollectingDispatcher) -> int:
        """
        Run collected ripple tasks in-process until none remain.

        Returns:
            Number of tasks executed
        """
        executed = 0
        pending = dispatcher.drain()
        while pending:
            task = pending.pop(0)
            pending.extend(await self.run_ripple(task))
            executed += 1
        return executed
