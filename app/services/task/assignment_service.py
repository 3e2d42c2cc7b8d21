"""
Task assignment state machine.

pending -> submitted -> approved | rejected

Every status change is a compare-and-set on the current status, so two
concurrent reviews of one assignment produce exactly one outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import AssignmentStatus, ReviewDecision
from app.models.task_assignment import TaskAssignment
from app.models.task_template import TaskTemplate
from app.repositories.task_assignment_repository import (
    TaskAssignmentRepository,
)
from app.repositories.task_template_repository import TaskTemplateRepository
from app.services.base_service import BaseService, transaction
from app.services.events import (
    EngineEvent,
    TaskApproved,
    TaskRejected,
    TaskSubmitted,
)
from app.services.multiplier_service import MultiplierService
from app.services.profile_service import ProfileService, XpAward
from app.services.ripple import RippleTask
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    AlreadyAssignedError,
    ConflictError,
    NotEligibleError,
    NotFoundError,
    NotPendingError,
    NotSubmittedError,
    OverdueError,
    TemplateUnavailableError,
    ValidationError,
)
from app.validators.payloads import SubmissionPayload
from calculator import RewardsConfig


def compute_xp_award(xp_reward: int, multiplier: Decimal | float) -> int:
    """
    XP granted for a task: reward times multiplier, half rounded up.

    Examples:
        >>> compute_xp_award(50, Decimal("1.25"))
        63
    """
    value = Decimal(xp_reward) * Decimal(str(multiplier))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def commission_reference(assignment_id: int) -> str:
    """Idempotency key of the commission paid for an approval."""
    return f"task_assignment:{assignment_id}"


@dataclass
class ReviewOutcome:
    """Result of a review, with the work to run after commit."""

    assignment: TaskAssignment
    decision: ReviewDecision
    xp_awarded: int = 0
    award: XpAward | None = None
    ripple: list[RippleTask] = field(default_factory=list)
    events: list[EngineEvent] = field(default_factory=list)


class TaskAssignmentService(BaseService):
    """Accept, submit and review task assignments."""

    def __init__(self, session: AsyncSession, config: RewardsConfig) -> None:
        super().__init__(session)
        self.config = config
        self.template_repo = TaskTemplateRepository(session)
        self.assignment_repo = TaskAssignmentRepository(session)
        self.profiles = ProfileService(session, config)
        self.multipliers = MultiplierService(session, config)

    async def _get_assignment(self, assignment_id: int) -> TaskAssignment:
        assignment = await self.assignment_repo.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError(
                "Task assignment not found", assignment_id=assignment_id
            )
        return assignment

    async def _get_template(self, template_id: int) -> TaskTemplate:
        template = await self.template_repo.get_by_id(template_id)
        if template is None:
            raise NotFoundError(
                "Task template not found", template_id=template_id
            )
        return template

    @transaction
    async def accept_task(
        self,
        profile_id: int,
        template_id: int,
        now: datetime | None = None,
    ) -> TaskAssignment:
        """
        Create a pending assignment.

        Args:
            profile_id: Volunteer accepting the task
            template_id: Template to perform
            now: Assignment time

        Returns:
            New pending assignment

        Raises:
            InvalidProfileError: Unknown or retired volunteer
            NotFoundError: Unknown template
            TemplateUnavailableError: Template not published
            NotEligibleError: Level below the template requirement
            AlreadyAssignedError: Open assignment for the same template
        """
        now = now or utc_now()
        # Serializes concurrent accepts of one volunteer
        profile = await self.profiles.lock_valid_profile(profile_id)
        template = await self._get_template(template_id)

        if (
            not template.is_published
            or template.organization_id != profile.organization_id
        ):
            raise TemplateUnavailableError(
                "Task template is not available",
                template_id=template_id,
                status=template.status,
            )

        if profile.level < template.level_required:
            raise NotEligibleError(
                "Volunteer level is below the task requirement",
                profile_id=profile_id,
                level=profile.level,
                level_required=template.level_required,
            )

        if await self.assignment_repo.has_open_assignment(
            profile_id, template_id
        ):
            raise AlreadyAssignedError(
                "Volunteer already has an open assignment for this task",
                profile_id=profile_id,
                template_id=template_id,
            )

        deadline_days = template.deadline_days or self.config.task_deadline_days
        try:
            assignment = await self.assignment_repo.create(
                task_template_id=template_id,
                assignee_id=profile_id,
                status=AssignmentStatus.PENDING.value,
                assigned_at=now,
                due_date=now + timedelta(days=deadline_days),
            )
        except IntegrityError as e:
            raise AlreadyAssignedError(
                "Volunteer already has an open assignment for this task",
                profile_id=profile_id,
                template_id=template_id,
            ) from e

        self.logger.info(
            "Task accepted",
            extra={
                "assignment_id": assignment.id,
                "profile_id": profile_id,
                "template_id": template_id,
            },
        )
        return assignment

    @transaction
    async def submit_task(
        self,
        assignment_id: int,
        payload: dict[str, Any] | SubmissionPayload | None = None,
        now: datetime | None = None,
    ) -> tuple[TaskAssignment, TaskSubmitted]:
        """
        Move a pending assignment to submitted.

        Args:
            assignment_id: Assignment ID
            payload: Submission evidence
            now: Submission time

        Returns:
            (updated assignment, TaskSubmitted fact)

        Raises:
            NotFoundError: Unknown assignment
            ValidationError: Malformed payload
            NotPendingError: Assignment is not pending
            OverdueError: Past the due date
        """
        now = now or utc_now()
        if not isinstance(payload, SubmissionPayload):
            try:
                payload = SubmissionPayload.model_validate(payload or {})
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid submission payload",
                    errors=e.errors(include_url=False),
                ) from e

        assignment = await self._get_assignment(assignment_id)
        if assignment.status != AssignmentStatus.PENDING:
            raise NotPendingError(
                "Only pending assignments can be submitted",
                assignment_id=assignment_id,
                status=assignment.status,
            )
        if assignment.is_overdue(now):
            raise OverdueError(
                "Assignment is past its due date",
                assignment_id=assignment_id,
                due_date=assignment.due_date.isoformat(),
            )

        changed = await self.assignment_repo.transition(
            assignment_id,
            AssignmentStatus.PENDING,
            AssignmentStatus.SUBMITTED,
            submitted_at=now,
            submission_notes=payload.notes,
            submission_payload=payload.to_storage(),
        )
        if not changed:
            raise NotPendingError(
                "Assignment changed state concurrently",
                assignment_id=assignment_id,
            )

        assignment = await self.assignment_repo.reload(assignment_id)
        self.logger.info(
            "Task submitted",
            extra={
                "assignment_id": assignment_id,
                "profile_id": assignment.assignee_id,
            },
        )
        return assignment, TaskSubmitted(
            assignment_id=assignment_id, profile_id=assignment.assignee_id
        )

    @transaction
    async def review_task(
        self,
        assignment_id: int,
        decision: ReviewDecision | str,
        reviewer_id: int | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Approve or reject a submitted assignment.

        Approval awards ``round(xp_reward x current multiplier)`` XP to
        the assignee within this transaction. The multiplier refresh and
        the upline commission are returned as ripple tasks, to be run
        after commit.

        Args:
            assignment_id: Assignment ID
            decision: approve or reject
            reviewer_id: Reviewing identity
            notes: Review notes
            now: Review time

        Returns:
            ReviewOutcome

        Raises:
            NotFoundError: Unknown assignment
            ValidationError: Unknown decision
            NotSubmittedError: Assignment still pending
            ConflictError: Assignment already reviewed
        """
        now = now or utc_now()
        try:
            decision = ReviewDecision(decision)
        except ValueError as e:
            raise ValidationError(
                "Unknown review decision", decision=str(decision)
            ) from e

        assignment = await self._get_assignment(assignment_id)
        status = AssignmentStatus(assignment.status)
        if status == AssignmentStatus.PENDING:
            raise NotSubmittedError(
                "Assignment has not been submitted",
                assignment_id=assignment_id,
            )
        if status.is_terminal:
            raise ConflictError(
                "Assignment was already reviewed",
                assignment_id=assignment_id,
                status=status.value,
            )

        if decision == ReviewDecision.REJECT:
            return await self._reject(assignment, reviewer_id, notes, now)
        return await self._approve(assignment, reviewer_id, notes, now)

    async def _claim(
        self,
        assignment_id: int,
        target: AssignmentStatus,
        **values: Any,
    ) -> None:
        changed = await self.assignment_repo.transition(
            assignment_id, AssignmentStatus.SUBMITTED, target, **values
        )
        if not changed:
            self.logger.warning(
                "Concurrent review lost the race",
                extra={"assignment_id": assignment_id, "target": target.value},
            )
            raise ConflictError(
                "Assignment was reviewed concurrently",
                assignment_id=assignment_id,
            )

    async def _reject(
        self,
        assignment: TaskAssignment,
        reviewer_id: int | None,
        notes: str | None,
        now: datetime,
    ) -> ReviewOutcome:
        await self._claim(
            assignment.id,
            AssignmentStatus.REJECTED,
            reviewed_at=now,
            reviewer_id=reviewer_id,
            review_notes=notes,
        )
        assignment = await self.assignment_repo.reload(assignment.id)
        self.logger.info(
            "Task rejected",
            extra={
                "assignment_id": assignment.id,
                "profile_id": assignment.assignee_id,
            },
        )
        return ReviewOutcome(
            assignment=assignment,
            decision=ReviewDecision.REJECT,
            events=[
                TaskRejected(
                    assignment_id=assignment.id,
                    profile_id=assignment.assignee_id,
                    notes=notes,
                )
            ],
        )

    async def _approve(
        self,
        assignment: TaskAssignment,
        reviewer_id: int | None,
        notes: str | None,
        now: datetime,
    ) -> ReviewOutcome:
        template = await self._get_template(assignment.task_template_id)
        profile = await self.profiles.profile_repo.get_for_update(
            assignment.assignee_id
        )

        # Award uses the multiplier as stored now; the refresh runs later
        xp = compute_xp_award(template.xp_reward, profile.activity_multiplier)

        await self._claim(
            assignment.id,
            AssignmentStatus.APPROVED,
            reviewed_at=now,
            reviewer_id=reviewer_id,
            review_notes=notes,
            xp_awarded=xp,
        )

        award = await self.profiles.award_xp(
            profile,
            xp,
            task_title=template.title,
            assignment_id=assignment.id,
            now=now,
        )

        ripple = await self.multipliers.propagation_targets(profile.id)
        if profile.upline_id is not None:
            ripple.append(
                RippleTask.distribute(
                    profile.id,
                    Decimal(template.xp_reward),
                    commission_reference(assignment.id),
                )
            )

        events: list[EngineEvent] = [
            TaskApproved(
                assignment_id=assignment.id,
                profile_id=profile.id,
                xp_awarded=xp,
            )
        ]
        level_up = award.level_up_event()
        if level_up is not None:
            events.append(level_up)

        assignment = await self.assignment_repo.reload(assignment.id)
        self.logger.info(
            "Task approved",
            extra={
                "assignment_id": assignment.id,
                "profile_id": profile.id,
                "xp_awarded": xp,
                "total_xp": award.total_xp,
            },
        )
        return ReviewOutcome(
            assignment=assignment,
            decision=ReviewDecision.APPROVE,
            xp_awarded=xp,
            award=award,
            ripple=ripple,
            events=events,
        )
