"""
Read-only task views.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import AssignmentStatus
from app.repositories.task_assignment_repository import (
    TaskAssignmentRepository,
)
from app.repositories.task_template_repository import TaskTemplateRepository
from app.services.base_service import BaseService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import NotFoundError


@dataclass
class AssignmentSnapshot:
    assignment_id: int
    status: str
    due_date: datetime
    overdue: bool
    days_until_due: int
    completion_time_days: float | None


@dataclass
class TemplateStatistics:
    template_id: int
    assignments_count: int
    approved_count: int
    pending_count: int
    submitted_count: int
    rejected_count: int
    success_rate: float
    average_completion_days: float


class TaskStatisticsService(BaseService):
    """Assignment and template projections."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.assignment_repo = TaskAssignmentRepository(session)
        self.template_repo = TaskTemplateRepository(session)

    async def assignment_snapshot(
        self, assignment_id: int, now: datetime | None = None
    ) -> AssignmentSnapshot:
        """
        Status view of one assignment.

        ``overdue`` is true only for a pending assignment past its due
        date; submitted assignments are never overdue.

        Raises:
            NotFoundError: Unknown assignment
        """
        now = now or utc_now()
        assignment = await self.assignment_repo.reload(assignment_id)
        if assignment is None:
            raise NotFoundError(
                "Task assignment not found", assignment_id=assignment_id
            )
        return AssignmentSnapshot(
            assignment_id=assignment.id,
            status=assignment.status,
            due_date=assignment.due_date,
            overdue=assignment.is_overdue(now),
            days_until_due=assignment.days_until_due(now),
            completion_time_days=assignment.completion_time_days,
        )

    async def template_statistics(self, template_id: int) -> TemplateStatistics:
        """
        Assignment counts and success rate of a template.

        Success rate is approved over all assignments, in percent with
        one decimal.

        Raises:
            NotFoundError: Unknown template
        """
        template = await self.template_repo.get_by_id(template_id)
        if template is None:
            raise NotFoundError(
                "Task template not found", template_id=template_id
            )

        counts = await self.assignment_repo.get_status_counts(template_id)
        total = sum(counts.values())
        approved = counts[AssignmentStatus.APPROVED.value]
        success_rate = round(approved / total * 100, 1) if total else 0.0

        durations = [
            a.completion_time_days
            for a in await self.assignment_repo.get_reviewed(template_id)
            if a.status == AssignmentStatus.APPROVED
            and a.completion_time_days is not None
        ]
        average = round(sum(durations) / len(durations), 1) if durations else 0.0

        return TemplateStatistics(
            template_id=template_id,
            assignments_count=total,
            approved_count=approved,
            pending_count=counts[AssignmentStatus.PENDING.value],
            submitted_count=counts[AssignmentStatus.SUBMITTED.value],
            rejected_count=counts[AssignmentStatus.REJECTED.value],
            success_rate=success_rate,
            average_completion_days=average,
        )
