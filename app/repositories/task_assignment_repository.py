"""
Task assignment repository.

Data access layer for TaskAssignment model. Status changes go through
``transition`` which is a compare-and-set on the current status.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import NON_TERMINAL_ASSIGNMENT_STATUSES, AssignmentStatus
from app.models.task_assignment import TaskAssignment
from app.repositories.base import BaseRepository


class TaskAssignmentRepository(BaseRepository[TaskAssignment]):
    """Task assignment repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize task assignment repository."""
        super().__init__(TaskAssignment, session)

    async def has_open_assignment(
        self, assignee_id: int, task_template_id: int
    ) -> bool:
        """
        Check for a pending or submitted assignment of the same template.

        Args:
            assignee_id: Volunteer profile ID
            task_template_id: Template ID

        Returns:
            True if an open assignment exists
        """
        stmt = (
            select(func.count(TaskAssignment.id))
            .where(
                TaskAssignment.assignee_id == assignee_id,
                TaskAssignment.task_template_id == task_template_id,
                TaskAssignment.status.in_(
                    [s.value for s in NON_TERMINAL_ASSIGNMENT_STATUSES]
                ),
            )
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def transition(
        self,
        assignment_id: int,
        expected: AssignmentStatus,
        target: AssignmentStatus,
        **values: Any,
    ) -> bool:
        """
        Atomically move an assignment from ``expected`` to ``target``.

        Issues ``UPDATE ... WHERE id = :id AND status = :expected``.
        Exactly one of several concurrent callers sees a changed row.

        Args:
            assignment_id: Assignment ID
            expected: Status the row must currently have
            target: New status
            **values: Extra columns to set in the same statement

        Returns:
            True if this caller performed the transition
        """
        stmt = (
            update(TaskAssignment)
            .where(
                TaskAssignment.id == assignment_id,
                TaskAssignment.status == expected.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def reload(self, assignment_id: int) -> TaskAssignment | None:
        """Re-read an assignment, overwriting the identity map copy."""
        stmt = (
            select(TaskAssignment)
            .where(TaskAssignment.id == assignment_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_approved_since(
        self, assignee_id: int, since: datetime
    ) -> int:
        """Count approvals of a volunteer reviewed after ``since``."""
        stmt = select(func.count(TaskAssignment.id)).where(
            TaskAssignment.assignee_id == assignee_id,
            TaskAssignment.status == AssignmentStatus.APPROVED.value,
            TaskAssignment.reviewed_at > since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_status_counts(
        self, task_template_id: int
    ) -> dict[str, int]:
        """
        Get assignment counts per status for a template.

        Args:
            task_template_id: Template ID

        Returns:
            Dict mapping every status value to its count
        """
        stmt = (
            select(
                TaskAssignment.status,
                func.count(TaskAssignment.id).label("count"),
            )
            .where(TaskAssignment.task_template_id == task_template_id)
            .group_by(TaskAssignment.status)
        )
        result = await self.session.execute(stmt)

        counts = {status.value: 0 for status in AssignmentStatus}
        for row in result.all():
            counts[row.status] = row.count
        return counts

    async def get_reviewed(
        self, task_template_id: int
    ) -> list[TaskAssignment]:
        """Get approved and rejected assignments of a template."""
        stmt = select(TaskAssignment).where(
            TaskAssignment.task_template_id == task_template_id,
            TaskAssignment.status.in_(
                [
                    AssignmentStatus.APPROVED.value,
                    AssignmentStatus.REJECTED.value,
                ]
            ),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
