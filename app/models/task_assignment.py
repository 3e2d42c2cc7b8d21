"""
TaskAssignment model.

One instance of a volunteer performing a template.
"""

import math
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import AssignmentStatus
from app.models.types import UTCDateTime


OPEN_STATUS_CLAUSE = text("status IN ('pending', 'submitted')")


class TaskAssignment(Base):
    """
    TaskAssignment entity.

    Invariants:
    - submitted_at is set iff status is submitted, approved or rejected
    - reviewed_at is set iff status is approved or rejected
    - at most one non-terminal assignment per (assignee, template)
    """

    __tablename__ = "task_assignments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'submitted', 'approved', 'rejected')",
            name="check_assignment_status",
        ),
        CheckConstraint(
            "(status = 'pending') = (submitted_at IS NULL)",
            name="check_assignment_submitted_at",
        ),
        CheckConstraint(
            "(status IN ('approved', 'rejected')) = (reviewed_at IS NOT NULL)",
            name="check_assignment_reviewed_at",
        ),
        Index(
            "uq_task_assignments_open",
            "assignee_id",
            "task_template_id",
            unique=True,
            postgresql_where=OPEN_STATUS_CLAUSE,
            sqlite_where=OPEN_STATUS_CLAUSE,
        ),
        Index(
            "ix_task_assignments_assignee_status_reviewed",
            "assignee_id",
            "status",
            "reviewed_at",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Owners
    task_template_id: Mapped[int] = mapped_column(
        ForeignKey("task_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assignee_id: Mapped[int] = mapped_column(
        ForeignKey("volunteer_profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AssignmentStatus.PENDING.value,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    due_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Submission and review
    submission_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submission_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    xp_awarded: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TaskAssignment(id={self.id}, template={self.task_template_id}, "
            f"assignee={self.assignee_id}, status={self.status})>"
        )

    @property
    def is_terminal(self) -> bool:
        """Approved and rejected assignments are final."""
        return AssignmentStatus(self.status).is_terminal

    def is_overdue(self, now: datetime) -> bool:
        """Only pending assignments past their due date are overdue."""
        return (
            self.status == AssignmentStatus.PENDING
            and now > self.due_date
        )

    def days_until_due(self, now: datetime) -> int:
        """Whole days left until due date (negative when past)."""
        return math.ceil((self.due_date - now).total_seconds() / 86400)

    @property
    def completion_time_days(self) -> float | None:
        """Days between assignment and submission."""
        if self.submitted_at is None:
            return None
        elapsed = (self.submitted_at - self.assigned_at).total_seconds()
        return round(elapsed / 86400, 1)
