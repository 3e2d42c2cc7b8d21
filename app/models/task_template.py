"""
TaskTemplate model.

A unit of assignable work. Only published templates can be accepted.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TaskFrequency, TaskTemplateStatus
from app.models.types import UTCDateTime


class TaskTemplate(Base):
    """TaskTemplate model - assignable volunteer work."""

    __tablename__ = "task_templates"
    __table_args__ = (
        CheckConstraint("xp_reward > 0", name="check_template_xp_positive"),
        CheckConstraint(
            "level_required > 0", name="check_template_level_positive"
        ),
        CheckConstraint(
            "deadline_days > 0", name="check_template_deadline_positive"
        ),
        Index("ix_task_templates_org_status", "organization_id", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    organization_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )

    # Content
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="general"
    )

    # Rewards and gating
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    level_required: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TaskTemplateStatus.DRAFT.value,
        index=True,
    )
    frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskFrequency.WEEKLY.value
    )
    deadline_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=7
    )

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
            f"<TaskTemplate(id={self.id}, title={self.title!r}, "
            f"status={self.status}, xp={self.xp_reward})>"
        )

    @property
    def is_published(self) -> bool:
        """Check if template can be assigned."""
        return self.status == TaskTemplateStatus.PUBLISHED
