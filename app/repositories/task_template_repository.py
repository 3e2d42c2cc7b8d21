"""
Task template repository.

Data access layer for TaskTemplate model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TaskTemplateStatus
from app.models.task_template import TaskTemplate
from app.repositories.base import BaseRepository


class TaskTemplateRepository(BaseRepository[TaskTemplate]):
    """Task template repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize task template repository."""
        super().__init__(TaskTemplate, session)

    async def get_available_for_level(
        self, organization_id: int, level: int
    ) -> list[TaskTemplate]:
        """
        Get published templates a volunteer of ``level`` may accept.

        Args:
            organization_id: Organization ID
            level: Volunteer level

        Returns:
            Templates ordered by required level, then title
        """
        stmt = (
            select(TaskTemplate)
            .where(
                TaskTemplate.organization_id == organization_id,
                TaskTemplate.status == TaskTemplateStatus.PUBLISHED.value,
                TaskTemplate.level_required <= level,
            )
            .order_by(TaskTemplate.level_required, TaskTemplate.title)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
