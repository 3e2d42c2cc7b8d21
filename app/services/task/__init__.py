"""
Task services package.

- assignment_service: accept, submit and review of task assignments
- statistics: read-only assignment and template views
"""

from app.services.task.assignment_service import (
    ReviewOutcome,
    TaskAssignmentService,
    compute_xp_award,
)
from app.services.task.statistics import (
    AssignmentSnapshot,
    TaskStatisticsService,
    TemplateStatistics,
)


__all__ = [
    "TaskAssignmentService",
    "ReviewOutcome",
    "compute_xp_award",
    "TaskStatisticsService",
    "AssignmentSnapshot",
    "TemplateStatistics",
]
