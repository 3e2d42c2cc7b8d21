"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.enums import (
    AssignmentStatus,
    LeaderboardPeriod,
    LedgerEntryType,
    ReviewDecision,
    TaskFrequency,
    TaskTemplateStatus,
)
from app.models.ledger_entry import LedgerEntry, describe_entry
from app.models.referral import Referral
from app.models.task_assignment import TaskAssignment
from app.models.task_template import TaskTemplate
from app.models.volunteer_profile import VolunteerProfile

__all__ = [
    # Base
    "Base",
    # Enums
    "AssignmentStatus",
    "LeaderboardPeriod",
    "LedgerEntryType",
    "ReviewDecision",
    "TaskFrequency",
    "TaskTemplateStatus",
    # Models
    "VolunteerProfile",
    "TaskTemplate",
    "TaskAssignment",
    "Referral",
    "LedgerEntry",
    "describe_entry",
]
