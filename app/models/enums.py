"""
Enumerations shared by models and services.
"""

from enum import StrEnum


class TaskTemplateStatus(StrEnum):
    """Task template publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class TaskFrequency(StrEnum):
    """How often a template is expected to be performed."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AssignmentStatus(StrEnum):
    """Task assignment lifecycle: pending -> submitted -> approved | rejected."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Approved and rejected are final."""
        return self in (AssignmentStatus.APPROVED, AssignmentStatus.REJECTED)


NON_TERMINAL_ASSIGNMENT_STATUSES = (
    AssignmentStatus.PENDING,
    AssignmentStatus.SUBMITTED,
)


class ReviewDecision(StrEnum):
    """Reviewer decision for a submitted assignment."""

    APPROVE = "approve"
    REJECT = "reject"


class LedgerEntryType(StrEnum):
    """Closed set of ledger movement types."""

    TASK_COMPLETION = "task_completion"
    REFERRAL_COMMISSION = "referral_commission"
    LEVEL_BONUS = "level_bonus"
    ACTIVITY_MULTIPLIER_ADJUSTMENT = "activity_multiplier_adjustment"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    TOKEN_PURCHASE = "token_purchase"


class LeaderboardPeriod(StrEnum):
    """Time range used to rank volunteers."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"
