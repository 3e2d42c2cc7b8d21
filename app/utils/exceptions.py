"""
Exception handling utilities.

Defines categorized exception types for the rewards engine and the
helpers that decide how each category is handled.
"""

from sqlalchemy.exc import DBAPIError, OperationalError


class RewardsEngineError(Exception):
    """Base class for all engine errors."""

    code = "engine_error"

    def __init__(self, message: str | None = None, **context) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        self.context = context
        super().__init__(self.message)


# Validation: bad input shape, rejected before any state change

class ValidationError(RewardsEngineError):
    """Invalid input."""

    code = "validation_error"


class InvalidProfileError(ValidationError):
    """Unknown or retired volunteer profile."""

    code = "invalid_profile"


class NotFoundError(ValidationError):
    """Referenced entity does not exist."""

    code = "not_found"


# Ineligibility: business-rule guard failed, no retry needed

class IneligibilityError(RewardsEngineError):
    """Business rule prevents the operation."""

    code = "ineligible"


class NotEligibleError(IneligibilityError):
    """Volunteer level is below the template requirement."""

    code = "not_eligible"


class AlreadyAssignedError(IneligibilityError):
    """Volunteer already has an open assignment for this template."""

    code = "already_assigned"


class TemplateUnavailableError(IneligibilityError):
    """Template is not published."""

    code = "template_unavailable"


class NotPendingError(IneligibilityError):
    """Assignment is not pending."""

    code = "not_pending"


class OverdueError(IneligibilityError):
    """Assignment is past its due date."""

    code = "overdue"


class NotSubmittedError(IneligibilityError):
    """Assignment has not been submitted for review."""

    code = "not_submitted"


class SelfReferralError(IneligibilityError):
    """A volunteer cannot refer themselves."""

    code = "self_referral"


class ReferralCycleError(IneligibilityError):
    """Referral would create a cycle in the upline chain."""

    code = "referral_cycle"


class AlreadyReferredError(IneligibilityError):
    """Volunteer already has an upline."""

    code = "already_referred"


# Concurrency: transition lost the race, retryable by the user

class ConflictError(RewardsEngineError):
    """Concurrent modification detected."""

    code = "conflict"


# Idempotence: event already processed, treated as success

class DuplicateEventError(RewardsEngineError):
    """Event reference was already processed."""

    code = "duplicate_reference"


# Infrastructure: retried by the job runner

class TransientInfraError(RewardsEngineError):
    """Temporary storage failure."""

    code = "transient_infra"


class LedgerImmutabilityError(RewardsEngineError):
    """Attempt to modify an append-only ledger entry."""

    code = "ledger_immutable"


class SecurityError(RewardsEngineError):
    """Raised when a security-critical check fails."""

    code = "security_error"


# Exception categories based on handling strategy

# Treated as success - idempotent replays
SAFE_TO_IGNORE = (
    DuplicateEventError,
)

# Must be retried with backoff
RETRYABLE = (
    TransientInfraError,
    OperationalError,
    DBAPIError,
)

# Reported to the caller, never retried
MUST_RAISE = (
    ValidationError,
    IneligibilityError,
    ConflictError,
    SecurityError,
)


def is_safe_to_ignore(exc: Exception) -> bool:
    """
    Check if exception can be safely ignored.

    Args:
        exc: Exception to check

    Returns:
        True if exception is safe to ignore
    """
    return isinstance(exc, SAFE_TO_IGNORE)


def is_retryable(exc: Exception) -> bool:
    """
    Check if exception should be retried by the job runner.

    Args:
        exc: Exception to check

    Returns:
        True if exception is transient
    """
    return isinstance(exc, RETRYABLE)


def must_raise(exc: Exception) -> bool:
    """
    Check if exception must be reported to the caller.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be raised
    """
    return isinstance(exc, MUST_RAISE)
