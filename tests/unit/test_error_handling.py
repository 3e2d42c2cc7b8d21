"""
Unit tests for the error taxonomy, the transaction decorator and the
job retry policy.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.services.base_service import BaseService, transaction
from app.utils.exceptions import (
    AlreadyAssignedError,
    ConflictError,
    DuplicateEventError,
    InvalidProfileError,
    NotEligibleError,
    RewardsEngineError,
    TransientInfraError,
    ValidationError,
    is_retryable,
    is_safe_to_ignore,
    must_raise,
)
from jobs.broker import MAX_RETRIES, should_retry


class TestExceptionTaxonomy:
    """Tests for error categories."""

    def test_errors_carry_code_and_context(self):
        """Each error has a stable code and keeps its context."""
        error = NotEligibleError("Level too low", level=1, level_required=3)
        assert error.code == "not_eligible"
        assert error.context == {"level": 1, "level_required": 3}
        assert str(error) == "Level too low"

    def test_default_message_is_docstring(self):
        """Without a message the class docstring is used."""
        assert str(ConflictError()) == "Concurrent modification detected."

    def test_invalid_profile_is_validation(self):
        """Unknown profiles are a validation failure."""
        assert isinstance(InvalidProfileError(), ValidationError)

    @pytest.mark.parametrize(
        "error",
        [ValidationError(), AlreadyAssignedError(), ConflictError()],
    )
    def test_business_errors_must_raise(self, error):
        """Business outcomes are reported to the caller."""
        assert must_raise(error)
        assert not is_retryable(error)

    def test_duplicate_is_safe_to_ignore(self):
        """Replays are successes."""
        assert is_safe_to_ignore(DuplicateEventError())
        assert not must_raise(DuplicateEventError())

    def test_transient_is_retryable(self):
        """Infrastructure errors are retried."""
        assert is_retryable(TransientInfraError())
        assert isinstance(TransientInfraError(), RewardsEngineError)


class SampleService(BaseService):
    """Service used to exercise the transaction decorator."""

    @transaction
    async def succeed(self):
        return "done"

    @transaction
    async def fail_with(self, error: Exception):
        raise error


class TestTransactionDecorator:
    """Tests for commit and rollback handling."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_session):
        """Successful calls are committed."""
        service = SampleService(mock_session)

        assert await service.succeed() == "done"
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_business_errors(self, mock_session):
        """Business errors roll back and propagate unchanged."""
        service = SampleService(mock_session)

        with pytest.raises(NotEligibleError):
            await service.fail_with(NotEligibleError())
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_operational_error_becomes_transient(self, mock_session):
        """Database outages are reported as transient."""
        service = SampleService(mock_session)
        outage = OperationalError("SELECT 1", {}, MagicMock())

        with pytest.raises(TransientInfraError) as exc_info:
            await service.fail_with(outage)
        assert exc_info.value.__cause__ is outage
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, mock_session):
        """Unexpected errors roll back and propagate."""
        service = SampleService(mock_session)

        with pytest.raises(RuntimeError):
            await service.fail_with(RuntimeError("boom"))
        mock_session.rollback.assert_awaited_once()


class TestRetryPolicy:
    """Tests for the dramatiq retry predicate."""

    def test_business_errors_not_retried(self):
        """Ineligibility and conflicts are final."""
        assert should_retry(0, ConflictError()) is False
        assert should_retry(0, ValidationError()) is False

    def test_transient_errors_retried(self):
        """Transient failures are retried."""
        assert should_retry(0, TransientInfraError()) is True

    def test_retries_are_bounded(self):
        """No retry after MAX_RETRIES attempts."""
        assert should_retry(MAX_RETRIES - 1, TransientInfraError()) is True
        assert should_retry(MAX_RETRIES, TransientInfraError()) is False

    def test_unexpected_errors_retried(self):
        """Unknown errors get the benefit of the doubt."""
        assert should_retry(1, RuntimeError("boom")) is True
