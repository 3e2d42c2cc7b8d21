"""
Base service class.

Provides common functionality for all service classes including session
management, logging and the transaction decorator.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.exceptions import (
    TransientInfraError,
    is_safe_to_ignore,
    must_raise,
)


# Type variable for generic decorator return types
T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Provides common functionality for all service classes:
    - Session management
    - Logging with bound service context
    - Transaction helpers
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to wrap method in transaction with automatic commit/rollback.

    Commits on success, rolls back on exception and re-raises. Database
    connectivity failures are re-raised as TransientInfraError so the job
    runner can retry them.

    Usage:
        @transaction
        async def my_service_method(self, ...):
            # Your code here
            pass

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except OperationalError as e:
            await self.rollback()
            self.logger.error(
                f"Database unavailable in {func.__name__}",
                extra={"error": str(e), "function": func.__name__},
            )
            raise TransientInfraError(
                f"Database operation failed in {func.__name__}"
            ) from e
        except Exception as e:
            await self.rollback()
            if must_raise(e) or is_safe_to_ignore(e):
                # Business outcome, reported to the caller
                self.logger.info(
                    f"Rejected {func.__name__}: {type(e).__name__}",
                    extra={"error": str(e), "function": func.__name__},
                )
            else:
                self.logger.error(
                    f"Transaction failed in {func.__name__}",
                    extra={
                        "error": str(e),
                        "function": func.__name__,
                    },
                )
            raise

    return wrapper
