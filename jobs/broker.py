"""
Dramatiq broker configuration.

Redis-based message broker for the ripple task queue. The test
environment uses an in-memory StubBroker.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import (
    AgeLimit,
    Callbacks,
    CurrentMessage,
    Pipelines,
    Retries,
    ShutdownNotifications,
    TimeLimit,
)
from loguru import logger

from app.config.settings import settings
from app.utils.exceptions import is_retryable, must_raise

MAX_RETRIES = 3


def should_retry(retries_so_far: int, exception: Exception) -> bool:
    """
    Retry policy for ripple actors.

    Business errors are final; everything else is retried with
    exponential backoff up to MAX_RETRIES times.
    """
    if must_raise(exception):
        return False
    if retries_so_far >= MAX_RETRIES:
        return False
    if not is_retryable(exception):
        logger.warning(
            f"Retrying unexpected error: {type(exception).__name__}"
        )
    return True


def build_middleware() -> list:
    """
    Middleware stack, replacing the broker defaults.

    ShutdownNotifications: Allows workers to gracefully shutdown
    CurrentMessage: Provides access to current message in actors
    Retries: Exponential backoff for failed tasks
    """
    return [
        AgeLimit(),
        TimeLimit(),
        ShutdownNotifications(),
        Callbacks(),
        Pipelines(),
        CurrentMessage(),
        Retries(
            max_retries=MAX_RETRIES,
            min_backoff=1000,  # 1 second
            max_backoff=60000,  # 1 minute
            retry_when=should_retry,
        ),
    ]


def create_broker() -> dramatiq.Broker:
    """Create the broker for the current environment."""
    if settings.is_test:
        return StubBroker(middleware=build_middleware())

    return RedisBroker(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password if settings.redis_password else None,
        db=settings.redis_db,
        middleware=build_middleware(),
    )


broker = create_broker()

# Set as default broker
dramatiq.set_broker(broker)

logger.info(
    f"Dramatiq broker initialized: {type(broker).__name__} "
    f"(environment={settings.environment})"
)
