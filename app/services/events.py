"""
Notification facts.

Immutable facts the engine hands to the notification collaborator once
the transaction that produced them has committed.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from loguru import logger


@dataclass(frozen=True)
class TaskSubmitted:
    assignment_id: int
    profile_id: int


@dataclass(frozen=True)
class TaskApproved:
    assignment_id: int
    profile_id: int
    xp_awarded: int


@dataclass(frozen=True)
class TaskRejected:
    assignment_id: int
    profile_id: int
    notes: str | None = None


@dataclass(frozen=True)
class VolunteerLeveledUp:
    profile_id: int
    old_level: int
    new_level: int


@dataclass(frozen=True)
class CommissionEarned:
    profile_id: int
    amount: Decimal
    level: int
    reference: str


EngineEvent = (
    TaskSubmitted
    | TaskApproved
    | TaskRejected
    | VolunteerLeveledUp
    | CommissionEarned
)


class EventPublisher(Protocol):
    """Receives facts after commit."""

    async def publish(self, event: EngineEvent) -> None: ...


class LoggingEventPublisher:
    """Default publisher: writes each fact to the log."""

    def __init__(self) -> None:
        self.logger = logger.bind(service="LoggingEventPublisher")

    async def publish(self, event: EngineEvent) -> None:
        self.logger.info(
            f"Event {type(event).__name__}",
            extra={"event": repr(event)},
        )


class CollectingEventPublisher:
    """Keeps published facts in memory."""

    def __init__(self) -> None:
        self.events: list[EngineEvent] = []

    async def publish(self, event: EngineEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[EngineEvent]:
        return [e for e in self.events if isinstance(e, event_type)]
