"""
Ripple tasks.

Operations that change rewards emit a bounded list of follow-up tasks
instead of calling each other. The list is handed to a dispatcher after
the primary transaction commits; workers consume it with retry.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Protocol


class RippleKind(StrEnum):
    """Kinds of deferred work."""

    RECALCULATE_MULTIPLIER = "recalculate_multiplier"
    DISTRIBUTE_COMMISSION = "distribute_commission"


@dataclass(frozen=True)
class RippleTask:
    """One unit of deferred work."""

    kind: RippleKind
    profile_id: int
    base_amount: Decimal | None = None
    reference: str | None = None

    @classmethod
    def recalculate(cls, profile_id: int) -> "RippleTask":
        return cls(RippleKind.RECALCULATE_MULTIPLIER, profile_id)

    @classmethod
    def distribute(
        cls, profile_id: int, base_amount: Decimal, reference: str
    ) -> "RippleTask":
        return cls(
            RippleKind.DISTRIBUTE_COMMISSION,
            profile_id,
            base_amount=base_amount,
            reference=reference,
        )


def recalculation_tasks(profile_ids: Iterable[int]) -> list[RippleTask]:
    """Recalculation tasks for distinct profiles, first occurrence order."""
    seen: set[int] = set()
    tasks = []
    for profile_id in profile_ids:
        if profile_id in seen:
            continue
        seen.add(profile_id)
        tasks.append(RippleTask.recalculate(profile_id))
    return tasks


class TaskDispatcher(Protocol):
    """Hands ripple tasks to whatever executes them."""

    def dispatch(self, tasks: Sequence[RippleTask]) -> None: ...


class CollectingDispatcher:
    """Keeps dispatched tasks in memory, in order."""

    def __init__(self) -> None:
        self.tasks: list[RippleTask] = []

    def dispatch(self, tasks: Sequence[RippleTask]) -> None:
        self.tasks.extend(tasks)

    def drain(self) -> list[RippleTask]:
        tasks, self.tasks = self.tasks, []
        return tasks
