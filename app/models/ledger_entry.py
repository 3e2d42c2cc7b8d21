"""
LedgerEntry model.

Append-only record of token and XP movements. Balances are the sum of
entries; rows are never updated or deleted.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, assert_never

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import LedgerEntryType
from app.models.types import MoneyType, UTCDateTime
from app.utils.exceptions import LedgerImmutabilityError
from calculator.utils import format_rate


class LedgerEntry(Base):
    """
    LedgerEntry entity.

    Attributes:
        id: Primary key
        profile_id: Profile the movement belongs to
        entry_type: One of LedgerEntryType
        amount: Signed token amount
        xp_amount: XP carried by task completions
        description: Human-readable description
        external_reference: Idempotence key of the originating event
        extra_data: Free-form metadata (stored in the "metadata" column)
        created_at: When the entry was appended
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            "profile_id",
            "entry_type",
            "external_reference",
            name="uq_ledger_profile_type_reference",
        ),
        Index("ix_ledger_entries_profile_created", "profile_id", "created_at"),
        Index("ix_ledger_entries_type_created", "entry_type", "created_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    profile_id: Mapped[int] = mapped_column(
        ForeignKey("volunteer_profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    entry_type: Mapped[str] = mapped_column(
        String(40), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    xp_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    external_reference: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerEntry(id={self.id}, profile={self.profile_id}, "
            f"type={self.entry_type}, amount={self.amount})>"
        )


def describe_entry(entry_type: LedgerEntryType, **context: Any) -> str:
    """
    Default description for a ledger entry of ``entry_type``.

    Args:
        entry_type: Movement type
        **context: Values referenced by the description

    Returns:
        Human-readable description
    """
    match entry_type:
        case LedgerEntryType.TASK_COMPLETION:
            return f"Task completed: {context.get('task_title', 'task')}"
        case LedgerEntryType.REFERRAL_COMMISSION:
            level = context.get("level")
            rate = context.get("rate")
            suffix = f" ({format_rate(rate)})" if rate is not None else ""
            return (
                f"Level {level} referral commission from volunteer "
                f"#{context.get('source_profile_id')}{suffix}"
            )
        case LedgerEntryType.LEVEL_BONUS:
            return f"Level {context.get('level')} achievement bonus"
        case LedgerEntryType.ACTIVITY_MULTIPLIER_ADJUSTMENT:
            return (
                f"Activity multiplier adjusted to "
                f"{context.get('multiplier')}"
            )
        case LedgerEntryType.MANUAL_ADJUSTMENT:
            return f"Manual adjustment: {context.get('reason', 'n/a')}"
        case LedgerEntryType.TOKEN_PURCHASE:
            return (
                f"Token purchase - Transaction "
                f"#{context.get('external_reference')}"
            )
        case _:
            assert_never(entry_type)


@event.listens_for(LedgerEntry, "before_update")
def _prevent_ledger_update(mapper, connection, target: LedgerEntry) -> None:
    raise LedgerImmutabilityError(
        f"Ledger entry {target.id} is append-only and cannot be updated"
    )


@event.listens_for(LedgerEntry, "before_delete")
def _prevent_ledger_delete(mapper, connection, target: LedgerEntry) -> None:
    raise LedgerImmutabilityError(
        f"Ledger entry {target.id} is append-only and cannot be deleted"
    )
