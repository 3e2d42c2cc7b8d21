"""
Standard type definitions for database models.

Provides consistent types for monetary, multiplier and timestamp fields
across all models.
"""

from datetime import UTC, datetime

from sqlalchemy import DECIMAL, DateTime
from sqlalchemy.types import TypeDecorator

# Standard money type for token amounts, commissions, balances
# Precision: 18 digits total, 8 after decimal point
MoneyType = DECIMAL(18, 8)

# Activity multiplier, domain [1.0, max_multiplier]
# Precision: 6 digits total, 4 after decimal point
MultiplierType = DECIMAL(6, 4)

# Commission rate in (0, 1)
# Precision: 5 digits total, 4 after decimal point
RateType = DECIMAL(5, 4)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that always loads as UTC.

    Backends without timezone support return naive values; those are
    interpreted as UTC so comparisons with ``utc_now()`` stay valid.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        elif value is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value
