"""
Dramatiq worker entry point.

Run with ``dramatiq jobs.worker``. Importing this module configures
logging and declares every ripple actor on the broker.
"""

from app.config.logging import setup_logging

setup_logging()

from jobs.broker import broker  # noqa: E402, F401
from jobs.tasks.commission_distribution import distribute_commission  # noqa: E402, F401
from jobs.tasks.multiplier_recalculation import (  # noqa: E402, F401
    recalculate_all_multipliers,
    recalculate_multiplier,
)
