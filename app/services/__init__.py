"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import BaseService, transaction

# Facade
from app.services.engine import RewardsEngine

# Core Services
from app.services.leaderboard_service import (
    LeaderboardEntry,
    LeaderboardService,
    VolunteerRank,
)
from app.services.ledger_service import LedgerService
from app.services.multiplier_service import MultiplierService, MultiplierUpdate
from app.services.profile_service import (
    ProfileService,
    ProfileSnapshot,
    Registration,
)
from app.services.sale_service import SaleService

# Referral Services
from app.services.referral import (
    ChainStatistics,
    CommissionDistributor,
    DistributionSummary,
    ReferralChainManager,
)

# Task Services
from app.services.task import (
    ReviewOutcome,
    TaskAssignmentService,
    TaskStatisticsService,
)

# Ripple
from app.services.ripple import RippleKind, RippleTask
from app.services.ripple_worker import RippleWorker


__all__ = [
    # Base
    "BaseService",
    "transaction",
    # Facade
    "RewardsEngine",
    # Core
    "LeaderboardEntry",
    "LeaderboardService",
    "VolunteerRank",
    "LedgerService",
    "MultiplierService",
    "MultiplierUpdate",
    "ProfileService",
    "ProfileSnapshot",
    "Registration",
    "SaleService",
    # Referral
    "ChainStatistics",
    "CommissionDistributor",
    "DistributionSummary",
    "ReferralChainManager",
    # Task
    "ReviewOutcome",
    "TaskAssignmentService",
    "TaskStatisticsService",
    # Ripple
    "RippleKind",
    "RippleTask",
    "RippleWorker",
]
