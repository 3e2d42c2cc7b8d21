"""
Referral services package.

Contains modular services for referral processing:
- config: Chain depth and fraud thresholds
- chain_manager: Upline retrieval and chain construction
- commission_distributor: Commission posting up a chain
- fraud_guard: Advisory checks for external sales
"""

from app.services.referral.chain_manager import (
    ChainStatistics,
    ReferralChainManager,
)
from app.services.referral.commission_distributor import (
    CommissionDistributor,
    CommissionPosting,
    DistributionSummary,
)
from app.services.referral.config import REFERRAL_DEPTH
from app.services.referral.fraud_guard import FraudFlag, FraudGuard


__all__ = [
    # Configuration
    "REFERRAL_DEPTH",
    # Chain
    "ChainStatistics",
    "ReferralChainManager",
    # Distribution
    "CommissionDistributor",
    "CommissionPosting",
    "DistributionSummary",
    # Fraud
    "FraudFlag",
    "FraudGuard",
]
