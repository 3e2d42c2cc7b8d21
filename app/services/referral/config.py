"""
Referral system configuration.

Contains constants for the referral chain and the advisory fraud checks.
"""

from decimal import Decimal

from calculator.constants import MAX_REFERRAL_DEPTH

# Commission chain depth (levels 1..5)
REFERRAL_DEPTH = MAX_REFERRAL_DEPTH

# Ancestor search used only to reject cycles when building a chain
CYCLE_CHECK_DEPTH = 32

# Advisory fraud thresholds
RAPID_PURCHASE_LIMIT = 10
RAPID_PURCHASE_WINDOW_HOURS = 1
UNUSUAL_SALE_FACTOR = Decimal("10")
SALE_AVERAGE_WINDOW_DAYS = 30
DEFAULT_AVERAGE_SALE = Decimal("100")
FRESH_UPLINE_LIMIT = 2
FRESH_UPLINE_WINDOW_HOURS = 24

# Referral code alphabet
REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
