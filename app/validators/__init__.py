"""
Validators package.

Provides validation functions and input shapes for engine operations.
"""

from app.validators.payloads import SalePayload, SubmissionPayload
from app.validators.unified import (
    MAX_AMOUNT,
    MAX_REFERENCE_LENGTH,
    normalize_referral_code,
    validate_amount,
    validate_reference,
)


__all__ = [
    "MAX_AMOUNT",
    "MAX_REFERENCE_LENGTH",
    "validate_amount",
    "validate_reference",
    "normalize_referral_code",
    "SubmissionPayload",
    "SalePayload",
]
