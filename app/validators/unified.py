"""
Unified validators for engine input.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
"""

from decimal import Decimal, InvalidOperation

# Matches ledger_entries.external_reference
MAX_REFERENCE_LENGTH = 128

# Largest value a DECIMAL(18, 8) money column holds
MAX_AMOUNT = Decimal("9999999999.99999999")


def validate_amount(
    amount: str | int | float | Decimal | None,
    min_val: Decimal = Decimal("0"),
    max_val: Decimal | None = None,
    allow_zero: bool = False,
) -> tuple[bool, Decimal | None, str | None]:
    """
    Single amount validator.

    Args:
        amount: Amount to validate
        min_val: Minimum allowed value
        max_val: Maximum allowed value (optional)
        allow_zero: Accept an amount equal to ``min_val``

    Returns:
        Tuple of (is_valid, parsed_value, error_message)

    Examples:
        >>> validate_amount("100.50")
        (True, Decimal('100.50'), None)
        >>> validate_amount("-10")
        (False, None, 'Amount must be > 0')
    """
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        return False, None, "Amount is empty"

    if isinstance(amount, bool):
        return False, None, "Invalid amount format"

    if isinstance(amount, str):
        # Replace comma with dot
        amount = amount.strip().replace(",", ".")

    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        return False, None, "Invalid amount format"

    # Check if amount is finite
    if not value.is_finite():
        return False, None, "Amount must be a finite number"

    if allow_zero:
        if value < min_val:
            return False, None, f"Amount must be >= {min_val}"
    elif value <= min_val:
        return False, None, f"Amount must be > {min_val}"

    if max_val is not None and value > max_val:
        return False, None, f"Amount must be <= {max_val}"

    # Check precision (8 decimal places max)
    if value.as_tuple().exponent < -8:
        return False, None, "Amount has too many decimal places (maximum 8)"

    return True, value, None


def validate_reference(
    reference: str | None,
) -> tuple[bool, str | None, str | None]:
    """
    Validate an external idempotency reference.

    Examples:
        >>> validate_reference(" tx-42 ")
        (True, 'tx-42', None)
    """
    if reference is None or not isinstance(reference, str):
        return False, None, "External reference is required"

    reference = reference.strip()
    if not reference:
        return False, None, "External reference is required"

    if len(reference) > MAX_REFERENCE_LENGTH:
        return (
            False,
            None,
            f"External reference is too long "
            f"(maximum {MAX_REFERENCE_LENGTH})",
        )

    return True, reference, None


def normalize_referral_code(code: str) -> str:
    """
    Normalize a referral code for lookup.

    Examples:
        >>> normalize_referral_code(" ab12cd34 ")
        'AB12CD34'
    """
    return code.strip().upper()
