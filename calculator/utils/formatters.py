"""
Formatting utilities for multipliers, rates and percentages.

Used for ledger descriptions and log lines.
"""

from decimal import Decimal


def format_multiplier(value: float | Decimal) -> str:
    """
    Format an activity multiplier.

    Example:
        >>> format_multiplier(1.25)
        'x1.25'
    """
    return f"x{float(value):.2f}"


def format_percentage(
    value: float | Decimal,
    decimals: int = 2,
    show_sign: bool = False
) -> str:
    """
    Format a value that is already a percentage.

    Example:
        >>> format_percentage(12.5)
        '12.50%'
        >>> format_percentage(50.0, decimals=0, show_sign=True)
        '+50%'
    """
    sign = ""
    if show_sign and float(value) > 0:
        sign = "+"
    return f"{sign}{float(value):.{decimals}f}%"


def format_rate(rate: Decimal) -> str:
    """
    Format a fractional rate as a percentage.

    Example:
        >>> format_rate(Decimal("0.08"))
        '8%'
    """
    return format_percentage(rate * 100, decimals=0)
