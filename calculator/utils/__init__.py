"""Formatting helpers for calculator results."""

from calculator.utils.formatters import (
    format_multiplier,
    format_percentage,
    format_rate,
)

__all__ = [
    "format_multiplier",
    "format_percentage",
    "format_rate",
]
