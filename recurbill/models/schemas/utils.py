"""Common utility functions for schemas."""
from decimal import Decimal


def format_amount(value: Decimal | None) -> str | None:
    """Render a money amount with exactly two decimals for API responses."""
    if value is None:
        return None
    return format(Decimal(value).quantize(Decimal("0.01")), "f")
