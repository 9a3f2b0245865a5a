from __future__ import annotations

from decimal import Decimal


def decimal_str(value: Decimal | None) -> str | None:
    """JSON form for Numeric columns: plain notation, trailing zeros dropped."""
    if value is None:
        return None
    return format(value.normalize(), "f")
