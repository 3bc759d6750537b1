"""Decimal coercion helpers shared by models and calculations."""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce int/float/str/Decimal to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"). Unparseable
    input becomes NaN rather than raising; callers sanitize NaN.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("NaN")


def to_optional_decimal(value: Any) -> Optional[Decimal]:
    """Coerce to Decimal, keeping None as None."""
    if value is None:
        return None
    return to_decimal(value)


def is_finite(value: Optional[Decimal]) -> bool:
    """Return True for a finite (non-NaN, non-infinite) Decimal."""
    return value is not None and value.is_finite()
