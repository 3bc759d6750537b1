"""Core utilities and shared functionality."""

from folio.core.timezone import (
    get_timezone,
    now_local,
    to_local,
    parse_datetime_local,
)
from folio.core.exceptions import (
    AppError,
    NotFoundError,
    ActivePortfolioNotFoundError,
)
from folio.core.numbers import (
    ZERO,
    HUNDRED,
    to_decimal,
    to_optional_decimal,
    is_finite,
)

__all__ = [
    "get_timezone",
    "now_local",
    "to_local",
    "parse_datetime_local",
    "AppError",
    "NotFoundError",
    "ActivePortfolioNotFoundError",
    "ZERO",
    "HUNDRED",
    "to_decimal",
    "to_optional_decimal",
    "is_finite",
]
