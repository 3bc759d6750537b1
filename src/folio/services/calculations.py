"""Pure financial math used by selectors and the reducer.

Every function is total: non-finite or out-of-range input resolves to a safe
default (usually zero) instead of raising.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from folio.core.numbers import HUNDRED, ZERO, is_finite, to_optional_decimal
from folio.domain.views import ProfitLoss

PENNY = Decimal("0.01")


@dataclass
class DeltaResult:
    """Value and percentage-point distance between two figures."""

    value_diff: Decimal
    pct_diff: Decimal


def clean_amount(value) -> Decimal:
    """Sanitize a quantity or price: None, NaN, infinite or negative -> 0."""
    value = to_optional_decimal(value)
    if not is_finite(value) or value < ZERO:
        return ZERO
    return value


def round_to_pennies(value: Decimal) -> Decimal:
    """Round to 2 decimal places for monetary values."""
    if not is_finite(value):
        return ZERO
    return value.quantize(PENNY, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning 0 for a zero or non-finite operand."""
    if not is_finite(numerator) or not is_finite(denominator) or denominator == ZERO:
        return ZERO
    return numerator / denominator


def calculate_value(price: Decimal, qty: Decimal) -> Decimal:
    """Return price x qty, or 0 for invalid input."""
    if not is_finite(price) or not is_finite(qty) or price < ZERO or qty < ZERO:
        return ZERO
    return price * qty


def calculate_qty_from_value(value: Decimal, price: Decimal) -> Decimal:
    """Return the quantity that buys value at price."""
    if not is_finite(value) or not is_finite(price) or value < ZERO or price <= ZERO:
        return ZERO
    return value / price


def calculate_pct_of_total(value: Decimal, total: Decimal) -> Decimal:
    """Return value as a percentage of total."""
    if not is_finite(value) or not is_finite(total) or total <= ZERO or value < ZERO:
        return ZERO
    return value / total * HUNDRED


def calculate_live_delta(current_value: Decimal, previous_value: Decimal) -> DeltaResult:
    """Change between a previous and current value, in money and percent."""
    if (
        not is_finite(current_value)
        or not is_finite(previous_value)
        or current_value < ZERO
        or previous_value < ZERO
    ):
        return DeltaResult(value_diff=ZERO, pct_diff=ZERO)

    value_diff = current_value - previous_value
    pct_diff = value_diff / previous_value * HUNDRED if previous_value > ZERO else ZERO
    return DeltaResult(value_diff=round_to_pennies(value_diff), pct_diff=round_to_pennies(pct_diff))


def calculate_target_delta(
    value: Decimal,
    total: Decimal,
    target_pct: Optional[Decimal],
) -> Optional[DeltaResult]:
    """
    Distance of value from target_pct of total.

    Returns None when there is no meaningful target (no target_pct, or an
    empty total).
    """
    if (
        target_pct is None
        or not is_finite(target_pct)
        or target_pct < ZERO
        or not is_finite(value)
        or not is_finite(total)
        or value < ZERO
        or total <= ZERO
    ):
        return None

    target_value = target_pct / HUNDRED * total
    current_pct = calculate_pct_of_total(value, total)
    return DeltaResult(
        value_diff=round_to_pennies(value - target_value),
        pct_diff=round_to_pennies(current_pct - target_pct),
    )


def calculate_cash_buffer_qty(locked_total: Decimal, non_cash_total: Decimal) -> Decimal:
    """
    Units of the 1.00-priced cash buffer needed to reach locked_total.

    Never negative: when other holdings already exceed the total the buffer
    is emptied.
    """
    if (
        not is_finite(locked_total)
        or not is_finite(non_cash_total)
        or locked_total < ZERO
        or non_cash_total < ZERO
    ):
        return ZERO
    return max(ZERO, round_to_pennies(locked_total - non_cash_total))


def calculate_profit_loss(
    current_price: Decimal,
    avg_cost: Decimal,
    quantity: Decimal,
    day_change: Optional[Decimal] = None,
    day_change_percent: Optional[Decimal] = None,
) -> ProfitLoss:
    """Gain/loss of a position; invalid inputs count as zero."""
    safe_price = clean_amount(current_price)
    safe_avg_cost = clean_amount(avg_cost)
    safe_quantity = clean_amount(quantity)
    safe_day_change = day_change if is_finite(day_change) else ZERO
    safe_day_change_percent = day_change_percent if is_finite(day_change_percent) else ZERO

    cost_basis = safe_avg_cost * safe_quantity
    market_value = safe_price * safe_quantity
    total_gain = market_value - cost_basis
    total_gain_percent = total_gain / cost_basis * HUNDRED if cost_basis > ZERO else ZERO

    return ProfitLoss(
        total_gain=round_to_pennies(total_gain),
        total_gain_percent=round_to_pennies(total_gain_percent),
        day_change_value=round_to_pennies(safe_day_change * safe_quantity),
        day_change_percent=safe_day_change_percent,
        cost_basis=round_to_pennies(cost_basis),
        market_value=round_to_pennies(market_value),
    )


def validate_percentage(
    percentage: Decimal,
    allow_zero: bool = True,
    max_percent: Decimal = HUNDRED,
) -> bool:
    """Return True if percentage lies within [0 (or 0.01), max_percent]."""
    if not is_finite(percentage):
        return False
    min_percent = ZERO if allow_zero else PENNY
    return min_percent <= percentage <= max_percent


def get_effective_price(live_price: Optional[Decimal], manual_price: Decimal) -> tuple[Decimal, bool]:
    """
    Price used for valuation and whether it came from the live quote.

    A finite, non-negative live price always wins.
    """
    if is_finite(live_price) and live_price >= ZERO:
        return live_price, True
    return clean_amount(manual_price), False
