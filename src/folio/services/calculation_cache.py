"""Memoization tables for derived portfolio calculations.

Three tables are kept, each bounded and keyed by a fingerprint of the slice
of portfolio state the calculation reads:

- live: per-holding values and portfolio/section/theme totals
- target: target hierarchy and per-holding target distances
- derived: the final HoldingDerived list (composed of the two above)

Entries are never updated when state changes; the reducer invalidates the
affected tables instead.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional

from folio.config.settings import get_settings
from folio.core.numbers import is_finite
from folio.domain.models import Portfolio
from folio.domain.views import (
    HoldingValue,
    LivePortfolioTotals,
    ProfitLoss,
    TargetHierarchy,
    TargetResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10


@dataclass
class LiveResult:
    """Valuation of one holding plus its profit/loss, if it has a cost basis."""

    value: HoldingValue
    profit_loss: Optional[ProfitLoss] = None


@dataclass
class LiveCacheEntry:
    live_totals: LivePortfolioTotals
    live_results: dict[str, LiveResult] = field(default_factory=dict)


@dataclass
class TargetCacheEntry:
    """Target calculations; only valid against the live totals of live_key."""

    live_key: str
    target_hierarchy: Optional[TargetHierarchy]
    target_results: dict[str, TargetResult] = field(default_factory=dict)


def prune_cache(mapping: dict, max_size: int = DEFAULT_MAX_ENTRIES) -> list:
    """
    Drop the oldest-inserted keys until mapping holds at most max_size.

    Returns the evicted keys.
    """
    overflow = len(mapping) - max_size
    if overflow <= 0:
        return []
    evicted = list(mapping)[:overflow]
    for key in evicted:
        del mapping[key]
    return evicted


class BoundedCache:
    """
    Insertion-ordered map with a size bound.

    Eviction is by insertion order, not access order: reading a key does
    not refresh it, and re-setting an existing key keeps its position.
    """

    def __init__(self, name: str, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.name = name
        self.max_entries = max_entries
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store value under key, then evict the oldest entries past the bound."""
        self._entries[key] = value
        evicted = prune_cache(self._entries, self.max_entries)
        if evicted:
            logger.debug("Evicted %d entries from %s cache", len(evicted), self.name)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


class CalculationCache:
    """
    The three calculation tables and their invalidation API.

    One instance is shared per process (see get_calculation_cache); tests
    build their own. Not thread-safe: confine to the thread that dispatches
    actions.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is None:
            max_entries = get_settings().cache_max_entries
        self.live = BoundedCache("live", max_entries)
        self.target = BoundedCache("target", max_entries)
        self.derived = BoundedCache("derived", max_entries)

    def invalidate_live_calculations(self) -> None:
        """Clear the live and derived tables (prices, quantities changed)."""
        self.live.clear()
        self.derived.clear()
        logger.debug("Invalidated live calculations")

    def invalidate_target_calculations(self) -> None:
        """Clear the target and derived tables (targets or budgets changed)."""
        self.target.clear()
        self.derived.clear()
        logger.debug("Invalidated target calculations")

    def invalidate_all_calculations(self) -> None:
        """Clear every table."""
        self.live.clear()
        self.target.clear()
        self.derived.clear()
        logger.debug("Invalidated all calculations")


# Global cache instance (can be replaced at runtime)
_calculation_cache: Optional[CalculationCache] = None


def get_calculation_cache() -> CalculationCache:
    """Return the process-wide calculation cache."""
    global _calculation_cache
    if _calculation_cache is None:
        _calculation_cache = CalculationCache()
    return _calculation_cache


def reset_calculation_cache() -> None:
    """Drop the process-wide cache so the next call builds a fresh one."""
    global _calculation_cache
    _calculation_cache = None


# -----------------------------------------------------------------------------
# Fingerprints
# -----------------------------------------------------------------------------


def _fmt(value: Any) -> str:
    """Render a field for a fingerprint; None, enums and equal Decimals get stable spellings."""
    if value is None:
        return "None"
    if isinstance(value, Decimal) and is_finite(value):
        # 100, 100.00 and 1E+2 compare equal and must share a key
        return "0" if value == 0 else format(value.normalize(), "f")
    return str(getattr(value, "value", value))


def _budget_map(budgets: dict) -> dict:
    return {
        key: {
            "amount": _fmt(limit.amount),
            "percent": _fmt(limit.percent),
            "percent_of_section": _fmt(limit.percent_of_section),
        }
        for key, limit in budgets.items()
    }


def generate_live_cache_key(portfolio: Portfolio) -> str:
    """Fingerprint of every holding field that feeds valuation and P/L."""
    parts = [
        "-".join(
            _fmt(v)
            for v in (
                h.id,
                h.qty,
                h.price,
                h.live_price,
                h.avg_cost,
                h.day_change,
                h.day_change_percent,
                h.include,
                h.section,
                h.theme,
                h.account,
                h.asset_type,
                h.exchange,
            )
        )
        for h in portfolio.holdings
    ]
    return "live:" + "|".join(parts)


def generate_target_cache_key(portfolio: Portfolio) -> str:
    """
    Fingerprint of the inputs to the target hierarchy.

    Covers holdings' target fields, the target portfolio value, section and
    theme budgets, the theme -> section mapping and the section/theme lists
    the hierarchy iterates over.
    """
    holdings_key = "|".join(
        "-".join(
            _fmt(v)
            for v in (
                h.id,
                h.target_pct,
                h.include,
                h.section,
                h.theme,
                h.account,
                h.asset_type,
                h.exchange,
            )
        )
        for h in portfolio.holdings
    )
    target_value = _fmt(portfolio.settings.target_portfolio_value or 0)
    budgets_key = json.dumps(
        {
            "sections": _budget_map(portfolio.budgets.sections),
            "themes": _budget_map(portfolio.budgets.themes),
        },
        sort_keys=True,
        default=str,
    )
    lists_key = json.dumps(
        {
            "sections": portfolio.lists.sections,
            "themes": portfolio.lists.themes,
            "theme_sections": portfolio.lists.theme_sections,
        },
        sort_keys=True,
    )
    return f"target:{holdings_key}-{target_value}-{budgets_key}-{lists_key}"


def generate_derived_cache_key(live_key: str, target_key: str) -> str:
    return f"derived:{live_key}|{target_key}"
