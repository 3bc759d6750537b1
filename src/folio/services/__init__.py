"""Service layer - reducer, selectors and supporting calculations."""

from folio.services.calculation_cache import CalculationCache, get_calculation_cache
from folio.services.reducer import PortfolioReducer
from folio.services.selectors import PortfolioSelectors
from folio.services.holdings_diff import diff_holdings, summarize_diff, accepted_import_rows

__all__ = [
    "CalculationCache",
    "get_calculation_cache",
    "PortfolioReducer",
    "PortfolioSelectors",
    "diff_holdings",
    "summarize_diff",
    "accepted_import_rows",
]
