"""Domain models package."""

from folio.domain.models.enums import (
    PortfolioType,
    TradeType,
    AssetType,
    Exchange,
    ListDomain,
    BudgetDomain,
    FilterKey,
    DiffType,
    LIST_FILTER_KEYS,
)
from folio.domain.models.holding import Holding
from folio.domain.models.trade import Trade
from folio.domain.models.portfolio import (
    BudgetLimit,
    Budgets,
    Lists,
    PortfolioSettings,
    Portfolio,
)
from folio.domain.models.state import PlaygroundState, AppState

__all__ = [
    "PortfolioType",
    "TradeType",
    "AssetType",
    "Exchange",
    "ListDomain",
    "BudgetDomain",
    "FilterKey",
    "DiffType",
    "LIST_FILTER_KEYS",
    "Holding",
    "Trade",
    "BudgetLimit",
    "Budgets",
    "Lists",
    "PortfolioSettings",
    "Portfolio",
    "PlaygroundState",
    "AppState",
]
