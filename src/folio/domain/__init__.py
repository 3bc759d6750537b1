"""Domain layer - pure portfolio models, actions and views with no I/O."""

from folio.domain.models import (
    AppState,
    PlaygroundState,
    Portfolio,
    PortfolioSettings,
    Lists,
    Budgets,
    BudgetLimit,
    Holding,
    Trade,
    PortfolioType,
    TradeType,
    AssetType,
    Exchange,
    ListDomain,
    BudgetDomain,
    FilterKey,
    DiffType,
)

__all__ = [
    "AppState",
    "PlaygroundState",
    "Portfolio",
    "PortfolioSettings",
    "Lists",
    "Budgets",
    "BudgetLimit",
    "Holding",
    "Trade",
    "PortfolioType",
    "TradeType",
    "AssetType",
    "Exchange",
    "ListDomain",
    "BudgetDomain",
    "FilterKey",
    "DiffType",
]
