"""Enumerations for domain models."""

from enum import Enum


class PortfolioType(str, Enum):
    """Lifecycle of a portfolio."""

    ACTUAL = "actual"
    DRAFT = "draft"  # Working copy of an actual portfolio (has parent_id)


class TradeType(str, Enum):
    """Direction of a recorded trade."""

    BUY = "buy"
    SELL = "sell"


class AssetType(str, Enum):
    """Asset classes a holding can belong to."""

    ETF = "ETF"
    STOCK = "Stock"
    CRYPTO = "Crypto"
    CASH = "Cash"
    BOND = "Bond"
    FUND = "Fund"
    OTHER = "Other"


class Exchange(str, Enum):
    """Listing exchanges."""

    LSE = "LSE"
    NYSE = "NYSE"
    NASDAQ = "NASDAQ"
    AMS = "AMS"
    XETRA = "XETRA"
    XC = "XC"
    VI = "VI"
    OTHER = "Other"


class ListDomain(str, Enum):
    """Ordered name lists kept on a portfolio."""

    SECTIONS = "sections"
    THEMES = "themes"
    ACCOUNTS = "accounts"


class BudgetDomain(str, Enum):
    """Budget maps kept on a portfolio."""

    SECTIONS = "sections"
    ACCOUNTS = "accounts"
    THEMES = "themes"


class FilterKey(str, Enum):
    """Keys of the sparse AppState.filters map."""

    SECTION = "section"
    THEME = "theme"
    ACCOUNT = "account"


class DiffType(str, Enum):
    """Classification of an extracted holding against current holdings."""

    NEW = "new"
    CHANGED = "changed"
    REMOVED = "removed"  # Declared, never produced by diff_holdings
    UNCHANGED = "unchanged"


# Filter key cascaded when a list item is renamed or removed
LIST_FILTER_KEYS: dict[ListDomain, FilterKey] = {
    ListDomain.SECTIONS: FilterKey.SECTION,
    ListDomain.THEMES: FilterKey.THEME,
    ListDomain.ACCOUNTS: FilterKey.ACCOUNT,
}
