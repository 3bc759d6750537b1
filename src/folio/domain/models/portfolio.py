"""Portfolio domain model and its value objects."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from folio.core.numbers import to_optional_decimal
from folio.domain.models.enums import BudgetDomain, ListDomain, PortfolioType
from folio.domain.models.holding import Holding
from folio.domain.models.trade import Trade


@dataclass
class BudgetLimit:
    """
    Allocation limit for a section, account or theme.

    percent is a share of the whole portfolio; percent_of_section only
    applies to themes.
    """

    amount: Optional[Decimal] = None
    percent: Optional[Decimal] = None
    percent_of_section: Optional[Decimal] = None

    def __post_init__(self) -> None:
        self.amount = to_optional_decimal(self.amount)
        self.percent = to_optional_decimal(self.percent)
        self.percent_of_section = to_optional_decimal(self.percent_of_section)

    @property
    def is_empty(self) -> bool:
        """Return True when no limit field is set."""
        return self.amount is None and self.percent is None and self.percent_of_section is None


@dataclass
class Budgets:
    """Sparse budget maps keyed by section, account and theme name."""

    sections: dict[str, BudgetLimit] = field(default_factory=dict)
    accounts: dict[str, BudgetLimit] = field(default_factory=dict)
    themes: dict[str, BudgetLimit] = field(default_factory=dict)

    def for_domain(self, domain: BudgetDomain) -> dict[str, BudgetLimit]:
        """Return the map for a budget domain."""
        return getattr(self, BudgetDomain(domain).value)


@dataclass
class Lists:
    """Ordered section/theme/account names plus the theme -> section mapping."""

    sections: list[str] = field(default_factory=list)
    themes: list[str] = field(default_factory=list)
    accounts: list[str] = field(default_factory=list)
    theme_sections: dict[str, str] = field(default_factory=dict)

    def for_domain(self, domain: ListDomain) -> list[str]:
        """Return the list for a list domain."""
        return getattr(self, ListDomain(domain).value)


@dataclass
class PortfolioSettings:
    """Per-portfolio settings."""

    currency: str = "GBP"
    lock_total: bool = False
    locked_total: Optional[Decimal] = None
    target_portfolio_value: Optional[Decimal] = None
    enable_live_prices: bool = True
    live_price_update_interval: int = 10

    def __post_init__(self) -> None:
        self.locked_total = to_optional_decimal(self.locked_total)
        self.target_portfolio_value = to_optional_decimal(self.target_portfolio_value)


@dataclass
class Portfolio:
    """
    Investment portfolio.

    Drafts are working copies of an actual portfolio and carry parent_id.
    The "Cash" section is always present and always last in lists.sections.
    """

    id: str
    name: str
    type: PortfolioType = PortfolioType.ACTUAL
    parent_id: Optional[str] = None
    lists: Lists = field(default_factory=Lists)
    holdings: list[Holding] = field(default_factory=list)
    settings: PortfolioSettings = field(default_factory=PortfolioSettings)
    budgets: Budgets = field(default_factory=Budgets)
    trades: list[Trade] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = PortfolioType(self.type)

    @property
    def is_draft(self) -> bool:
        """Return True if this portfolio is a draft."""
        return self.type == PortfolioType.DRAFT

    def find_holding(self, holding_id: str) -> Optional[Holding]:
        """Return the holding with the given id, if any."""
        return next((h for h in self.holdings if h.id == holding_id), None)
