"""View models for derived portfolio calculations."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from folio.domain.models import Holding


@dataclass
class HoldingValue:
    """Valuation of a single holding (live price wins over manual price)."""

    value: Decimal
    live_value: Decimal
    manual_value: Decimal
    day_change_value: Decimal
    used_live_price: bool


@dataclass
class ProfitLoss:
    """Gain/loss of a position against its average cost."""

    total_gain: Decimal
    total_gain_percent: Decimal
    day_change_value: Decimal
    day_change_percent: Decimal
    cost_basis: Decimal
    market_value: Decimal


@dataclass
class LivePortfolioTotals:
    """Included-holding totals by portfolio, section and theme."""

    total_allocated_value: Decimal = field(default_factory=lambda: Decimal("0"))
    section_totals: dict[str, Decimal] = field(default_factory=dict)
    theme_totals: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class SectionTarget:
    percentage: Decimal
    target_value: Decimal
    allocated_value: Decimal


@dataclass
class ThemeTarget:
    section: str
    percentage: Decimal
    percentage_of_portfolio: Decimal
    target_value: Decimal
    allocated_value: Decimal


@dataclass
class TargetHierarchy:
    """Target values resolved portfolio -> section -> theme."""

    portfolio_target: Decimal
    section_targets: dict[str, SectionTarget] = field(default_factory=dict)
    theme_targets: dict[str, ThemeTarget] = field(default_factory=dict)


@dataclass
class TargetResult:
    """Per-holding distance from its target share of the theme."""

    target_value: Optional[Decimal] = None
    target_value_diff: Optional[Decimal] = None
    target_pct_diff: Optional[Decimal] = None


@dataclass
class HoldingDerived:
    """Holding plus every value the UI shows next to it."""

    holding: Holding
    value: Decimal
    live_value: Decimal
    manual_value: Decimal
    day_change_value: Decimal
    used_live_price: bool
    pct_of_total: Decimal
    pct_of_section: Decimal
    section_total: Decimal
    pct_of_theme: Decimal
    target_value: Optional[Decimal] = None
    target_value_diff: Optional[Decimal] = None
    target_pct_diff: Optional[Decimal] = None
    profit_loss: Optional[ProfitLoss] = None


@dataclass
class BreakdownEntry:
    """Single slice of a section/account/theme breakdown."""

    label: str
    value: Decimal
    percentage: Decimal


@dataclass
class BudgetRemaining:
    """Usage of one budgeted label against its limits."""

    label: str
    used: Decimal
    percentage: Decimal
    amount_limit: Optional[Decimal] = None
    amount_remaining: Optional[Decimal] = None
    percent_limit: Optional[Decimal] = None
    percent_remaining: Optional[Decimal] = None
    section: Optional[str] = None
    section_percent_limit: Optional[Decimal] = None


@dataclass
class BudgetRemainingView:
    """Budget usage for every section, account and theme."""

    sections: list[BudgetRemaining] = field(default_factory=list)
    accounts: list[BudgetRemaining] = field(default_factory=list)
    themes: list[BudgetRemaining] = field(default_factory=list)
