"""Portfolio actions accepted by the reducer.

Each action is a small dataclass tagged with ACTION_TYPE. The reducer
dispatches on the action class; anything else is returned unchanged.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Optional, Union

from folio.core.numbers import to_decimal
from folio.domain.models import (
    AppState,
    BudgetDomain,
    BudgetLimit,
    FilterKey,
    Holding,
    ListDomain,
    Portfolio,
    PortfolioType,
    TradeType,
)
from folio.schemas import HoldingImportRow, LivePriceQuote, TradeImportRow


# -----------------------------------------------------------------------------
# Holdings
# -----------------------------------------------------------------------------


@dataclass
class AddHolding:
    ACTION_TYPE: ClassVar[str] = "add-holding"

    holding: Optional[Holding] = None


@dataclass
class DeleteHolding:
    ACTION_TYPE: ClassVar[str] = "delete-holding"

    id: str


@dataclass
class DuplicateHolding:
    ACTION_TYPE: ClassVar[str] = "duplicate-holding"

    id: str


@dataclass
class UpdateHolding:
    """Patch a holding; keys are Holding field names."""

    ACTION_TYPE: ClassVar[str] = "update-holding"

    id: str
    patch: dict[str, Any] = field(default_factory=dict)


@dataclass
class SetTotal:
    ACTION_TYPE: ClassVar[str] = "set-total"

    total: Decimal

    def __post_init__(self) -> None:
        self.total = to_decimal(self.total)


@dataclass
class SetHoldingTargetPercent:
    ACTION_TYPE: ClassVar[str] = "set-holding-target-percent"

    holding_id: str
    target_pct: Optional[Decimal] = None


# -----------------------------------------------------------------------------
# Filters, budgets and lists
# -----------------------------------------------------------------------------


@dataclass
class SetFilter:
    ACTION_TYPE: ClassVar[str] = "set-filter"

    key: FilterKey
    value: Optional[str] = None


@dataclass
class SetBudget:
    """Set a budget limit; None or an all-empty limit clears the key."""

    ACTION_TYPE: ClassVar[str] = "set-budget"

    domain: BudgetDomain
    key: str
    limit: Optional[BudgetLimit] = None


@dataclass
class SetThemeSection:
    ACTION_TYPE: ClassVar[str] = "set-theme-section"

    theme: str
    section: Optional[str] = None


@dataclass
class AddListItem:
    ACTION_TYPE: ClassVar[str] = "add-list-item"

    domain: ListDomain
    value: str
    section: Optional[str] = None  # Section for a new theme


@dataclass
class RenameListItem:
    ACTION_TYPE: ClassVar[str] = "rename-list-item"

    domain: ListDomain
    previous: str
    next: str


@dataclass
class RemoveListItem:
    ACTION_TYPE: ClassVar[str] = "remove-list-item"

    domain: ListDomain
    value: str


@dataclass
class ReorderList:
    ACTION_TYPE: ClassVar[str] = "reorder-list"

    domain: ListDomain
    from_index: int
    to_index: int


# -----------------------------------------------------------------------------
# Imports and trades
# -----------------------------------------------------------------------------


@dataclass
class ImportHoldings:
    ACTION_TYPE: ClassVar[str] = "import-holdings"

    rows: list[HoldingImportRow]
    account: Optional[str] = None  # Overrides every row's account


@dataclass
class RecordTrade:
    ACTION_TYPE: ClassVar[str] = "record-trade"

    holding_id: str
    type: TradeType
    price: Decimal
    qty: Decimal
    date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = TradeType(self.type)
        self.price = to_decimal(self.price)
        self.qty = to_decimal(self.qty)


@dataclass
class ImportTrades:
    ACTION_TYPE: ClassVar[str] = "import-trades"

    trades: list[TradeImportRow]


# -----------------------------------------------------------------------------
# Portfolio lifecycle
# -----------------------------------------------------------------------------


@dataclass
class SetActivePortfolio:
    ACTION_TYPE: ClassVar[str] = "set-active-portfolio"

    id: str


@dataclass
class RenamePortfolio:
    ACTION_TYPE: ClassVar[str] = "rename-portfolio"

    id: str
    name: str


@dataclass
class AddPortfolio:
    ACTION_TYPE: ClassVar[str] = "add-portfolio"

    id: Optional[str] = None  # Generated when omitted
    name: Optional[str] = None
    portfolio_type: PortfolioType = PortfolioType.ACTUAL
    parent_id: Optional[str] = None


@dataclass
class RemovePortfolio:
    ACTION_TYPE: ClassVar[str] = "remove-portfolio"

    id: str


@dataclass
class CreateDraftPortfolio:
    ACTION_TYPE: ClassVar[str] = "create-draft-portfolio"

    parent_id: str
    name: Optional[str] = None


@dataclass
class PromoteDraftToActual:
    ACTION_TYPE: ClassVar[str] = "promote-draft-to-actual"

    draft_id: str


# -----------------------------------------------------------------------------
# Playground, restore and settings
# -----------------------------------------------------------------------------


@dataclass
class SetPlaygroundEnabled:
    ACTION_TYPE: ClassVar[str] = "set-playground-enabled"

    enabled: bool


@dataclass
class RestorePlayground:
    ACTION_TYPE: ClassVar[str] = "restore-playground"


@dataclass
class RestoreState:
    ACTION_TYPE: ClassVar[str] = "restore-state"

    state: AppState


@dataclass
class RestorePortfolioBackup:
    ACTION_TYPE: ClassVar[str] = "restore-portfolio-backup"

    portfolio: Portfolio


@dataclass
class UpdatePortfolioSettings:
    """Patch the active portfolio's settings; keys are PortfolioSettings fields."""

    ACTION_TYPE: ClassVar[str] = "update-portfolio-settings"

    settings: dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateLivePrices:
    """Quotes keyed by ticker, exactly as holdings spell it."""

    ACTION_TYPE: ClassVar[str] = "update-live-prices"

    prices: dict[str, LivePriceQuote] = field(default_factory=dict)


PortfolioAction = Union[
    AddHolding,
    DeleteHolding,
    DuplicateHolding,
    UpdateHolding,
    SetTotal,
    SetHoldingTargetPercent,
    SetFilter,
    SetBudget,
    SetThemeSection,
    AddListItem,
    RenameListItem,
    RemoveListItem,
    ReorderList,
    ImportHoldings,
    RecordTrade,
    ImportTrades,
    SetActivePortfolio,
    RenamePortfolio,
    AddPortfolio,
    RemovePortfolio,
    CreateDraftPortfolio,
    PromoteDraftToActual,
    SetPlaygroundEnabled,
    RestorePlayground,
    RestoreState,
    RestorePortfolioBackup,
    UpdatePortfolioSettings,
    UpdateLivePrices,
]
