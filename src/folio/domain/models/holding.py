"""Holding domain model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from folio.core.numbers import to_decimal, to_optional_decimal
from folio.domain.models.enums import AssetType, Exchange

_DECIMAL_FIELDS = ("price", "qty")
_OPTIONAL_DECIMAL_FIELDS = (
    "target_pct",
    "avg_cost",
    "live_price",
    "day_change",
    "day_change_percent",
    "original_live_price",
    "conversion_rate",
)


@dataclass
class Holding:
    """
    A single position inside a portfolio.

    - price is the manual/basis price; live_price overrides it for valuation
    - target_pct is the desired share of the holding's theme
    - excluded holdings (include=False) are ignored by every aggregation
    - original_* fields keep the quote as received, for display only

    Treated as immutable: the reducer replaces holdings, never edits them.
    """

    id: str
    section: str = "Core"
    theme: str = "All"
    asset_type: AssetType = AssetType.ETF
    name: str = ""
    ticker: str = ""
    exchange: Exchange = Exchange.LSE
    account: str = "Brokerage"
    price: Decimal = field(default_factory=lambda: Decimal("0"))
    qty: Decimal = field(default_factory=lambda: Decimal("0"))
    include: bool = True
    target_pct: Optional[Decimal] = None
    avg_cost: Optional[Decimal] = None
    live_price: Optional[Decimal] = None
    live_price_updated: Optional[datetime] = None
    day_change: Optional[Decimal] = None
    day_change_percent: Optional[Decimal] = None
    original_live_price: Optional[Decimal] = None
    original_currency: Optional[str] = None
    conversion_rate: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if isinstance(self.asset_type, str):
            self.asset_type = AssetType(self.asset_type)
        if isinstance(self.exchange, str):
            self.exchange = Exchange(self.exchange)
        for name in _DECIMAL_FIELDS:
            setattr(self, name, to_decimal(getattr(self, name)))
        for name in _OPTIONAL_DECIMAL_FIELDS:
            setattr(self, name, to_optional_decimal(getattr(self, name)))

    @property
    def is_cash(self) -> bool:
        """Return True for cash holdings (never priced live)."""
        return self.asset_type == AssetType.CASH

    @property
    def effective_avg_cost(self) -> Decimal:
        """Average cost, falling back to the manual price."""
        return self.avg_cost if self.avg_cost is not None else self.price
