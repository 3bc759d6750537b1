"""Trade domain model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from folio.core.numbers import to_decimal
from folio.domain.models.enums import TradeType


@dataclass
class Trade:
    """
    Trade log entry.

    Recorded once and never edited; the matching holding's qty/avg_cost are
    updated in the same reducer step.
    """

    id: str
    holding_id: str
    type: TradeType
    date: datetime
    price: Decimal
    qty: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = TradeType(self.type)
        self.price = to_decimal(self.price)
        self.qty = to_decimal(self.qty)
