"""Pydantic schema for quotes supplied by the live-price collaborator."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class LivePriceQuote(BaseModel):
    """
    Quote for one ticker.

    price is in the quote currency; when original_currency is a minor unit
    (GBX/GBp) the reducer divides by 100 before storing it as live_price.
    """

    price: Decimal = Field(..., description="Last price")
    change: Decimal = Field(default=Decimal("0"), description="Day change per unit")
    change_percent: Decimal = Field(default=Decimal("0"), description="Day change percent")
    updated: datetime = Field(..., description="Quote timestamp")
    original_price: Optional[Decimal] = Field(default=None, description="Price as quoted")
    original_currency: Optional[str] = Field(default=None, description="Quote currency")
    conversion_rate: Optional[Decimal] = Field(default=None, description="FX rate applied")
