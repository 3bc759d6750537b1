"""Pydantic schemas for rows supplied by import collaborators."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from folio.core.timezone import parse_datetime_local, to_local
from folio.domain.models.enums import AssetType, Exchange, TradeType


class ExtractedHolding(BaseModel):
    """Holding as extracted from a broker statement or CSV, before diffing."""

    ticker: str = Field(default="", description="Ticker symbol as extracted")
    name: str = Field(default="", description="Instrument name")
    qty: Decimal = Field(default=Decimal("0"), description="Quantity held")
    price: Decimal = Field(default=Decimal("0"), description="Price per unit")
    asset_type: str = Field(default="Other", description="Free-text asset type")
    account: Optional[str] = Field(default=None, description="Account name, if known")
    exchange: Optional[str] = Field(default=None, description="Exchange code, if known")

    @field_validator("ticker", "name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class HoldingImportRow(BaseModel):
    """Row consumed by the import-holdings action."""

    name: str = Field(default="", description="Instrument name")
    ticker: str = Field(default="", description="Ticker symbol")
    price: Decimal = Field(default=Decimal("0"), description="Price per unit")
    qty: Decimal = Field(default=Decimal("0"), description="Quantity held")
    section: Optional[str] = Field(default=None, description="Section; defaults to 'Imported'")
    theme: Optional[str] = Field(default=None, description="Theme; defaults to 'All'")
    asset_type: Optional[AssetType] = Field(default=None, description="Asset type")
    account: Optional[str] = Field(default=None, description="Account; defaults to 'Imported'")
    include: bool = Field(default=True, description="Include in aggregations")
    target_pct: Optional[Decimal] = Field(default=None, description="Target share of theme")
    exchange: Optional[Exchange] = Field(default=None, description="Exchange")


class TradeImportRow(BaseModel):
    """Row consumed by the import-trades action."""

    ticker: str = Field(..., description="Ticker symbol used to match holdings")
    name: Optional[str] = Field(default=None, description="Name for newly created holdings")
    type: TradeType = Field(..., description="buy or sell")
    date: Optional[datetime] = Field(
        default=None,
        description="Trade date (configured timezone); defaults to now",
    )
    price: Decimal = Field(default=Decimal("0"), description="Price per unit")
    qty: Decimal = Field(default=Decimal("0"), description="Units traded")

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        if isinstance(v, str):
            return parse_datetime_local(v) if v.strip() else None
        if isinstance(v, datetime):
            return to_local(v)
        return v
