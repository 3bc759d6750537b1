"""Pydantic schemas for data crossing the engine boundary."""

from folio.schemas.imports import ExtractedHolding, HoldingImportRow, TradeImportRow
from folio.schemas.prices import LivePriceQuote

__all__ = [
    "ExtractedHolding",
    "HoldingImportRow",
    "TradeImportRow",
    "LivePriceQuote",
]
