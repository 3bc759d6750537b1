"""Compare holdings extracted from a statement against the current portfolio."""

from decimal import Decimal
from typing import Iterable

from folio.core.numbers import ZERO
from folio.domain.models import AssetType, DiffType, Exchange, Holding
from folio.domain.views import DiffSummary, FieldChange, HoldingDiff
from folio.schemas import ExtractedHolding, HoldingImportRow
from folio.services.factory import DEFAULT_THEME, IMPORTED_LABEL

QTY_TOLERANCE = Decimal("0.0001")
PRICE_TOLERANCE = Decimal("0.01")

_VALID_ASSET_TYPES = {a.value for a in AssetType}
_VALID_EXCHANGES = {e.value for e in Exchange}

_DIFF_ORDER = {
    DiffType.NEW: 0,
    DiffType.CHANGED: 1,
    DiffType.REMOVED: 2,
    DiffType.UNCHANGED: 3,
}


def _match_key(ticker: str, name: str) -> tuple[str, str]:
    return ticker.strip().upper(), name.strip()


def to_import_row(extracted: ExtractedHolding) -> HoldingImportRow:
    """
    Convert an extracted holding into an import-holdings row.

    Unknown asset types become Other; unknown exchanges are dropped.
    """
    asset_type = (
        AssetType(extracted.asset_type)
        if extracted.asset_type in _VALID_ASSET_TYPES
        else AssetType.OTHER
    )
    exchange = Exchange(extracted.exchange) if extracted.exchange in _VALID_EXCHANGES else None
    return HoldingImportRow(
        section=IMPORTED_LABEL,
        theme=DEFAULT_THEME,
        asset_type=asset_type,
        name=extracted.name,
        ticker=extracted.ticker,
        account=extracted.account or IMPORTED_LABEL,
        price=extracted.price,
        qty=extracted.qty,
        include=True,
        exchange=exchange,
    )


def diff_holdings(current: list[Holding], extracted: list[ExtractedHolding]) -> list[HoldingDiff]:
    """
    Classify each extracted row against current holdings.

    Rows are matched on (ticker, name), the ticker compared case-insensitively.
    A matched row is "changed" when qty differs by more than 0.0001 or price
    by more than 0.01, otherwise "unchanged". Only extracted rows are visited,
    so current holdings missing from the statement produce no entry.

    New rows are accepted by default. The result is ordered
    new < changed < removed < unchanged, keeping input order within a type.
    """
    current_by_key: dict[tuple[str, str], Holding] = {}
    for holding in current:
        key = _match_key(holding.ticker, holding.name)
        if key[0]:
            # First holding wins on duplicate keys
            current_by_key.setdefault(key, holding)

    diffs = []
    for ext in extracted:
        row = to_import_row(ext)
        existing = current_by_key.get(_match_key(ext.ticker, ext.name))

        if existing is None:
            diffs.append(HoldingDiff(type=DiffType.NEW, extracted=row, accepted=True))
            continue

        changes = {}
        if abs(existing.qty - ext.qty) > QTY_TOLERANCE:
            changes["qty"] = FieldChange(old=existing.qty, new=ext.qty)
        if abs(existing.price - ext.price) > PRICE_TOLERANCE:
            changes["price"] = FieldChange(old=existing.price, new=ext.price)

        diff_type = DiffType.CHANGED if changes else DiffType.UNCHANGED
        diffs.append(
            HoldingDiff(
                type=diff_type,
                extracted=row,
                existing=existing,
                changes=changes,
                accepted=False,
            )
        )

    # sorted() is stable
    return sorted(diffs, key=lambda d: _DIFF_ORDER[d.type])


def summarize_diff(diffs: Iterable[HoldingDiff]) -> DiffSummary:
    """Count diffs per type and total the value of new rows."""
    summary = DiffSummary()
    estimated = ZERO
    for diff in diffs:
        if diff.type == DiffType.NEW:
            summary.new_count += 1
            estimated += diff.extracted.price * diff.extracted.qty
        elif diff.type == DiffType.CHANGED:
            summary.changed_count += 1
        elif diff.type == DiffType.UNCHANGED:
            summary.unchanged_count += 1
    summary.estimated_value_change = estimated
    return summary


def accepted_import_rows(diffs: Iterable[HoldingDiff]) -> list[HoldingImportRow]:
    """Rows of accepted diffs, ready for the import-holdings action."""
    return [diff.extracted for diff in diffs if diff.accepted and diff.type != DiffType.REMOVED]
