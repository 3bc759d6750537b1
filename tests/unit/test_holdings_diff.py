"""
Unit tests for the holdings diff engine.

Tests cover:
- Matching on ticker and name with tolerances
- Ordering and default acceptance
- Conversion of extracted rows to import rows
- Summary totals
"""

from decimal import Decimal

from folio.domain.models import AssetType, DiffType, Exchange
from folio.domain.views import FieldChange
from folio.schemas import ExtractedHolding
from folio.services.holdings_diff import (
    accepted_import_rows,
    diff_holdings,
    summarize_diff,
    to_import_row,
)
from tests.conftest import make_holding


def extracted(ticker: str, name: str, qty: str, price: str, **kwargs) -> ExtractedHolding:
    return ExtractedHolding(ticker=ticker, name=name, qty=Decimal(qty), price=Decimal(price), **kwargs)


class TestDiffHoldings:
    """Tests for classification."""

    def test_qty_change_is_detected(self):
        """
        GIVEN a current VWRL holding with qty 100
        WHEN the statement shows qty 120
        THEN the row is changed with the qty delta and not accepted
        """
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]

        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard", "120", "100")])

        assert len(diffs) == 1
        diff = diffs[0]
        assert diff.type == DiffType.CHANGED
        assert diff.existing is current[0]
        assert diff.changes == {"qty": FieldChange(old=Decimal("100"), new=Decimal("120"))}
        assert diff.accepted is False

    def test_within_tolerance_is_unchanged(self):
        """
        GIVEN a current holding
        WHEN qty moves by 0.00005 and price by 0.005
        THEN the row is unchanged
        """
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]

        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard", "100.00005", "100.005")])

        assert diffs[0].type == DiffType.UNCHANGED
        assert diffs[0].changes == {}

    def test_price_change_is_detected(self):
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]

        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard", "100", "100.02")])

        assert diffs[0].type == DiffType.CHANGED
        assert set(diffs[0].changes) == {"price"}

    def test_ticker_match_is_case_insensitive(self):
        current = [make_holding("h1", ticker="vwrl", name="Vanguard", price="100", qty="100")]

        diffs = diff_holdings(current, [extracted(" VWRL ", "Vanguard", "100", "100")])

        assert diffs[0].type == DiffType.UNCHANGED

    def test_name_must_also_match(self):
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]

        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard All-World", "100", "100")])

        assert diffs[0].type == DiffType.NEW
        assert diffs[0].accepted is True
        assert diffs[0].existing is None

    def test_missing_holdings_are_not_reported(self):
        """
        GIVEN two current holdings
        WHEN the statement lists only one of them
        THEN only one diff is produced and none is removed
        """
        current = [
            make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100"),
            make_holding("h2", ticker="AAPL", name="Apple", price="200", qty="5"),
        ]

        diffs = diff_holdings(current, [extracted("AAPL", "Apple", "5", "200")])

        assert [d.type for d in diffs] == [DiffType.UNCHANGED]

    def test_ordering_new_changed_unchanged(self):
        """
        GIVEN unchanged, new, changed and new rows in that order
        WHEN I diff them
        THEN new rows come first, keeping their input order, then changed, then unchanged
        """
        current = [
            make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100"),
            make_holding("h2", ticker="AAPL", name="Apple", price="200", qty="5"),
        ]

        diffs = diff_holdings(
            current,
            [
                extracted("VWRL", "Vanguard", "100", "100"),
                extracted("MSFT", "Microsoft", "1", "300"),
                extracted("AAPL", "Apple", "6", "200"),
                extracted("TSLA", "Tesla", "2", "150"),
            ],
        )

        assert [d.type for d in diffs] == [
            DiffType.NEW,
            DiffType.NEW,
            DiffType.CHANGED,
            DiffType.UNCHANGED,
        ]
        assert [d.extracted.ticker for d in diffs[:2]] == ["MSFT", "TSLA"]

    def test_first_duplicate_holding_wins(self):
        current = [
            make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100"),
            make_holding("h2", ticker="VWRL", name="Vanguard", price="100", qty="50"),
        ]

        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard", "100", "100")])

        assert diffs[0].existing.id == "h1"

    def test_empty_inputs(self):
        assert diff_holdings([], []) == []


class TestImportRows:
    """Tests for extracted -> import row conversion."""

    def test_defaults(self):
        """
        GIVEN an extracted row without account and with an unknown asset type
        WHEN I convert it
        THEN section/account are Imported, theme is All and asset type is Other
        """
        row = to_import_row(extracted("XYZ", "Mystery", "3", "10", asset_type="Warrant"))

        assert row.section == "Imported"
        assert row.theme == "All"
        assert row.account == "Imported"
        assert row.asset_type == AssetType.OTHER
        assert row.exchange is None
        assert row.include is True

    def test_known_values_are_kept(self):
        row = to_import_row(
            extracted("AAPL", "Apple", "3", "10", asset_type="Stock", exchange="NASDAQ", account="ISA")
        )

        assert row.asset_type == AssetType.STOCK
        assert row.exchange == Exchange.NASDAQ
        assert row.account == "ISA"

    def test_accepted_rows_only(self):
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]
        diffs = diff_holdings(
            current,
            [
                extracted("VWRL", "Vanguard", "120", "100"),
                extracted("MSFT", "Microsoft", "1", "300"),
            ],
        )

        rows = accepted_import_rows(diffs)

        assert [r.ticker for r in rows] == ["MSFT"]

    def test_manually_accepted_change_is_included(self):
        current = [make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100")]
        diffs = diff_holdings(current, [extracted("VWRL", "Vanguard", "120", "100")])
        diffs[0].accepted = True

        assert [r.ticker for r in accepted_import_rows(diffs)] == ["VWRL"]


class TestSummarizeDiff:
    """Tests for diff summaries."""

    def test_counts_and_new_value(self):
        """
        GIVEN one unchanged, one changed and two new rows
        WHEN I summarize
        THEN counts match and estimated value sums only the new rows
        """
        current = [
            make_holding("h1", ticker="VWRL", name="Vanguard", price="100", qty="100"),
            make_holding("h2", ticker="AAPL", name="Apple", price="200", qty="5"),
        ]
        diffs = diff_holdings(
            current,
            [
                extracted("VWRL", "Vanguard", "100", "100"),
                extracted("AAPL", "Apple", "6", "200"),
                extracted("MSFT", "Microsoft", "2", "300"),
                extracted("TSLA", "Tesla", "1", "150"),
            ],
        )

        summary = summarize_diff(diffs)

        assert summary.new_count == 2
        assert summary.changed_count == 1
        assert summary.unchanged_count == 1
        assert summary.estimated_value_change == Decimal("750")
