"""
Unit tests for trade handling.

Tests cover:
- Weighted average cost on buys
- Sells closing positions
- record-trade and import-trades actions
"""

from datetime import datetime
from decimal import Decimal

import pytest

from folio.domain.actions import ImportTrades, RecordTrade
from folio.domain.models import AssetType, TradeType
from folio.schemas import TradeImportRow
from folio.services.reducer import apply_trade_to_holding
from tests.conftest import LONDON_TZ, active, london_datetime, make_holding


class TestApplyTradeToHolding:
    """Tests for the trade math."""

    def test_buy_updates_weighted_average(self):
        """
        GIVEN 10 units at an average of 100
        WHEN I buy 10 more at 120
        THEN I hold 20 at an average of 110 priced at 120
        """
        holding = make_holding("h1", price="100", qty="10")

        updated = apply_trade_to_holding(holding, TradeType.BUY, Decimal("120"), Decimal("10"))

        assert updated.qty == Decimal("20")
        assert updated.avg_cost == Decimal("110")
        assert updated.price == Decimal("120")
        assert holding.qty == Decimal("10")

    def test_buy_with_zero_price_keeps_price(self):
        holding = make_holding("h1", price="100", qty="10")

        updated = apply_trade_to_holding(holding, TradeType.BUY, Decimal("0"), Decimal("10"))

        assert updated.price == Decimal("100")
        assert updated.avg_cost == Decimal("50")

    def test_empty_buy_on_empty_position(self):
        holding = make_holding("h1", price="100", qty="0")

        updated = apply_trade_to_holding(holding, TradeType.BUY, Decimal("120"), Decimal("0"))

        assert updated.qty == Decimal("0")
        assert updated.avg_cost == Decimal("0")
        assert updated.price == Decimal("100")

    def test_sell_keeps_average(self):
        holding = make_holding("h1", price="100", qty="10")

        updated = apply_trade_to_holding(holding, TradeType.SELL, Decimal("130"), Decimal("4"))

        assert updated.qty == Decimal("6")
        assert updated.avg_cost == Decimal("100")
        assert updated.price == Decimal("100")

    def test_oversell_closes_position(self):
        """
        GIVEN 10 units
        WHEN I sell 25
        THEN qty is 0 and avg_cost resets to 0
        """
        holding = make_holding("h1", price="100", qty="10")

        updated = apply_trade_to_holding(holding, TradeType.SELL, Decimal("130"), Decimal("25"))

        assert updated.qty == Decimal("0")
        assert updated.avg_cost == Decimal("0")

    def test_invalid_trade_values_count_as_zero(self):
        holding = make_holding("h1", price="100", qty="10")

        updated = apply_trade_to_holding(holding, TradeType.BUY, Decimal("NaN"), Decimal("-5"))

        assert updated.qty == Decimal("10")
        assert updated.price == Decimal("100")

    @pytest.mark.parametrize(
        "start_qty, trades",
        [
            ("0", [("buy", "100", "10"), ("sell", "110", "4"), ("sell", "90", "6"), ("buy", "95", "2")]),
            ("10", [("sell", "100", "15"), ("buy", "0", "0"), ("buy", "50", "3"), ("sell", "60", "3")]),
            ("5", [("buy", "NaN", "-1"), ("sell", "100", "-2"), ("sell", "100", "5"), ("sell", "100", "1")]),
            ("0", [("sell", "100", "1"), ("buy", "120", "0"), ("buy", "0", "4"), ("sell", "130", "2.5")]),
        ],
    )
    def test_invariants_hold_after_every_trade(self, start_qty, trades):
        """
        GIVEN a mixed sequence of buys and sells
        WHEN each trade is applied in turn
        THEN qty never goes negative and a closed position has no average cost
        """
        holding = make_holding("h1", price="100", qty=start_qty, avg_cost=Decimal("100"))

        for trade_type, price, qty in trades:
            holding = apply_trade_to_holding(holding, TradeType(trade_type), Decimal(price), Decimal(qty))

            assert holding.qty >= Decimal("0")
            if holding.qty == Decimal("0"):
                assert holding.avg_cost == Decimal("0")


class TestRecordTrade:
    """Tests for record-trade."""

    def test_updates_holding_and_logs_trade(self, reducer, sample_state):
        date = london_datetime(2024, 6, 14)

        next_state = reducer.reduce(
            sample_state,
            RecordTrade(holding_id="h1", type="buy", price=Decimal("120"), qty=Decimal("10"), date=date),
        )

        portfolio = active(next_state)
        assert portfolio.find_holding("h1").qty == Decimal("20")
        assert len(portfolio.trades) == 1
        trade = portfolio.trades[0]
        assert trade.holding_id == "h1"
        assert trade.type == TradeType.BUY
        assert trade.date == date
        assert active(sample_state).trades == []

    def test_defaults_date_to_now(self, reducer, sample_state):
        next_state = reducer.reduce(
            sample_state,
            RecordTrade(holding_id="h1", type=TradeType.SELL, price=Decimal("100"), qty=Decimal("1")),
        )

        assert active(next_state).trades[0].date.tzinfo is not None

    def test_unknown_holding_is_noop(self, reducer, sample_state):
        action = RecordTrade(holding_id="nope", type="buy", price=Decimal("1"), qty=Decimal("1"))

        assert reducer.reduce(sample_state, action) is sample_state


class TestImportTrades:
    """Tests for import-trades."""

    def test_matches_ticker_case_insensitively(self, reducer, sample_state):
        rows = [TradeImportRow(ticker="vwrl", type="sell", price=Decimal("0"), qty=Decimal("4"))]

        next_state = reducer.reduce(sample_state, ImportTrades(trades=rows))

        portfolio = active(next_state)
        assert portfolio.find_holding("h1").qty == Decimal("6")
        assert portfolio.trades[0].holding_id == "h1"

    def test_unknown_ticker_creates_holding(self, reducer, sample_state):
        """
        GIVEN no MSFT holding
        WHEN I import a buy of 2 MSFT at 300
        THEN an Imported holding of 2 units at an average of 300 is created
        """
        rows = [
            TradeImportRow(
                ticker="MSFT",
                name="Microsoft",
                type="buy",
                date="2024-03-01 09:30",
                price=Decimal("300"),
                qty=Decimal("2"),
            )
        ]

        next_state = reducer.reduce(sample_state, ImportTrades(trades=rows))

        portfolio = active(next_state)
        msft = next(h for h in portfolio.holdings if h.ticker == "MSFT")
        assert msft.name == "Microsoft"
        assert msft.qty == Decimal("2")
        assert msft.avg_cost == Decimal("300")
        assert msft.account == "Imported"
        assert msft.asset_type == AssetType.OTHER
        assert "Imported" in portfolio.lists.sections
        assert "Imported" in portfolio.lists.accounts
        assert portfolio.lists.sections[-1] == "Cash"
        trade_date = portfolio.trades[0].date
        assert trade_date == LONDON_TZ.localize(datetime(2024, 3, 1, 9, 30))
        assert trade_date.utcoffset().total_seconds() == 0

    def test_trades_apply_in_order(self, reducer, sample_state):
        rows = [
            TradeImportRow(ticker="NEW", type="buy", price=Decimal("10"), qty=Decimal("5")),
            TradeImportRow(ticker="NEW", type="sell", price=Decimal("12"), qty=Decimal("5")),
        ]

        next_state = reducer.reduce(sample_state, ImportTrades(trades=rows))

        portfolio = active(next_state)
        created = [h for h in portfolio.holdings if h.ticker == "NEW"]
        assert len(created) == 1
        assert created[0].qty == Decimal("0")
        assert len(portfolio.trades) == 2

    def test_empty_import_is_noop(self, reducer, sample_state):
        assert reducer.reduce(sample_state, ImportTrades(trades=[])) is sample_state
