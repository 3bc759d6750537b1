"""
Unit tests for entity factories.

Tests cover:
- Default lists and portfolio settings
- Holding defaults and sanitizing
- Initial state and active-portfolio lookup
"""

from decimal import Decimal

import pytest

from folio.config.settings import Settings, set_settings
from folio.core.exceptions import ActivePortfolioNotFoundError, NotFoundError
from folio.domain.models import AssetType, Exchange, PortfolioType
from folio.services.factory import (
    CASH_SECTION,
    create_empty_lists,
    create_empty_portfolio,
    create_holding,
    create_initial_state,
    generate_id,
    get_active_portfolio,
)


class TestCreateEmptyPortfolio:
    """Tests for portfolio and list defaults."""

    def test_default_lists_keep_cash_last(self):
        """
        GIVEN nothing
        WHEN I create empty lists
        THEN Cash is the last section and theme and maps to itself
        """
        lists = create_empty_lists()

        assert lists.sections == ["Core", "Satellite", CASH_SECTION]
        assert lists.themes == ["All", CASH_SECTION]
        assert lists.accounts == ["Brokerage"]
        assert lists.theme_sections == {"All": "Core", "Cash": "Cash"}

    def test_settings_come_from_configuration(self):
        """
        GIVEN settings with USD as default currency
        WHEN I create an empty portfolio
        THEN its settings use USD and timestamps are set
        """
        set_settings(Settings(default_currency="USD", live_price_update_interval=30))

        portfolio = create_empty_portfolio("p9", "US", PortfolioType.DRAFT, parent_id="p1")

        assert portfolio.settings.currency == "USD"
        assert portfolio.settings.live_price_update_interval == 30
        assert portfolio.settings.lock_total is False
        assert portfolio.type == PortfolioType.DRAFT
        assert portfolio.parent_id == "p1"
        assert portfolio.holdings == []
        assert portfolio.created_at is not None
        assert portfolio.created_at == portfolio.updated_at


class TestCreateHolding:
    """Tests for holding creation."""

    def test_defaults(self):
        """
        GIVEN no overrides
        WHEN I create a holding
        THEN it gets a fresh id and the default classification
        """
        holding = create_holding()

        assert holding.id
        assert holding.section == "Core"
        assert holding.theme == "All"
        assert holding.asset_type == AssetType.ETF
        assert holding.exchange == Exchange.LSE
        assert holding.account == "Brokerage"
        assert holding.include is True
        assert holding.price == Decimal("0")
        assert holding.avg_cost == Decimal("0")

    def test_avg_cost_defaults_to_price(self):
        """
        GIVEN a price but no avg_cost
        WHEN I create a holding
        THEN avg_cost equals price
        """
        holding = create_holding(price=Decimal("12.34"), qty=Decimal("3"))

        assert holding.avg_cost == Decimal("12.34")

    def test_explicit_avg_cost_is_kept(self):
        holding = create_holding(price=Decimal("12"), avg_cost=Decimal("10"))

        assert holding.avg_cost == Decimal("10")

    def test_negative_and_nan_amounts_are_clamped(self):
        """
        GIVEN negative qty and unparseable price
        WHEN I create a holding
        THEN both are 0
        """
        holding = create_holding(price="abc", qty=Decimal("-5"))

        assert holding.price == Decimal("0")
        assert holding.qty == Decimal("0")

    def test_string_enums_are_coerced(self):
        holding = create_holding(asset_type="Stock", exchange="NYSE")

        assert holding.asset_type == AssetType.STOCK
        assert holding.exchange == Exchange.NYSE

    def test_ids_are_unique(self):
        assert generate_id() != generate_id()


class TestInitialState:
    """Tests for the initial application state."""

    def test_three_portfolios_first_active(self):
        """
        GIVEN nothing
        WHEN I create the initial state
        THEN there are three actual portfolios and the first is active
        """
        state = create_initial_state()

        assert [p.name for p in state.portfolios] == [
            "Main Portfolio",
            "ISA Portfolio",
            "SIPP Portfolio",
        ]
        assert state.active_portfolio_id == state.portfolios[0].id
        assert state.filters == {}
        assert state.playground.enabled is False
        assert state.playground.snapshot is None

    def test_get_active_portfolio(self):
        state = create_initial_state()

        assert get_active_portfolio(state) is state.portfolios[0]

    def test_missing_active_portfolio_raises(self):
        """
        GIVEN a state whose active id matches no portfolio
        WHEN I look up the active portfolio
        THEN ActivePortfolioNotFoundError is raised
        """
        state = create_initial_state()
        state.active_portfolio_id = "missing"

        with pytest.raises(ActivePortfolioNotFoundError) as exc_info:
            get_active_portfolio(state)

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.portfolio_id == "missing"
        assert exc_info.value.code == "ACTIVE_PORTFOLIO_NOT_FOUND"
        assert "missing" in exc_info.value.message
