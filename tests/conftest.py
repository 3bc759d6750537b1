"""
Pytest configuration and fixtures for portfolio engine tests.

This module provides:
- Settings and process-wide cache resets between tests
- Isolated calculation cache, reducer and selector fixtures
- Factory helpers for holdings, portfolios and states
- Time helpers for the configured (London) timezone
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest
import pytz

from folio.config.settings import reset_settings
from folio.domain.models import (
    AppState,
    AssetType,
    Budgets,
    Holding,
    Portfolio,
)
from folio.services import CalculationCache, PortfolioReducer, PortfolioSelectors
from folio.services.calculation_cache import reset_calculation_cache
from folio.services.factory import create_empty_portfolio, create_holding

LONDON_TZ = pytz.timezone("Europe/London")


# =============================================================================
# TIMEZONE HELPERS
# =============================================================================


def london_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create a localized datetime in Europe/London."""
    return LONDON_TZ.localize(datetime(year, month, day, hour, minute, second))


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return london_datetime(2024, 6, 14, 16, 30, 0)


# =============================================================================
# GLOBAL STATE RESET
# =============================================================================


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """Give each test fresh settings and a fresh process-wide cache."""
    for name in (
        "FOLIO_TIMEZONE",
        "FOLIO_CACHE_MAX_ENTRIES",
        "FOLIO_MINOR_UNIT_CURRENCIES",
        "FOLIO_DEFAULT_CURRENCY",
        "FOLIO_LOG_LEVEL",
        "FOLIO_TRACE_ACTIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_calculation_cache()
    yield
    reset_settings()
    reset_calculation_cache()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def cache() -> CalculationCache:
    """Provide an isolated calculation cache."""
    return CalculationCache(max_entries=10)


@pytest.fixture
def reducer(cache) -> PortfolioReducer:
    """Provide a reducer bound to the isolated cache."""
    return PortfolioReducer(cache)


@pytest.fixture
def selectors(cache) -> PortfolioSelectors:
    """Provide selectors bound to the isolated cache."""
    return PortfolioSelectors(cache)


# =============================================================================
# FACTORY HELPERS (exported for use in tests)
# =============================================================================


def make_holding(
    holding_id: str,
    ticker: str = "",
    name: str = "",
    price: str = "0",
    qty: str = "0",
    section: str = "Core",
    theme: str = "All",
    account: str = "Brokerage",
    asset_type: AssetType = AssetType.ETF,
    **overrides,
) -> Holding:
    """Holding with Decimal price/qty given as strings."""
    return create_holding(
        id=holding_id,
        ticker=ticker,
        name=name,
        price=Decimal(price),
        qty=Decimal(qty),
        section=section,
        theme=theme,
        account=account,
        asset_type=asset_type,
        **overrides,
    )


def make_portfolio(
    portfolio_id: str = "p1",
    name: str = "Main Portfolio",
    holdings: Optional[list[Holding]] = None,
    budgets: Optional[Budgets] = None,
) -> Portfolio:
    """Empty default portfolio with the given holdings and budgets."""
    portfolio = create_empty_portfolio(portfolio_id, name)
    portfolio.holdings = list(holdings or [])
    if budgets is not None:
        portfolio.budgets = budgets
    return portfolio


def make_state(*portfolios: Portfolio, active_id: Optional[str] = None) -> AppState:
    """AppState over the given portfolios, the first active by default."""
    if not portfolios:
        portfolios = (make_portfolio(),)
    return AppState(
        portfolios=list(portfolios),
        active_portfolio_id=active_id or portfolios[0].id,
    )


def active(state: AppState) -> Portfolio:
    """Active portfolio of a state."""
    return state.find_portfolio(state.active_portfolio_id)


def assert_decimal_equal(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.01"),
) -> None:
    """Assert two Decimals are equal within tolerance."""
    diff = abs(actual - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"


# =============================================================================
# PRESET DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_portfolio() -> Portfolio:
    """Portfolio with two Core ETFs and one Satellite stock."""
    return make_portfolio(
        holdings=[
            make_holding("h1", ticker="VWRL", name="Vanguard FTSE All-World", price="100", qty="10"),
            make_holding("h2", ticker="VUSA", name="Vanguard S&P 500", price="50", qty="20"),
            make_holding(
                "h3",
                ticker="AAPL",
                name="Apple",
                price="200",
                qty="5",
                section="Satellite",
                theme="Tech",
                asset_type=AssetType.STOCK,
                exchange="NASDAQ",
            ),
        ]
    )


@pytest.fixture
def sample_state(sample_portfolio) -> AppState:
    """State with the sample portfolio active plus an empty ISA portfolio."""
    return make_state(sample_portfolio, make_portfolio("p2", "ISA Portfolio"))
