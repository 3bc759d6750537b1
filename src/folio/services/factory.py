"""Factories and constants for portfolio entities."""

import uuid
from decimal import Decimal
from typing import Any, Optional

from folio.config.settings import get_settings
from folio.core.exceptions import ActivePortfolioNotFoundError
from folio.core.numbers import ZERO, to_optional_decimal
from folio.core.timezone import now_local
from folio.domain.models import (
    AppState,
    AssetType,
    Budgets,
    Exchange,
    Holding,
    Lists,
    PlaygroundState,
    Portfolio,
    PortfolioSettings,
    PortfolioType,
)
from folio.services.calculations import clean_amount

CASH_BUFFER_NAME = "Cash buffer"
CASH_BUFFER_PRICE = Decimal("1")
CASH_SECTION = "Cash"
IMPORTED_LABEL = "Imported"
DEFAULT_THEME = "All"


def generate_id() -> str:
    """Return a fresh unique id for holdings, trades and portfolios."""
    return str(uuid.uuid4())


def create_empty_lists() -> Lists:
    """Default lists for a new portfolio; Cash is last and maps to itself."""
    return Lists(
        sections=["Core", "Satellite", CASH_SECTION],
        themes=[DEFAULT_THEME, CASH_SECTION],
        accounts=["Brokerage"],
        theme_sections={DEFAULT_THEME: "Core", CASH_SECTION: CASH_SECTION},
    )


def create_empty_portfolio(
    portfolio_id: str,
    name: str,
    portfolio_type: PortfolioType = PortfolioType.ACTUAL,
    parent_id: Optional[str] = None,
) -> Portfolio:
    """Create a portfolio with default lists and settings and no holdings."""
    settings = get_settings()
    now = now_local()
    return Portfolio(
        id=portfolio_id,
        name=name,
        type=portfolio_type,
        parent_id=parent_id,
        lists=create_empty_lists(),
        holdings=[],
        settings=PortfolioSettings(
            currency=settings.default_currency,
            lock_total=False,
            enable_live_prices=settings.enable_live_prices,
            live_price_update_interval=settings.live_price_update_interval,
        ),
        budgets=Budgets(),
        trades=[],
        created_at=now,
        updated_at=now,
    )


def create_holding(**overrides: Any) -> Holding:
    """
    Create a holding from keyword overrides of Holding fields.

    A fresh id is generated unless given; avg_cost defaults to price;
    price and qty are clamped to non-negative values.
    """
    price = clean_amount(overrides.pop("price", ZERO))
    qty = clean_amount(overrides.pop("qty", ZERO))
    avg_cost = to_optional_decimal(overrides.pop("avg_cost", None))
    holding_id = overrides.pop("id", None) or generate_id()

    defaults = {
        "section": "Core",
        "theme": DEFAULT_THEME,
        "asset_type": AssetType.ETF,
        "name": "",
        "ticker": "",
        "exchange": Exchange.LSE,
        "account": "Brokerage",
        "include": True,
    }
    for key, value in defaults.items():
        if overrides.get(key) is None:
            overrides[key] = value

    return Holding(
        id=holding_id,
        price=price,
        qty=qty,
        avg_cost=avg_cost if avg_cost is not None else price,
        **overrides,
    )


def create_initial_state() -> AppState:
    """Three empty actual portfolios, the first one active."""
    portfolios = [
        create_empty_portfolio("portfolio-1", "Main Portfolio"),
        create_empty_portfolio("portfolio-2", "ISA Portfolio"),
        create_empty_portfolio("portfolio-3", "SIPP Portfolio"),
    ]
    return AppState(
        portfolios=portfolios,
        active_portfolio_id=portfolios[0].id,
        filters={},
        playground=PlaygroundState(enabled=False),
    )


def get_active_portfolio(state: AppState) -> Portfolio:
    """
    Return the active portfolio.

    Raises:
        ActivePortfolioNotFoundError: if active_portfolio_id matches nothing
    """
    portfolio = state.find_portfolio(state.active_portfolio_id)
    if portfolio is None:
        raise ActivePortfolioNotFoundError(state.active_portfolio_id)
    return portfolio
