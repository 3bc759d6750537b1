"""
Integration tests for the application context.

Tests cover:
- Initialization with settings
- Dispatch through the shared reducer
- Selectors reading the shared cache
- Global context accessors
"""

from decimal import Decimal

import pytest

from folio.app_context import AppContext, get_app_context, set_app_context
from folio.config.settings import Settings, get_settings
from folio.domain.actions import AddHolding, AddPortfolio, SetTotal, UpdateHolding
from folio.services import CalculationCache, get_calculation_cache
from tests.conftest import make_holding, make_state, make_portfolio


@pytest.fixture
def context():
    ctx = AppContext(cache=CalculationCache(max_entries=5))
    ctx.initialize(Settings(log_level="WARNING"))
    return ctx


class TestAppContext:
    """Tests for AppContext."""

    def test_initialize_builds_default_state(self, context):
        assert context.is_initialized
        assert [p.name for p in context.state.portfolios] == [
            "Main Portfolio",
            "ISA Portfolio",
            "SIPP Portfolio",
        ]
        assert context.active_portfolio.id == "portfolio-1"
        assert get_settings().log_level == "WARNING"

    def test_given_state_is_kept(self):
        state = make_state(make_portfolio("mine", "Mine"))
        ctx = AppContext(state=state)

        ctx.initialize()

        assert ctx.state is state
        assert ctx.cache is get_calculation_cache()

    def test_dispatch_updates_state(self, context):
        """
        GIVEN an initialized context
        WHEN I add a holding and lock the total
        THEN the state and derived values reflect both actions
        """
        holding = make_holding("h1", ticker="VWRL", price="100", qty="10")

        context.dispatch(AddHolding(holding=holding))
        state = context.dispatch(SetTotal(total=Decimal("1500")))

        assert state is context.state
        derived = context.selectors.holdings_with_derived(context.active_portfolio)
        assert [d.value for d in derived] == [Decimal("1000"), Decimal("500.00")]
        assert context.selectors.total_value(context.active_portfolio) == Decimal("1500.00")

    def test_noop_dispatch_keeps_state(self, context):
        before = context.state

        assert context.dispatch(UpdateHolding(id="ghost", patch={"qty": 1})) is before

    def test_selectors_see_fresh_values(self, context):
        context.dispatch(AddHolding(holding=make_holding("h1", ticker="VWRL", price="100", qty="10")))
        first = context.selectors.holdings_with_derived(context.active_portfolio)

        context.dispatch(UpdateHolding(id="h1", patch={"qty": "20"}))
        second = context.selectors.holdings_with_derived(context.active_portfolio)

        assert first[0].value == Decimal("1000")
        assert second[0].value == Decimal("2000")

    def test_add_portfolio_switches_active(self, context):
        context.dispatch(AddPortfolio(id="p-new", name="Trading"))

        assert context.active_portfolio.name == "Trading"

    def test_reinitialize_recreates_services(self, context):
        reducer = context.reducer

        context.initialize()

        assert context.reducer is not reducer


class TestGlobalContext:
    """Tests for the process-wide context accessors."""

    def test_get_creates_once(self):
        set_app_context(None)

        first = get_app_context()

        assert get_app_context() is first

    def test_set_replaces(self, context):
        set_app_context(context)

        assert get_app_context() is context
        set_app_context(None)
