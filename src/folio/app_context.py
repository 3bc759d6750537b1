"""Application context for in-process portfolio state management.

Owns the single AppState of a session and serializes every change through
the reducer. Hosts (UI, importers, price pollers) talk to the engine only
through this object.
"""

import logging
from typing import Optional

from folio.config.logging_config import setup_logging
from folio.config.settings import Settings, set_settings
from folio.domain.actions import PortfolioAction
from folio.domain.models import AppState, Portfolio
from folio.services import (
    CalculationCache,
    PortfolioReducer,
    PortfolioSelectors,
    get_calculation_cache,
)
from folio.services.factory import create_initial_state, get_active_portfolio

logger = logging.getLogger(__name__)


class AppContext:
    """
    Application context holding the state, cache, reducer and selectors.

    Not thread-safe: dispatch from one thread (the host's event loop).
    """

    def __init__(
        self,
        state: Optional[AppState] = None,
        cache: Optional[CalculationCache] = None,
    ):
        self._state = state
        self._cache = cache
        self._reducer: Optional[PortfolioReducer] = None
        self._selectors: Optional[PortfolioSelectors] = None
        self._initialized = False

    def initialize(self, settings: Optional[Settings] = None) -> None:
        """
        Initialize or reinitialize the context.

        Args:
            settings: Settings to install globally. Environment defaults if omitted.
        """
        if settings is not None:
            set_settings(settings)
        setup_logging()

        # Reset service instances to force recreation
        self._reducer = None
        self._selectors = None
        if self._state is None:
            self._state = create_initial_state()
        self.cache.invalidate_all_calculations()

        self._initialized = True
        logger.info("Portfolio engine initialized with %d portfolios", len(self._state.portfolios))

    @property
    def is_initialized(self) -> bool:
        """Check if context is initialized."""
        return self._initialized

    @property
    def state(self) -> AppState:
        """Current application state."""
        if self._state is None:
            self._state = create_initial_state()
        return self._state

    @property
    def cache(self) -> CalculationCache:
        """Calculation cache (the process-wide one unless injected)."""
        if self._cache is None:
            self._cache = get_calculation_cache()
        return self._cache

    @property
    def reducer(self) -> PortfolioReducer:
        """Get the PortfolioReducer instance."""
        if self._reducer is None:
            self._reducer = PortfolioReducer(self.cache)
        return self._reducer

    @property
    def selectors(self) -> PortfolioSelectors:
        """Get the PortfolioSelectors instance."""
        if self._selectors is None:
            self._selectors = PortfolioSelectors(self.cache)
        return self._selectors

    @property
    def active_portfolio(self) -> Portfolio:
        return get_active_portfolio(self.state)

    def dispatch(self, action: PortfolioAction) -> AppState:
        """Apply one action and return the resulting state."""
        self._state = self.reducer.reduce(self.state, action)
        return self._state


# Global application context (one per process)
_app_context: Optional[AppContext] = None


def get_app_context() -> AppContext:
    """Get or create the global application context."""
    global _app_context
    if _app_context is None:
        _app_context = AppContext()
    return _app_context


def set_app_context(context: AppContext) -> None:
    """Set the global application context."""
    global _app_context
    _app_context = context
