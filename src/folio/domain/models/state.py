"""Application state root."""

from dataclasses import dataclass, field
from typing import Optional

from folio.domain.models.portfolio import Portfolio


@dataclass
class PlaygroundState:
    """Sandbox mode: a snapshot of the active portfolio taken when enabled."""

    enabled: bool = False
    snapshot: Optional[Portfolio] = None


@dataclass
class AppState:
    """
    Root of all portfolio data for a session.

    Only the reducer produces new AppState values; callers compare by
    reference to detect no-op actions.
    """

    portfolios: list[Portfolio]
    active_portfolio_id: str
    filters: dict[str, str] = field(default_factory=dict)
    playground: PlaygroundState = field(default_factory=PlaygroundState)

    def find_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        """Return the portfolio with the given id, if any."""
        return next((p for p in self.portfolios if p.id == portfolio_id), None)
