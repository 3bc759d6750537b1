"""Application-level exceptions."""


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str, code: str = "NOT_FOUND"):
        super().__init__(f"{resource} not found: {identifier}", code=code)


class ActivePortfolioNotFoundError(NotFoundError):
    """
    Raised when state.active_portfolio_id has no matching portfolio.

    This means the AppState was built or mutated inconsistently outside the
    reducer; every other invalid input is handled as a no-op.
    """

    def __init__(self, portfolio_id: str):
        self.portfolio_id = portfolio_id
        super().__init__("Active portfolio", portfolio_id, code="ACTIVE_PORTFOLIO_NOT_FOUND")
