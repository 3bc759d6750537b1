"""View models for service outputs."""

from folio.domain.views.portfolio import (
    HoldingValue,
    ProfitLoss,
    LivePortfolioTotals,
    SectionTarget,
    ThemeTarget,
    TargetHierarchy,
    TargetResult,
    HoldingDerived,
    BreakdownEntry,
    BudgetRemaining,
    BudgetRemainingView,
)
from folio.domain.views.diff import FieldChange, HoldingDiff, DiffSummary

__all__ = [
    "HoldingValue",
    "ProfitLoss",
    "LivePortfolioTotals",
    "SectionTarget",
    "ThemeTarget",
    "TargetHierarchy",
    "TargetResult",
    "HoldingDerived",
    "BreakdownEntry",
    "BudgetRemaining",
    "BudgetRemainingView",
    "FieldChange",
    "HoldingDiff",
    "DiffSummary",
]
