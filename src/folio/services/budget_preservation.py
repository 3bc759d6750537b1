"""Keep child allocations proportional when a parent allocation changes.

When a section's share of the portfolio moves from 50% to 80%, every theme
budgeted inside that section keeps its weight relative to its siblings; the
same applies to holdings' target_pct inside a theme. Children are rescaled,
never renormalized, so they need not sum to 100.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from folio.core.numbers import ZERO, HUNDRED, is_finite
from folio.domain.models import BudgetLimit, Portfolio


def preserve_child_percentage_ratios(
    child_percentages: dict[str, Decimal],
    parent_old_percent: Decimal,
    parent_new_percent: Decimal,
) -> dict[str, Decimal]:
    """
    Scale each positive child percentage by new/old parent percent.

    Returns an empty dict when old <= 0 or new < 0. Zero-weight children are
    left out of the result.
    """
    if (
        not is_finite(parent_old_percent)
        or not is_finite(parent_new_percent)
        or parent_old_percent <= ZERO
        or parent_new_percent < ZERO
    ):
        return {}

    scale_factor = parent_new_percent / parent_old_percent
    return {
        key: percentage * scale_factor
        for key, percentage in child_percentages.items()
        if is_finite(percentage) and percentage > ZERO
    }


def get_theme_percentages_in_section(portfolio: Portfolio, section_name: str) -> dict[str, Decimal]:
    """percent_of_section of every budgeted theme mapped to section_name."""
    theme_budgets = portfolio.budgets.themes
    percentages = {}
    for theme, section in portfolio.lists.theme_sections.items():
        if section != section_name:
            continue
        budget = theme_budgets.get(theme)
        percentage = budget.percent_of_section if budget else None
        if is_finite(percentage) and percentage > ZERO:
            percentages[theme] = percentage
    return percentages


def get_holding_percentages_in_theme(portfolio: Portfolio, theme_name: str) -> dict[str, Decimal]:
    """target_pct of every holding in theme_name that has a positive target."""
    return {
        holding.id: holding.target_pct
        for holding in portfolio.holdings
        if holding.theme == theme_name
        and is_finite(holding.target_pct)
        and holding.target_pct > ZERO
    }


def preserve_theme_ratios_on_section_change(
    portfolio: Portfolio,
    section_name: str,
    old_section_percent: Decimal,
    new_section_percent: Decimal,
) -> Portfolio:
    """
    Rescale themes' percent_of_section after a section percent change.

    Returns the same portfolio object when nothing is rescaled.
    """
    theme_percentages = get_theme_percentages_in_section(portfolio, section_name)
    if not theme_percentages:
        return portfolio

    preserved = preserve_child_percentage_ratios(
        theme_percentages, old_section_percent, new_section_percent
    )
    if not preserved:
        return portfolio

    themes = dict(portfolio.budgets.themes)
    for theme, percent_of_section in preserved.items():
        existing = themes.get(theme) or BudgetLimit()
        themes[theme] = replace(existing, percent_of_section=percent_of_section)

    return replace(portfolio, budgets=replace(portfolio.budgets, themes=themes))


def preserve_holding_ratios_on_theme_change(
    portfolio: Portfolio,
    theme_name: str,
    old_theme_percent: Decimal,
    new_theme_percent: Decimal,
) -> Portfolio:
    """
    Rescale holdings' target_pct after a theme percent_of_section change.

    Returns the same portfolio object when nothing is rescaled.
    """
    holding_percentages = get_holding_percentages_in_theme(portfolio, theme_name)
    if not holding_percentages:
        return portfolio

    preserved = preserve_child_percentage_ratios(
        holding_percentages, old_theme_percent, new_theme_percent
    )
    if not preserved:
        return portfolio

    holdings = [
        replace(holding, target_pct=preserved[holding.id]) if holding.id in preserved else holding
        for holding in portfolio.holdings
    ]
    return replace(portfolio, holdings=holdings)


def calculate_section_current_percent(
    section_budget: Optional[BudgetLimit],
    total_portfolio_value: Decimal,
) -> Decimal:
    """Section percent, derived from its amount when no percent is set."""
    if section_budget is None:
        return ZERO
    if section_budget.percent is not None:
        return section_budget.percent
    if (
        section_budget.amount is not None
        and is_finite(total_portfolio_value)
        and total_portfolio_value > ZERO
    ):
        return section_budget.amount / total_portfolio_value * HUNDRED
    return ZERO


def calculate_theme_current_percent(theme_budget: Optional[BudgetLimit]) -> Decimal:
    """Theme percent_of_section; there is no amount-based fallback."""
    if theme_budget is None or theme_budget.percent_of_section is None:
        return ZERO
    return theme_budget.percent_of_section
