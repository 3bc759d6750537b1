"""Derived portfolio calculations with three-tier caching.

holdings_with_derived reuses the live table when only targets changed, the
target table when only prices changed, and returns the cached list itself
when neither did.
"""

from decimal import Decimal
from typing import Optional

from folio.core.numbers import ZERO, HUNDRED, is_finite
from folio.domain.models import BudgetLimit, Budgets, Holding, Portfolio
from folio.domain.views import (
    BreakdownEntry,
    BudgetRemaining,
    BudgetRemainingView,
    HoldingDerived,
    HoldingValue,
    LivePortfolioTotals,
    SectionTarget,
    TargetHierarchy,
    TargetResult,
    ThemeTarget,
)
from folio.services.calculation_cache import (
    CalculationCache,
    LiveCacheEntry,
    LiveResult,
    TargetCacheEntry,
    generate_derived_cache_key,
    generate_live_cache_key,
    generate_target_cache_key,
)
from folio.services.calculations import (
    calculate_profit_loss,
    calculate_target_delta,
    get_effective_price,
    round_to_pennies,
)


# -----------------------------------------------------------------------------
# Pure helpers
# -----------------------------------------------------------------------------


def calculate_holding_value(holding: Holding) -> HoldingValue:
    """Value a holding at its live price when it has one, else its manual price."""
    effective_price, used_live_price = get_effective_price(holding.live_price, holding.price)
    manual_value = holding.price * holding.qty
    live_value = effective_price * holding.qty
    return HoldingValue(
        value=live_value,
        live_value=live_value,
        manual_value=manual_value,
        day_change_value=live_value - manual_value if used_live_price else ZERO,
        used_live_price=used_live_price,
    )


def calculate_live_portfolio_totals(holdings: list[Holding]) -> LivePortfolioTotals:
    """Sum included holdings' live values overall, by section and by theme."""
    totals = LivePortfolioTotals()
    for holding in holdings:
        if not holding.include:
            continue
        live_value = calculate_holding_value(holding).live_value
        totals.total_allocated_value += live_value
        totals.section_totals[holding.section] = (
            totals.section_totals.get(holding.section, ZERO) + live_value
        )
        totals.theme_totals[holding.theme] = totals.theme_totals.get(holding.theme, ZERO) + live_value
    return totals


def _normalize_limit(limit: BudgetLimit) -> BudgetLimit:
    def clean(value: Optional[Decimal]) -> Optional[Decimal]:
        return max(value, ZERO) if is_finite(value) else None

    return BudgetLimit(
        amount=clean(limit.amount),
        percent=clean(limit.percent),
        percent_of_section=clean(limit.percent_of_section),
    )


def _normalize_budget_map(budgets: dict[str, BudgetLimit]) -> dict[str, BudgetLimit]:
    return {key: _normalize_limit(limit) for key, limit in budgets.items() if limit is not None}


def _normalize_budgets(budgets: Budgets) -> Budgets:
    return Budgets(
        sections=_normalize_budget_map(budgets.sections),
        accounts=_normalize_budget_map(budgets.accounts),
        themes=_normalize_budget_map(budgets.themes),
    )


def calculate_target_hierarchy(
    portfolio: Portfolio,
    live_totals: LivePortfolioTotals,
) -> Optional[TargetHierarchy]:
    """
    Resolve target values portfolio -> section -> theme.

    With a positive target_portfolio_value, sections take their budget
    percent of it and themes their percent_of_section of the section target.
    Without one, each theme with holdings targets its own current value
    (100% of itself); returns None when nothing is allocated at all.
    """
    portfolio_target = portfolio.settings.target_portfolio_value
    budgets = _normalize_budgets(portfolio.budgets)
    theme_sections = portfolio.lists.theme_sections

    if is_finite(portfolio_target) and portfolio_target > ZERO:
        hierarchy = TargetHierarchy(portfolio_target=portfolio_target)
        for section in portfolio.lists.sections:
            section_budget = budgets.sections.get(section)
            percentage = (
                section_budget.percent
                if section_budget and section_budget.percent is not None
                else ZERO
            )
            hierarchy.section_targets[section] = SectionTarget(
                percentage=percentage,
                target_value=percentage / HUNDRED * portfolio_target,
                allocated_value=live_totals.section_totals.get(section, ZERO),
            )

        for theme in portfolio.lists.themes:
            theme_budget = budgets.themes.get(theme)
            section = theme_sections.get(theme)
            if not section or not theme_budget or not theme_budget.percent_of_section:
                continue
            section_target = hierarchy.section_targets.get(section)
            if section_target is None:
                continue
            percentage = theme_budget.percent_of_section
            target_value = percentage / HUNDRED * section_target.target_value
            hierarchy.theme_targets[theme] = ThemeTarget(
                section=section,
                percentage=percentage,
                percentage_of_portfolio=target_value / portfolio_target * HUNDRED,
                target_value=target_value,
                allocated_value=live_totals.theme_totals.get(theme, ZERO),
            )
        return hierarchy

    fallback_target = live_totals.total_allocated_value
    if fallback_target <= ZERO:
        return None

    hierarchy = TargetHierarchy(portfolio_target=fallback_target)
    for theme in portfolio.lists.themes:
        theme_total = live_totals.theme_totals.get(theme, ZERO)
        if theme_total <= ZERO:
            continue
        hierarchy.theme_targets[theme] = ThemeTarget(
            section=theme_sections.get(theme, "Core"),
            percentage=HUNDRED,
            percentage_of_portfolio=theme_total / fallback_target * HUNDRED,
            target_value=theme_total,
            allocated_value=theme_total,
        )
    return hierarchy


def select_total_value(portfolio: Portfolio) -> Decimal:
    """Live value of all included holdings."""
    return calculate_live_portfolio_totals(portfolio.holdings).total_allocated_value


def filter_holdings(holdings: list[Holding], filters: dict[str, str]) -> list[Holding]:
    """Holdings matching every active filter (section, theme, account)."""
    if not filters:
        return list(holdings)
    return [
        holding
        for holding in holdings
        if all(getattr(holding, key, None) == value for key, value in filters.items())
    ]


def _build_live_entry(portfolio: Portfolio) -> LiveCacheEntry:
    entry = LiveCacheEntry(live_totals=calculate_live_portfolio_totals(portfolio.holdings))
    for holding in portfolio.holdings:
        profit_loss = None
        if holding.avg_cost is not None and holding.qty > ZERO:
            current_price, _ = get_effective_price(holding.live_price, holding.price)
            profit_loss = calculate_profit_loss(
                current_price,
                holding.avg_cost,
                holding.qty,
                holding.day_change,
                holding.day_change_percent,
            )
        entry.live_results[holding.id] = LiveResult(
            value=calculate_holding_value(holding),
            profit_loss=profit_loss,
        )
    return entry


def _build_target_result(
    portfolio: Portfolio,
    holding: Holding,
    live: LiveCacheEntry,
    hierarchy: Optional[TargetHierarchy],
) -> TargetResult:
    if not holding.include or not is_finite(holding.target_pct):
        return TargetResult()
    live_result = live.live_results.get(holding.id)
    if live_result is None:
        return TargetResult()
    live_value = live_result.value.live_value

    # Against the theme's budgeted target, when a portfolio target is set
    target_value_setting = portfolio.settings.target_portfolio_value
    if hierarchy and is_finite(target_value_setting) and target_value_setting > ZERO:
        theme_target = hierarchy.theme_targets.get(holding.theme)
        if theme_target and theme_target.target_value > ZERO:
            delta = calculate_target_delta(live_value, theme_target.target_value, holding.target_pct)
            if delta:
                return TargetResult(
                    target_value=holding.target_pct / HUNDRED * theme_target.target_value,
                    target_value_diff=delta.value_diff,
                    target_pct_diff=delta.pct_diff,
                )

    # Otherwise against the theme's current value
    theme_total = live.live_totals.theme_totals.get(holding.theme, ZERO)
    if theme_total <= ZERO:
        return TargetResult()
    delta = calculate_target_delta(live_value, theme_total, holding.target_pct)
    if delta is None:
        return TargetResult()
    return TargetResult(
        target_value=holding.target_pct / HUNDRED * theme_total,
        target_value_diff=delta.value_diff,
        target_pct_diff=delta.pct_diff,
    )


def _build_target_entry(portfolio: Portfolio, live_key: str, live: LiveCacheEntry) -> TargetCacheEntry:
    hierarchy = calculate_target_hierarchy(portfolio, live.live_totals)
    entry = TargetCacheEntry(live_key=live_key, target_hierarchy=hierarchy)
    for holding in portfolio.holdings:
        entry.target_results[holding.id] = _build_target_result(portfolio, holding, live, hierarchy)
    return entry


def _derive(holding: Holding, live: LiveCacheEntry, target: TargetCacheEntry) -> HoldingDerived:
    live_result = live.live_results[holding.id]
    target_result = target.target_results[holding.id]
    totals = live.live_totals
    live_value = live_result.value.live_value

    pct_of_total = ZERO
    section_total = ZERO
    pct_of_section = ZERO
    pct_of_theme = ZERO
    if holding.include:
        if totals.total_allocated_value > ZERO:
            pct_of_total = live_value / totals.total_allocated_value * HUNDRED
        section_total = totals.section_totals.get(holding.section, ZERO)
        if section_total > ZERO:
            pct_of_section = live_value / section_total * HUNDRED
        if target.target_hierarchy:
            theme_target = target.target_hierarchy.theme_targets.get(holding.theme)
            if theme_target and theme_target.target_value > ZERO:
                pct_of_theme = live_value / theme_target.target_value * HUNDRED

    return HoldingDerived(
        holding=holding,
        value=live_result.value.value,
        live_value=live_value,
        manual_value=live_result.value.manual_value,
        day_change_value=live_result.value.day_change_value,
        used_live_price=live_result.value.used_live_price,
        pct_of_total=pct_of_total,
        pct_of_section=pct_of_section,
        section_total=section_total,
        pct_of_theme=pct_of_theme,
        target_value=target_result.target_value,
        target_value_diff=target_result.target_value_diff,
        target_pct_diff=target_result.target_pct_diff,
        profit_loss=live_result.profit_loss,
    )


# -----------------------------------------------------------------------------
# Budget remaining helpers
# -----------------------------------------------------------------------------


def _resolve_budget_amount(limit: Optional[BudgetLimit], total: Decimal) -> Optional[Decimal]:
    if limit is None:
        return None
    if limit.amount is not None:
        return max(limit.amount, ZERO)
    if limit.percent is not None and total > ZERO:
        return max(limit.percent / HUNDRED * total, ZERO)
    return None


def _ordered_labels(options: list[str], breakdown: list[BreakdownEntry], budgets: dict) -> list[str]:
    labels = list(dict.fromkeys(
        list(options)
        + [entry.label for entry in breakdown]
        + [key for key in budgets if key in options]
    ))
    position = {label: index for index, label in enumerate(options)}
    labels.sort(key=lambda label: (position.get(label, len(options)), label))
    return labels


def _build_budget_remaining(
    breakdown: list[BreakdownEntry],
    budgets: dict[str, BudgetLimit],
    options: list[str],
    compute_percentage,
    get_section=None,
    augment=None,
) -> list[BudgetRemaining]:
    entries = {entry.label: entry for entry in breakdown}
    rows = []
    for label in _ordered_labels(options, breakdown, budgets):
        entry = entries.get(label)
        used = entry.value if entry else ZERO
        percentage = compute_percentage(label, entry)
        limit = budgets.get(label)

        amount_limit = limit.amount if limit else None
        percent_limit = limit.percent if limit else None
        section_percent_limit = None

        extra = augment(label) if augment else None
        if extra:
            if extra.get("amount_limit") is not None:
                amount_limit = extra["amount_limit"]
            if extra.get("percent_limit") is not None:
                percent_limit = extra["percent_limit"]
            section_percent_limit = extra.get("section_percent_limit")

        rows.append(
            BudgetRemaining(
                label=label,
                used=used,
                percentage=percentage,
                amount_limit=amount_limit,
                amount_remaining=(
                    round_to_pennies(max(amount_limit - used, ZERO))
                    if amount_limit is not None
                    else None
                ),
                percent_limit=percent_limit,
                percent_remaining=(
                    max(percent_limit - percentage, ZERO) if percent_limit is not None else None
                ),
                section=get_section(label) if get_section else None,
                section_percent_limit=section_percent_limit,
            )
        )
    return rows


class PortfolioSelectors:
    """
    Read-side calculations over a portfolio.

    Results of holdings_with_derived are memoized in the injected
    CalculationCache; callers may compare them by reference.
    """

    def __init__(self, cache: CalculationCache):
        self._cache = cache

    def included_holdings(self, portfolio: Portfolio) -> list[Holding]:
        return [holding for holding in portfolio.holdings if holding.include]

    def total_value(self, portfolio: Portfolio) -> Decimal:
        return select_total_value(portfolio)

    def target_portfolio_value(self, portfolio: Portfolio) -> Decimal:
        value = portfolio.settings.target_portfolio_value
        return value if is_finite(value) else ZERO

    def holdings_with_derived(self, portfolio: Portfolio) -> list[HoldingDerived]:
        """
        Every holding with its value, shares and target distance.

        Structurally equal portfolios get the same list object back until
        the reducer invalidates the cache.
        """
        live_key = generate_live_cache_key(portfolio)
        target_key = generate_target_cache_key(portfolio)
        derived_key = generate_derived_cache_key(live_key, target_key)

        cached = self._cache.derived.get(derived_key)
        if cached is not None:
            return cached

        live = self._cache.live.get(live_key)
        if live is None:
            live = _build_live_entry(portfolio)
            self._cache.live.set(live_key, live)

        target = self._cache.target.get(target_key)
        if target is None or target.live_key != live_key:
            target = _build_target_entry(portfolio, live_key, live)
            self._cache.target.set(target_key, target)

        result = [_derive(holding, live, target) for holding in portfolio.holdings]
        self._cache.derived.set(derived_key, result)
        return result

    def _breakdown(self, portfolio: Portfolio, attribute: str) -> list[BreakdownEntry]:
        totals = calculate_live_portfolio_totals(portfolio.holdings)
        total = totals.total_allocated_value

        if attribute == "section":
            aggregates = totals.section_totals
        elif attribute == "theme":
            aggregates = totals.theme_totals
        else:
            aggregates = {}
            for holding in self.included_holdings(portfolio):
                key = str(getattr(holding, attribute))
                aggregates[key] = aggregates.get(key, ZERO) + calculate_holding_value(holding).live_value

        entries = [
            BreakdownEntry(
                label=label,
                value=value,
                percentage=value / total * HUNDRED if total > ZERO else ZERO,
            )
            for label, value in aggregates.items()
        ]
        return sorted(entries, key=lambda entry: entry.value, reverse=True)

    def breakdown_by_section(self, portfolio: Portfolio) -> list[BreakdownEntry]:
        return self._breakdown(portfolio, "section")

    def breakdown_by_account(self, portfolio: Portfolio) -> list[BreakdownEntry]:
        return self._breakdown(portfolio, "account")

    def breakdown_by_theme(self, portfolio: Portfolio) -> list[BreakdownEntry]:
        return self._breakdown(portfolio, "theme")

    def budget_remaining(self, portfolio: Portfolio) -> BudgetRemainingView:
        """
        Usage against budget limits for every section, account and theme.

        Theme usage is measured as a share of the theme's section. Theme
        limits are resolved against the section's own budget so amount,
        portfolio percent and percent-of-section are all reported.
        """
        budgets = _normalize_budgets(portfolio.budgets)
        section_breakdown = self.breakdown_by_section(portfolio)
        account_breakdown = self.breakdown_by_account(portfolio)
        theme_breakdown = self.breakdown_by_theme(portfolio)
        section_totals = {entry.label: entry.value for entry in section_breakdown}
        theme_sections = portfolio.lists.theme_sections
        total_value = self.total_value(portfolio)

        def entry_percentage(label, entry):
            return entry.percentage if entry else ZERO

        def theme_percentage(label, entry):
            section = theme_sections.get(label)
            if not section:
                return entry.percentage if entry else ZERO
            section_value = section_totals.get(section, ZERO)
            if entry is None or section_value <= ZERO:
                return ZERO
            return entry.value / section_value * HUNDRED

        def theme_limits(label):
            limit = budgets.themes.get(label)
            section = theme_sections.get(label)
            if limit is None or not section:
                return None

            section_limit = budgets.sections.get(section)
            if section_limit is not None:
                section_target = _resolve_budget_amount(section_limit, total_value)
            else:
                section_target = section_totals.get(section, ZERO)

            amount_limit = limit.amount
            percent_limit = limit.percent
            section_percent_limit = limit.percent_of_section

            if section_percent_limit is not None and section_target is not None:
                amount_limit = section_percent_limit / HUNDRED * section_target
                percent_limit = amount_limit / total_value * HUNDRED if total_value > ZERO else None
            elif amount_limit is not None and section_target is not None and section_target > ZERO:
                section_percent_limit = amount_limit / section_target * HUNDRED
                percent_limit = amount_limit / total_value * HUNDRED if total_value > ZERO else None
            elif percent_limit is not None and total_value > ZERO:
                amount_limit = percent_limit / HUNDRED * total_value
                section_percent_limit = (
                    amount_limit / section_target * HUNDRED
                    if section_target is not None and section_target > ZERO
                    else None
                )

            return {
                "amount_limit": amount_limit,
                "percent_limit": percent_limit,
                "section_percent_limit": section_percent_limit,
            }

        return BudgetRemainingView(
            sections=_build_budget_remaining(
                section_breakdown,
                budgets.sections,
                portfolio.lists.sections,
                entry_percentage,
            ),
            accounts=_build_budget_remaining(
                account_breakdown,
                budgets.accounts,
                portfolio.lists.accounts,
                entry_percentage,
            ),
            themes=_build_budget_remaining(
                theme_breakdown,
                budgets.themes,
                portfolio.lists.themes,
                theme_percentage,
                get_section=theme_sections.get,
                augment=theme_limits,
            ),
        )
