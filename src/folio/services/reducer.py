"""Portfolio reducer: the only writer of AppState.

PortfolioReducer.reduce(state, action) is pure with respect to the state it
is given: every change builds new objects, and an action that changes nothing
returns the very same AppState so callers can compare by reference. After a
change the narrowest matching calculation-cache invalidation is applied.
"""

import copy
import logging
from dataclasses import fields, replace
from decimal import Decimal
from typing import Callable, Optional

from folio.config.settings import get_settings
from folio.core.numbers import ZERO, HUNDRED, is_finite, to_optional_decimal
from folio.core.timezone import now_local
from folio.domain.actions import (
    AddHolding,
    AddListItem,
    AddPortfolio,
    CreateDraftPortfolio,
    DeleteHolding,
    DuplicateHolding,
    ImportHoldings,
    ImportTrades,
    PortfolioAction,
    PromoteDraftToActual,
    RecordTrade,
    RemoveListItem,
    RemovePortfolio,
    RenameListItem,
    RenamePortfolio,
    ReorderList,
    RestorePlayground,
    RestorePortfolioBackup,
    RestoreState,
    SetActivePortfolio,
    SetBudget,
    SetFilter,
    SetHoldingTargetPercent,
    SetPlaygroundEnabled,
    SetThemeSection,
    SetTotal,
    UpdateHolding,
    UpdateLivePrices,
    UpdatePortfolioSettings,
)
from folio.domain.models import (
    LIST_FILTER_KEYS,
    AppState,
    AssetType,
    BudgetDomain,
    BudgetLimit,
    FilterKey,
    Holding,
    ListDomain,
    Lists,
    PlaygroundState,
    Portfolio,
    PortfolioSettings,
    PortfolioType,
    Trade,
    TradeType,
)
from folio.services.budget_preservation import (
    calculate_section_current_percent,
    calculate_theme_current_percent,
    preserve_holding_ratios_on_theme_change,
    preserve_theme_ratios_on_section_change,
)
from folio.services.calculation_cache import CalculationCache
from folio.services.calculations import calculate_cash_buffer_qty, clean_amount
from folio.services.factory import (
    CASH_BUFFER_NAME,
    CASH_BUFFER_PRICE,
    CASH_SECTION,
    DEFAULT_THEME,
    IMPORTED_LABEL,
    create_empty_portfolio,
    create_holding,
    generate_id,
    get_active_portfolio,
)
from folio.services.selectors import select_total_value

logger = logging.getLogger(__name__)

_HOLDING_FIELDS = {f.name for f in fields(Holding)} - {"id"}
_SETTINGS_FIELDS = {f.name for f in fields(PortfolioSettings)}

# London tickers quoted above this without a currency tag are in pence
LSE_SUFFIX = ".L"
PENCE_THRESHOLD = Decimal("1000")

INVALIDATE_ALL = "all"
INVALIDATE_TARGET = "target"
INVALIDATE_LIVE = "live"

# Actions missing here (selection and portfolio lifecycle) never invalidate
_INVALIDATION_SCOPES = {
    AddHolding: INVALIDATE_ALL,
    DeleteHolding: INVALIDATE_ALL,
    DuplicateHolding: INVALIDATE_ALL,
    UpdateHolding: INVALIDATE_ALL,
    SetTotal: INVALIDATE_ALL,
    SetThemeSection: INVALIDATE_ALL,
    RenameListItem: INVALIDATE_ALL,
    RemoveListItem: INVALIDATE_ALL,
    ImportHoldings: INVALIDATE_ALL,
    RecordTrade: INVALIDATE_ALL,
    ImportTrades: INVALIDATE_ALL,
    PromoteDraftToActual: INVALIDATE_ALL,
    RestorePlayground: INVALIDATE_ALL,
    RestoreState: INVALIDATE_ALL,
    RestorePortfolioBackup: INVALIDATE_ALL,
    SetBudget: INVALIDATE_TARGET,
    SetHoldingTargetPercent: INVALIDATE_TARGET,
    AddListItem: INVALIDATE_TARGET,
    ReorderList: INVALIDATE_TARGET,
    UpdatePortfolioSettings: INVALIDATE_TARGET,
    UpdateLivePrices: INVALIDATE_LIVE,
}


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def create_unique_portfolio_name(existing_names: list[str], base: str) -> str:
    """Return base, or "base 2", "base 3", ... whichever is not taken."""
    if base not in existing_names:
        return base
    counter = 2
    while f"{base} {counter}" in existing_names:
        counter += 1
    return f"{base} {counter}"


def apply_trade_to_holding(
    holding: Holding,
    trade_type: TradeType,
    price: Decimal,
    qty: Decimal,
) -> Holding:
    """
    Apply a buy or sell to a holding.

    Buys update avg_cost to the weighted average and set price to the trade
    price (a zero price keeps the current one). Sells floor qty at 0 and
    reset avg_cost to 0 once the position is closed. NaN or negative trade
    values count as 0.
    """
    clean_qty = clean_amount(qty)
    clean_price = clean_amount(price)
    current_qty = holding.qty
    current_avg = holding.effective_avg_cost

    if TradeType(trade_type) == TradeType.BUY:
        new_qty = current_qty + clean_qty
        total_cost = current_avg * current_qty + clean_price * clean_qty
        return replace(
            holding,
            qty=new_qty,
            avg_cost=total_cost / new_qty if new_qty > ZERO else ZERO,
            price=clean_price if clean_price > ZERO and new_qty > ZERO else holding.price,
        )

    new_qty = max(ZERO, current_qty - clean_qty)
    return replace(holding, qty=new_qty, avg_cost=ZERO if new_qty == ZERO else current_avg)


def _pin_last(items: list[str], value: str) -> list[str]:
    pinned = [item for item in items if item != value] + [value]
    return items if pinned == items else pinned


def ensure_cash_lists(lists: Lists) -> Lists:
    """Put the Cash section and theme last and map the Cash theme to Cash."""
    sections = _pin_last(lists.sections, CASH_SECTION)
    themes = _pin_last(lists.themes, CASH_SECTION)
    theme_sections = lists.theme_sections
    if theme_sections.get(CASH_SECTION) != CASH_SECTION:
        theme_sections = {**theme_sections, CASH_SECTION: CASH_SECTION}

    if sections is lists.sections and themes is lists.themes and theme_sections is lists.theme_sections:
        return lists
    return replace(lists, sections=sections, themes=themes, theme_sections=theme_sections)


def ensure_cash_portfolio(portfolio: Portfolio) -> Portfolio:
    """Restore the Cash invariants and missing timestamps; same object if already valid."""
    lists = ensure_cash_lists(portfolio.lists)
    changes = {}
    if lists is not portfolio.lists:
        changes["lists"] = lists
    if portfolio.created_at is None or portfolio.updated_at is None:
        now = now_local()
        changes["created_at"] = portfolio.created_at or now
        changes["updated_at"] = portfolio.updated_at or now
    return replace(portfolio, **changes) if changes else portfolio


def _create_cash_holding(portfolio: Portfolio) -> Holding:
    return create_holding(
        asset_type=AssetType.CASH,
        name=CASH_BUFFER_NAME,
        price=CASH_BUFFER_PRICE,
        section=CASH_SECTION,
        theme=CASH_SECTION,
        account=portfolio.lists.accounts[0] if portfolio.lists.accounts else "Brokerage",
        avg_cost=CASH_BUFFER_PRICE,
    )


def adjust_total(portfolio: Portfolio, total: Decimal) -> Portfolio:
    """
    Resize (or create) the Cash buffer so included holdings sum to total.

    Other holdings are valued at their manual price. Non-positive or
    non-finite totals leave the portfolio unchanged.
    """
    if not is_finite(total) or total <= ZERO:
        return portfolio

    holdings = list(portfolio.holdings)
    cash_index = next(
        (
            i
            for i, h in enumerate(holdings)
            if h.asset_type == AssetType.CASH and h.name == CASH_BUFFER_NAME
        ),
        None,
    )
    if cash_index is None:
        holdings.append(_create_cash_holding(portfolio))
        cash_index = len(holdings) - 1

    other_total = sum(
        (h.price * h.qty for i, h in enumerate(holdings) if i != cash_index and h.include),
        ZERO,
    )
    cash = holdings[cash_index]
    holdings[cash_index] = replace(
        cash,
        price=CASH_BUFFER_PRICE,
        qty=calculate_cash_buffer_qty(total, other_total),
        include=True,
        section=CASH_SECTION,
        theme=CASH_SECTION,
        account=cash.account or (portfolio.lists.accounts[0] if portfolio.lists.accounts else "Brokerage"),
    )
    return replace(portfolio, holdings=holdings)


def _apply_theme_sections(portfolio: Portfolio) -> list[Holding]:
    theme_sections = portfolio.lists.theme_sections
    changed = False
    holdings = []
    for holding in portfolio.holdings:
        section = theme_sections.get(holding.theme)
        if section and holding.section != section:
            holding = replace(holding, section=section)
            changed = True
        holdings.append(holding)
    return holdings if changed else portfolio.holdings


def apply_budgets_and_lock(portfolio: Portfolio) -> Portfolio:
    """Move holdings into their theme's section, then re-apply a locked total."""
    holdings = _apply_theme_sections(portfolio)
    if holdings is not portfolio.holdings:
        portfolio = replace(portfolio, holdings=holdings)

    settings = portfolio.settings
    if settings.lock_total and settings.locked_total:
        return adjust_total(portfolio, settings.locked_total)
    return portfolio


def _normalize_limit_value(value) -> Optional[Decimal]:
    value = to_optional_decimal(value)
    return max(value, ZERO) if is_finite(value) else None


def _replace_holding(portfolio: Portfolio, holding_id: str, updated: Holding) -> list[Holding]:
    return [updated if h.id == holding_id else h for h in portfolio.holdings]


def _rename_key(mapping: dict, previous: str, next_value: str) -> dict:
    if previous not in mapping or next_value in mapping:
        return mapping
    return {(next_value if key == previous else key): value for key, value in mapping.items()}


def _parse_enum(enum_cls, value):
    """Enum member for value, or None when the value is not recognised."""
    try:
        return enum_cls(value)
    except ValueError:
        logger.info("Ignoring unknown %s: %r", enum_cls.__name__, value)
        return None


def _remove_key(mapping: dict, key: str) -> dict:
    if key not in mapping:
        return mapping
    return {k: v for k, v in mapping.items() if k != key}


def _cascade_holdings(holdings: list[Holding], field: str, previous: str, next_value: str) -> list[Holding]:
    return [
        replace(h, **{field: next_value}) if getattr(h, field) == previous else h
        for h in holdings
    ]


class PortfolioReducer:
    """
    Applies PortfolioActions to an AppState.

    Handlers are looked up by action class; unknown actions return the state
    unchanged. Only the active-portfolio lookup raises
    (ActivePortfolioNotFoundError); any other invalid input is a no-op.
    """

    def __init__(self, cache: CalculationCache):
        self._cache = cache
        self._handlers: dict[type, Callable[[AppState, PortfolioAction], AppState]] = {
            AddHolding: self._add_holding,
            DeleteHolding: self._delete_holding,
            DuplicateHolding: self._duplicate_holding,
            UpdateHolding: self._update_holding,
            SetTotal: self._set_total,
            SetHoldingTargetPercent: self._set_holding_target_percent,
            SetFilter: self._set_filter,
            SetBudget: self._set_budget,
            SetThemeSection: self._set_theme_section,
            AddListItem: self._add_list_item,
            RenameListItem: self._rename_list_item,
            RemoveListItem: self._remove_list_item,
            ReorderList: self._reorder_list,
            ImportHoldings: self._import_holdings,
            RecordTrade: self._record_trade,
            ImportTrades: self._import_trades,
            SetActivePortfolio: self._set_active_portfolio,
            RenamePortfolio: self._rename_portfolio,
            AddPortfolio: self._add_portfolio,
            RemovePortfolio: self._remove_portfolio,
            CreateDraftPortfolio: self._create_draft_portfolio,
            PromoteDraftToActual: self._promote_draft_to_actual,
            SetPlaygroundEnabled: self._set_playground_enabled,
            RestorePlayground: self._restore_playground,
            RestoreState: self._restore_state,
            RestorePortfolioBackup: self._restore_portfolio_backup,
            UpdatePortfolioSettings: self._update_portfolio_settings,
            UpdateLivePrices: self._update_live_prices,
        }

    def reduce(self, state: AppState, action: PortfolioAction) -> AppState:
        """Return the state after action; the same object when nothing changed."""
        handler = self._handlers.get(type(action))
        if handler is None:
            logger.debug("Ignoring unknown action %r", action)
            return state

        logger.debug("Reducing %s", action.ACTION_TYPE)
        next_state = handler(state, action)
        if next_state is not state:
            self._invalidate(action, state, next_state)
        return next_state

    def _invalidate(self, action: PortfolioAction, state: AppState, next_state: AppState) -> None:
        scope = _INVALIDATION_SCOPES.get(type(action))
        if isinstance(action, UpdatePortfolioSettings):
            before = state.find_portfolio(state.active_portfolio_id)
            after = next_state.find_portfolio(next_state.active_portfolio_id)
            if before is None or after is None or before.holdings is not after.holdings:
                scope = INVALIDATE_ALL

        if scope == INVALIDATE_ALL:
            self._cache.invalidate_all_calculations()
        elif scope == INVALIDATE_TARGET:
            self._cache.invalidate_target_calculations()
        elif scope == INVALIDATE_LIVE:
            self._cache.invalidate_live_calculations()

    def _update_active_portfolio(
        self,
        state: AppState,
        updater: Callable[[Portfolio], Portfolio],
    ) -> AppState:
        """Replace the active portfolio with updater's result (same state if unchanged)."""
        portfolio = get_active_portfolio(state)
        updated = updater(portfolio)
        if updated is portfolio:
            return state
        updated = ensure_cash_portfolio(updated)
        portfolios = [updated if p is portfolio else p for p in state.portfolios]
        return replace(state, portfolios=portfolios)

    # -------------------------------------------------------------------------
    # Holdings
    # -------------------------------------------------------------------------

    def _add_holding(self, state: AppState, action: AddHolding) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            lists = portfolio.lists
            if action.holding is not None:
                holding = replace(
                    action.holding,
                    price=clean_amount(action.holding.price),
                    qty=clean_amount(action.holding.qty),
                )
            else:
                holding = create_holding(
                    section=lists.sections[0] if lists.sections else "Core",
                    theme=lists.themes[0] if lists.themes else DEFAULT_THEME,
                    account=lists.accounts[0] if lists.accounts else "Brokerage",
                )
            return apply_budgets_and_lock(
                replace(portfolio, holdings=portfolio.holdings + [holding])
            )

        return self._update_active_portfolio(state, updater)

    def _delete_holding(self, state: AppState, action: DeleteHolding) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            if portfolio.find_holding(action.id) is None:
                return portfolio
            holdings = [h for h in portfolio.holdings if h.id != action.id]
            return apply_budgets_and_lock(replace(portfolio, holdings=holdings))

        return self._update_active_portfolio(state, updater)

    def _duplicate_holding(self, state: AppState, action: DuplicateHolding) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            index = next(
                (i for i, h in enumerate(portfolio.holdings) if h.id == action.id), None
            )
            if index is None:
                return portfolio
            clone = replace(portfolio.holdings[index], id=generate_id())
            holdings = list(portfolio.holdings)
            holdings.insert(index + 1, clone)
            return apply_budgets_and_lock(replace(portfolio, holdings=holdings))

        return self._update_active_portfolio(state, updater)

    def _update_holding(self, state: AppState, action: UpdateHolding) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            holding = portfolio.find_holding(action.id)
            if holding is None:
                return portfolio
            patch = {k: v for k, v in action.patch.items() if k in _HOLDING_FIELDS}
            for key in ("price", "qty"):
                if key in patch:
                    patch[key] = clean_amount(patch[key])
            updated = replace(holding, **patch)
            if updated == holding:
                return portfolio
            return apply_budgets_and_lock(
                replace(portfolio, holdings=_replace_holding(portfolio, action.id, updated))
            )

        return self._update_active_portfolio(state, updater)

    def _set_total(self, state: AppState, action: SetTotal) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            settings = replace(
                portfolio.settings,
                lock_total=True,
                locked_total=action.total if is_finite(action.total) else None,
            )
            return apply_budgets_and_lock(replace(portfolio, settings=settings))

        return self._update_active_portfolio(state, updater)

    def _set_holding_target_percent(
        self, state: AppState, action: SetHoldingTargetPercent
    ) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            holding = portfolio.find_holding(action.holding_id)
            if holding is None:
                return portfolio
            target_pct = to_optional_decimal(action.target_pct)
            if not is_finite(target_pct) or target_pct <= ZERO:
                target_pct = None
            if target_pct == holding.target_pct:
                return portfolio
            updated = replace(holding, target_pct=target_pct)
            return apply_budgets_and_lock(
                replace(portfolio, holdings=_replace_holding(portfolio, holding.id, updated))
            )

        return self._update_active_portfolio(state, updater)

    # -------------------------------------------------------------------------
    # Filters and budgets
    # -------------------------------------------------------------------------

    def _set_filter(self, state: AppState, action: SetFilter) -> AppState:
        key = _parse_enum(FilterKey, action.key)
        if key is None:
            return state
        key = key.value
        if action.value:
            if state.filters.get(key) == action.value:
                return state
            filters = {**state.filters, key: action.value}
        else:
            if key not in state.filters:
                return state
            filters = _remove_key(state.filters, key)
        return replace(state, filters=filters)

    def _set_budget(self, state: AppState, action: SetBudget) -> AppState:
        domain = _parse_enum(BudgetDomain, action.domain)
        if domain is None:
            return state

        def updater(portfolio: Portfolio) -> Portfolio:
            budgets = portfolio.budgets
            domain_budgets = dict(budgets.for_domain(domain))
            limit = action.limit or BudgetLimit()
            normalized = BudgetLimit(
                amount=_normalize_limit_value(limit.amount),
                percent=_normalize_limit_value(limit.percent),
                percent_of_section=_normalize_limit_value(limit.percent_of_section),
            )

            if normalized.is_empty:
                if action.key not in domain_budgets:
                    return portfolio
                del domain_budgets[action.key]
                updated = portfolio
            else:
                updated = self._rescale_children(portfolio, domain, action.key, normalized)
                if domain == BudgetDomain.THEMES and normalized.percent_of_section is not None:
                    normalized = self._resolve_theme_limit(portfolio, action.key, normalized)
                if domain_budgets.get(action.key) == normalized and updated is portfolio:
                    return portfolio
                domain_budgets[action.key] = normalized

            new_budgets = replace(updated.budgets, **{domain.value: domain_budgets})
            return apply_budgets_and_lock(replace(updated, budgets=new_budgets))

        return self._update_active_portfolio(state, updater)

    @staticmethod
    def _rescale_children(
        portfolio: Portfolio,
        domain: BudgetDomain,
        key: str,
        limit: BudgetLimit,
    ) -> Portfolio:
        """Keep children's relative weights when a section or theme percent moves."""
        total = select_total_value(portfolio)
        if domain == BudgetDomain.SECTIONS and limit.percent is not None:
            old_percent = calculate_section_current_percent(portfolio.budgets.sections.get(key), total)
            if old_percent > ZERO and limit.percent != old_percent:
                return preserve_theme_ratios_on_section_change(
                    portfolio, key, old_percent, limit.percent
                )
        elif domain == BudgetDomain.THEMES and limit.percent_of_section is not None:
            old_percent = calculate_theme_current_percent(portfolio.budgets.themes.get(key))
            if old_percent > ZERO and limit.percent_of_section != old_percent:
                return preserve_holding_ratios_on_theme_change(
                    portfolio, key, old_percent, limit.percent_of_section
                )
        return portfolio

    @staticmethod
    def _resolve_theme_limit(portfolio: Portfolio, theme: str, limit: BudgetLimit) -> BudgetLimit:
        """Fill a theme limit's portfolio percent and amount from its section's budget."""
        section = portfolio.lists.theme_sections.get(theme)
        if not section:
            return limit

        total = select_total_value(portfolio)
        section_limit = portfolio.budgets.sections.get(section)
        section_percent = None
        section_amount = None
        if section_limit is not None:
            section_percent = _normalize_limit_value(section_limit.percent)
            section_amount = _normalize_limit_value(section_limit.amount)
            if section_percent is None and section_amount is not None and total > ZERO:
                section_percent = section_amount / total * HUNDRED
            if section_amount is None and section_percent is not None and total > ZERO:
                section_amount = section_percent / HUNDRED * total

        percent = limit.percent
        amount = limit.amount
        if section_percent is not None:
            percent = section_percent * limit.percent_of_section / HUNDRED
        if section_amount is not None:
            amount = limit.percent_of_section / HUNDRED * section_amount
        elif percent is not None and total > ZERO:
            amount = percent / HUNDRED * total
        return BudgetLimit(amount=amount, percent=percent, percent_of_section=limit.percent_of_section)

    def _set_theme_section(self, state: AppState, action: SetThemeSection) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            current = portfolio.lists.theme_sections
            if action.section:
                theme_sections = {**current, action.theme: action.section}
                holdings = [
                    replace(h, section=action.section)
                    if h.theme == action.theme and h.section != action.section
                    else h
                    for h in portfolio.holdings
                ]
            else:
                theme_sections = _remove_key(current, action.theme)
                holdings = portfolio.holdings

            if theme_sections == current and holdings == portfolio.holdings:
                return portfolio
            lists = replace(portfolio.lists, theme_sections=theme_sections)
            return apply_budgets_and_lock(replace(portfolio, holdings=holdings, lists=lists))

        return self._update_active_portfolio(state, updater)

    # -------------------------------------------------------------------------
    # Lists
    # -------------------------------------------------------------------------

    def _add_list_item(self, state: AppState, action: AddListItem) -> AppState:
        value = action.value.strip()
        if not value:
            return state
        domain = _parse_enum(ListDomain, action.domain)
        if domain is None:
            return state

        def updater(portfolio: Portfolio) -> Portfolio:
            items = portfolio.lists.for_domain(domain)
            if value in items:
                return portfolio
            changes = {domain.value: items + [value]}
            if domain == ListDomain.THEMES and value not in portfolio.lists.theme_sections:
                section = action.section or (
                    portfolio.lists.sections[0] if portfolio.lists.sections else "Core"
                )
                changes["theme_sections"] = {**portfolio.lists.theme_sections, value: section}
            lists = replace(portfolio.lists, **changes)
            return apply_budgets_and_lock(replace(portfolio, lists=lists))

        return self._update_active_portfolio(state, updater)

    def _rename_list_item(self, state: AppState, action: RenameListItem) -> AppState:
        domain = _parse_enum(ListDomain, action.domain)
        if domain is None:
            return state
        previous = action.previous
        next_value = action.next.strip()
        if domain != ListDomain.ACCOUNTS and previous == CASH_SECTION:
            return state
        if not next_value or next_value == previous:
            return state

        field = LIST_FILTER_KEYS[domain].value

        def updater(portfolio: Portfolio) -> Portfolio:
            items = portfolio.lists.for_domain(domain)
            if previous not in items or next_value in items:
                return portfolio

            renamed = [next_value if item == previous else item for item in items]
            holdings = _cascade_holdings(portfolio.holdings, field, previous, next_value)
            budget_map = portfolio.budgets.for_domain(BudgetDomain(domain.value))
            budgets = replace(
                portfolio.budgets,
                **{domain.value: _rename_key(budget_map, previous, next_value)},
            )
            theme_sections = portfolio.lists.theme_sections
            if domain == ListDomain.SECTIONS:
                theme_sections = {
                    theme: (next_value if section == previous else section)
                    for theme, section in theme_sections.items()
                }
            elif domain == ListDomain.THEMES:
                theme_sections = _rename_key(theme_sections, previous, next_value)

            lists = replace(
                portfolio.lists, **{domain.value: renamed, "theme_sections": theme_sections}
            )
            return apply_budgets_and_lock(
                replace(portfolio, holdings=holdings, budgets=budgets, lists=lists)
            )

        updated = self._update_active_portfolio(state, updater)
        if updated is state:
            return state
        if updated.filters.get(field) == previous:
            updated = replace(updated, filters={**updated.filters, field: next_value})
        return updated

    def _remove_list_item(self, state: AppState, action: RemoveListItem) -> AppState:
        domain = _parse_enum(ListDomain, action.domain)
        if domain is None:
            return state
        value = action.value
        if domain != ListDomain.ACCOUNTS and value == CASH_SECTION:
            return state

        field = LIST_FILTER_KEYS[domain].value

        def updater(portfolio: Portfolio) -> Portfolio:
            items = portfolio.lists.for_domain(domain)
            if value not in items or len(items) <= 1:
                return portfolio

            remaining = [item for item in items if item != value]
            fallback = next((item for item in remaining if item != CASH_SECTION), remaining[0])
            holdings = _cascade_holdings(portfolio.holdings, field, value, fallback)
            budget_map = portfolio.budgets.for_domain(BudgetDomain(domain.value))
            budgets = replace(portfolio.budgets, **{domain.value: _remove_key(budget_map, value)})
            theme_sections = portfolio.lists.theme_sections
            if domain == ListDomain.SECTIONS:
                theme_sections = {
                    theme: (fallback if section == value else section)
                    for theme, section in theme_sections.items()
                }
            elif domain == ListDomain.THEMES:
                theme_sections = _remove_key(theme_sections, value)

            lists = replace(
                portfolio.lists, **{domain.value: remaining, "theme_sections": theme_sections}
            )
            return apply_budgets_and_lock(
                replace(portfolio, holdings=holdings, budgets=budgets, lists=lists)
            )

        updated = self._update_active_portfolio(state, updater)
        if updated is state:
            return state
        if updated.filters.get(field) == value:
            active = get_active_portfolio(updated)
            updated = replace(
                updated, filters={**updated.filters, field: active.lists.for_domain(domain)[0]}
            )
        return updated

    def _reorder_list(self, state: AppState, action: ReorderList) -> AppState:
        domain = _parse_enum(ListDomain, action.domain)
        if domain is None:
            return state

        def updater(portfolio: Portfolio) -> Portfolio:
            original = portfolio.lists.for_domain(domain)
            if action.from_index < 0 or action.from_index >= len(original):
                return portfolio
            if domain == ListDomain.SECTIONS and original[action.from_index] == CASH_SECTION:
                return portfolio

            items = list(original)
            item = items.pop(action.from_index)
            items.insert(min(max(action.to_index, 0), len(items)), item)
            if domain != ListDomain.ACCOUNTS and CASH_SECTION in items:
                items = _pin_last(items, CASH_SECTION)
            if items == original:
                return portfolio
            return replace(portfolio, lists=replace(portfolio.lists, **{domain.value: items}))

        return self._update_active_portfolio(state, updater)

    # -------------------------------------------------------------------------
    # Imports and trades
    # -------------------------------------------------------------------------

    def _import_holdings(self, state: AppState, action: ImportHoldings) -> AppState:
        if not action.rows:
            return state
        target_account = (action.account or "").strip() or None

        def dedupe_key(ticker: Optional[str], name: Optional[str]) -> tuple[str, str]:
            return (ticker or "").strip().lower(), (name or "").strip().lower()

        def updater(portfolio: Portfolio) -> Portfolio:
            holdings = list(portfolio.holdings)
            index_by_key = {}
            for i, h in enumerate(holdings):
                index_by_key.setdefault(dedupe_key(h.ticker, h.name), i)

            sections = list(portfolio.lists.sections)
            themes = list(portfolio.lists.themes)
            accounts = list(portfolio.lists.accounts)
            theme_sections = dict(portfolio.lists.theme_sections)

            for row in action.rows:
                key = dedupe_key(row.ticker, row.name)
                if key in index_by_key:
                    index = index_by_key[key]
                    existing = holdings[index]
                    changes = {"price": clean_amount(row.price), "qty": clean_amount(row.qty)}
                    if row.exchange is not None:
                        changes["exchange"] = row.exchange
                    holdings[index] = replace(existing, **changes)
                    continue

                section = (row.section or "").strip() or IMPORTED_LABEL
                theme = (row.theme or "").strip() or DEFAULT_THEME
                account = target_account or (row.account or "").strip() or IMPORTED_LABEL

                if section not in sections:
                    sections.append(section)
                if account not in accounts:
                    accounts.append(account)
                if theme != DEFAULT_THEME:
                    if theme not in themes:
                        themes.append(theme)
                    theme_sections.setdefault(theme, section)

                holdings.append(
                    create_holding(
                        section=section,
                        theme=theme,
                        asset_type=row.asset_type or AssetType.OTHER,
                        name=row.name,
                        ticker=row.ticker,
                        account=account,
                        price=row.price,
                        qty=row.qty,
                        include=row.include,
                        target_pct=row.target_pct,
                        exchange=row.exchange,
                    )
                )
                index_by_key[key] = len(holdings) - 1

            themes = [DEFAULT_THEME] + [t for t in themes if t != DEFAULT_THEME]
            lists = ensure_cash_lists(
                Lists(
                    sections=sections,
                    themes=themes,
                    accounts=accounts,
                    theme_sections=theme_sections,
                )
            )
            return apply_budgets_and_lock(replace(portfolio, holdings=holdings, lists=lists))

        updated = self._update_active_portfolio(state, updater)
        return replace(updated, filters={})

    def _record_trade(self, state: AppState, action: RecordTrade) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            holding = portfolio.find_holding(action.holding_id)
            if holding is None:
                return portfolio
            updated = apply_trade_to_holding(holding, action.type, action.price, action.qty)
            trade = Trade(
                id=generate_id(),
                holding_id=holding.id,
                type=action.type,
                date=action.date or now_local(),
                price=clean_amount(action.price),
                qty=clean_amount(action.qty),
            )
            return apply_budgets_and_lock(
                replace(
                    portfolio,
                    holdings=_replace_holding(portfolio, holding.id, updated),
                    trades=portfolio.trades + [trade],
                )
            )

        return self._update_active_portfolio(state, updater)

    def _import_trades(self, state: AppState, action: ImportTrades) -> AppState:
        if not action.trades:
            return state

        def updater(portfolio: Portfolio) -> Portfolio:
            sections = list(portfolio.lists.sections)
            themes = list(portfolio.lists.themes)
            accounts = list(portfolio.lists.accounts)
            theme_sections = dict(portfolio.lists.theme_sections)
            holdings = list(portfolio.holdings)
            trades = list(portfolio.trades)

            for row in action.trades:
                ticker_key = row.ticker.strip().lower()
                index = next(
                    (i for i, h in enumerate(holdings) if h.ticker.strip().lower() == ticker_key),
                    None,
                )
                if index is None:
                    for items, label in (
                        (sections, IMPORTED_LABEL),
                        (themes, DEFAULT_THEME),
                        (accounts, IMPORTED_LABEL),
                    ):
                        if label not in items:
                            items.append(label)
                    theme_sections.setdefault(DEFAULT_THEME, IMPORTED_LABEL)
                    holdings.append(
                        create_holding(
                            section=IMPORTED_LABEL,
                            theme=DEFAULT_THEME,
                            asset_type=AssetType.OTHER,
                            name=row.name or row.ticker,
                            ticker=row.ticker,
                            account=IMPORTED_LABEL,
                            price=row.price,
                            qty=ZERO,
                            avg_cost=clean_amount(row.price),
                        )
                    )
                    index = len(holdings) - 1

                holdings[index] = apply_trade_to_holding(holdings[index], row.type, row.price, row.qty)
                trades.append(
                    Trade(
                        id=generate_id(),
                        holding_id=holdings[index].id,
                        type=row.type,
                        date=row.date or now_local(),
                        price=clean_amount(row.price),
                        qty=clean_amount(row.qty),
                    )
                )

            lists = ensure_cash_lists(
                Lists(
                    sections=sections,
                    themes=themes,
                    accounts=accounts,
                    theme_sections=theme_sections,
                )
            )
            return apply_budgets_and_lock(
                replace(portfolio, holdings=holdings, trades=trades, lists=lists)
            )

        return self._update_active_portfolio(state, updater)

    # -------------------------------------------------------------------------
    # Portfolio lifecycle
    # -------------------------------------------------------------------------

    def _set_active_portfolio(self, state: AppState, action: SetActivePortfolio) -> AppState:
        if state.active_portfolio_id == action.id or state.find_portfolio(action.id) is None:
            return state
        return replace(
            state,
            active_portfolio_id=action.id,
            filters={},
            playground=PlaygroundState(enabled=False),
        )

    def _rename_portfolio(self, state: AppState, action: RenamePortfolio) -> AppState:
        name = action.name.strip()
        portfolio = state.find_portfolio(action.id)
        if not name or portfolio is None:
            return state
        existing_names = [p.name for p in state.portfolios if p.id != action.id]
        unique_name = create_unique_portfolio_name(existing_names, name)
        if unique_name == portfolio.name:
            return state
        renamed = replace(portfolio, name=unique_name)
        return replace(
            state,
            portfolios=[renamed if p is portfolio else p for p in state.portfolios],
        )

    def _add_portfolio(self, state: AppState, action: AddPortfolio) -> AppState:
        portfolio_id = action.id or generate_id()
        if state.find_portfolio(portfolio_id) is not None:
            return state
        base_name = (action.name or "").strip() or "New Portfolio"
        name = create_unique_portfolio_name([p.name for p in state.portfolios], base_name)
        portfolio = ensure_cash_portfolio(
            create_empty_portfolio(
                portfolio_id,
                name,
                PortfolioType(action.portfolio_type),
                action.parent_id,
            )
        )
        return replace(
            state,
            portfolios=state.portfolios + [portfolio],
            active_portfolio_id=portfolio.id,
            filters={},
            playground=PlaygroundState(enabled=False),
        )

    def _remove_portfolio(self, state: AppState, action: RemovePortfolio) -> AppState:
        if len(state.portfolios) <= 1:
            logger.info("Refusing to remove the last portfolio %s", action.id)
            return state
        portfolios = [p for p in state.portfolios if p.id != action.id]
        if len(portfolios) == len(state.portfolios):
            return state
        active_id = state.active_portfolio_id
        if active_id == action.id:
            active_id = portfolios[0].id
        return replace(
            state,
            portfolios=portfolios,
            active_portfolio_id=active_id,
            filters={},
            playground=PlaygroundState(enabled=False),
        )

    def _create_draft_portfolio(self, state: AppState, action: CreateDraftPortfolio) -> AppState:
        parent = state.find_portfolio(action.parent_id)
        if parent is None:
            return state
        base_name = (action.name or "").strip() or f"{parent.name} (Draft)"
        name = create_unique_portfolio_name([p.name for p in state.portfolios], base_name)
        now = now_local()
        draft = replace(
            copy.deepcopy(parent),
            id=generate_id(),
            name=name,
            type=PortfolioType.DRAFT,
            parent_id=parent.id,
            created_at=now,
            updated_at=now,
        )
        return replace(
            state,
            portfolios=state.portfolios + [draft],
            active_portfolio_id=draft.id,
            filters={},
            playground=PlaygroundState(enabled=False),
        )

    def _promote_draft_to_actual(self, state: AppState, action: PromoteDraftToActual) -> AppState:
        draft = state.find_portfolio(action.draft_id)
        if draft is None or not draft.is_draft or not draft.parent_id:
            return state
        parent = state.find_portfolio(draft.parent_id)
        if parent is None:
            return state

        promoted = replace(
            draft,
            id=parent.id,
            name=parent.name,
            type=PortfolioType.ACTUAL,
            parent_id=None,
            updated_at=now_local(),
        )
        portfolios = [
            promoted if p is parent else p for p in state.portfolios if p is not draft
        ]
        return replace(
            state,
            portfolios=portfolios,
            active_portfolio_id=promoted.id,
            filters={},
            playground=PlaygroundState(enabled=False),
        )

    # -------------------------------------------------------------------------
    # Playground, restore and settings
    # -------------------------------------------------------------------------

    def _set_playground_enabled(self, state: AppState, action: SetPlaygroundEnabled) -> AppState:
        if action.enabled:
            snapshot = copy.deepcopy(get_active_portfolio(state))
            return replace(state, playground=PlaygroundState(enabled=True, snapshot=snapshot))
        if not state.playground.enabled and state.playground.snapshot is None:
            return state
        return replace(state, playground=PlaygroundState(enabled=False))

    def _restore_playground(self, state: AppState, action: RestorePlayground) -> AppState:
        snapshot = state.playground.snapshot
        if snapshot is None or state.find_portfolio(snapshot.id) is None:
            return state
        portfolios = [
            copy.deepcopy(snapshot) if p.id == snapshot.id else p for p in state.portfolios
        ]
        return replace(state, portfolios=portfolios)

    def _restore_state(self, state: AppState, action: RestoreState) -> AppState:
        return action.state

    def _restore_portfolio_backup(self, state: AppState, action: RestorePortfolioBackup) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            return replace(
                copy.deepcopy(action.portfolio),
                id=portfolio.id,
                updated_at=now_local(),
            )

        return self._update_active_portfolio(state, updater)

    def _update_portfolio_settings(
        self, state: AppState, action: UpdatePortfolioSettings
    ) -> AppState:
        def updater(portfolio: Portfolio) -> Portfolio:
            patch = {k: v for k, v in action.settings.items() if k in _SETTINGS_FIELDS}
            settings = replace(portfolio.settings, **patch)
            if settings == portfolio.settings:
                return portfolio
            updated = replace(portfolio, settings=settings)
            if "lock_total" in patch or "locked_total" in patch:
                updated = apply_budgets_and_lock(updated)
            return updated

        return self._update_active_portfolio(state, updater)

    def _update_live_prices(self, state: AppState, action: UpdateLivePrices) -> AppState:
        minor_units = set(get_settings().minor_unit_currencies)

        def updater(portfolio: Portfolio) -> Portfolio:
            changed = False
            holdings = []
            for holding in portfolio.holdings:
                quote = action.prices.get(holding.ticker) if holding.ticker else None
                if quote is None or holding.is_cash:
                    holdings.append(holding)
                    continue

                live_price = quote.price
                if quote.original_currency in minor_units:
                    source = quote.original_price if quote.original_price is not None else quote.price
                    live_price = source / HUNDRED
                elif holding.ticker.upper().endswith(LSE_SUFFIX) and (
                    quote.price > PENCE_THRESHOLD
                    or (quote.original_price or ZERO) > PENCE_THRESHOLD
                ):
                    # LSE quote without a currency tag, priced in pence
                    live_price = (quote.original_price or quote.price) / HUNDRED

                if (
                    holding.live_price == live_price
                    and holding.day_change == quote.change
                    and holding.day_change_percent == quote.change_percent
                ):
                    holdings.append(holding)
                    continue

                changed = True
                holdings.append(
                    replace(
                        holding,
                        live_price=live_price,
                        live_price_updated=quote.updated,
                        day_change=quote.change,
                        day_change_percent=quote.change_percent,
                        original_live_price=quote.original_price,
                        original_currency=quote.original_currency,
                        conversion_rate=quote.conversion_rate,
                    )
                )

            if not changed:
                return portfolio
            return replace(portfolio, holdings=holdings)

        return self._update_active_portfolio(state, updater)
