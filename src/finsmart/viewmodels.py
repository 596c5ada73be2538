"""Application state container and helpers that bridge the UI with domain models."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, List, Optional

from .ai import FinancialAdvisor
from .models import (
    INCOME_TYPE_LABELS,
    NEW_CATEGORY_COLOR,
    NEW_CATEGORY_NAME,
    AppState,
    BudgetCategory,
    BudgetError,
    CategoryType,
    Direction,
    IncomeType,
    NumberLike,
    Transaction,
    coerce_number,
    is_balanced_allocation,
    seed_state,
    total_percentage,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[AppState], None]

MISSING_LABEL = "—"


def format_currency(value: Decimal) -> str:
    """Format an amount the way Vietnamese đồng is displayed (``6.750.000 ₫``)."""
    rounded = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    grouped = f"{abs(rounded):,}".replace(",", ".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}{grouped} ₫"


def format_percentage(value: Decimal) -> str:
    return f"{value.normalize():f}%"


class BudgetViewModel:
    """Owns the current ``AppState`` and applies commands to it.

    Listeners run after every successful transition with the new state;
    a refused command leaves the state and listeners untouched.
    """

    def __init__(
        self,
        state: Optional[AppState] = None,
        *,
        advisor: Optional[FinancialAdvisor] = None,
    ) -> None:
        self.state: AppState = state if state is not None else seed_state()
        self.advisor = advisor
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------ #
    # Listener registration
    # ------------------------------------------------------------------ #
    def add_listener(self, callback: ChangeListener) -> None:
        self._listeners.append(callback)

    def _commit(self, new_state: AppState) -> None:
        if new_state is self.state:
            return
        self.state = new_state
        for listener in self._listeners:
            listener(new_state)

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #
    def set_income(self, value: NumberLike) -> None:
        self._commit(self.state.with_income(value))
        logger.debug("Income set to %s.", self.state.income)

    def add_transaction(
        self,
        *,
        amount: NumberLike,
        description: str,
        direction: Direction | str,
        account_id: str,
        category_id: Optional[str] = None,
        income_type: IncomeType | str | None = None,
        occurred_at: Optional[datetime] = None,
    ) -> Transaction:
        new_state, transaction = self.state.add_transaction(
            amount=amount,
            description=description,
            direction=direction,
            account_id=account_id,
            category_id=category_id,
            income_type=income_type,
            occurred_at=occurred_at,
        )
        self._commit(new_state)
        logger.debug("Posted transaction %s.", transaction.transaction_id)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        self._commit(self.state.delete_transaction(transaction_id))

    def replace_categories(self, categories: Iterable[BudgetCategory]) -> None:
        self._commit(self.state.replace_categories(categories))
        logger.debug("Replaced categories (%d entries).", len(self.state.categories))

    def edit_categories(self) -> "CategoryDraft":
        """Start an editing session on a copy of the current categories."""
        return CategoryDraft(self)

    # ------------------------------------------------------------------ #
    # Advice
    # ------------------------------------------------------------------ #
    def fetch_advice(self, *, logger_callback: Optional[Callable[[str], None]] = None) -> str:
        advisor = self.advisor or FinancialAdvisor()
        return advisor.get_advice(self.state, logger_callback=logger_callback)

    # ------------------------------------------------------------------ #
    # Table helpers
    # ------------------------------------------------------------------ #
    def summary_for_table(self) -> Iterable[dict[str, str]]:
        """Return per-category allocation data shaped for display tables."""
        for item in self.state.budget_summary():
            progress = item.progress_percent
            yield {
                "category_id": item.category.category_id,
                "name": item.category.name,
                "percentage": format_percentage(item.category.percentage),
                "allocated": format_currency(item.allocated),
                "spent": format_currency(item.spent),
                "remaining": format_currency(item.remaining),
                "progress": "-" if progress is None else f"{progress:.0f}%",
                "status": "OVER" if item.is_overspent else "OK",
                "color": item.category.color,
            }

    def accounts_for_table(self) -> Iterable[dict[str, str]]:
        for account in self.state.accounts:
            yield {
                "account_id": account.account_id,
                "name": account.name,
                "kind": account.kind.value,
                "balance": format_currency(account.balance),
            }

    def transactions_for_table(self) -> Iterable[dict[str, str]]:
        """Return transaction data shaped for display tables, newest first."""
        for txn in self.state.transactions:
            account = self.state.find_account(txn.account_id)
            if txn.is_income:
                label = INCOME_TYPE_LABELS.get(txn.income_type, "") if txn.income_type else ""
                sign = "+"
            else:
                category = self.state.find_category(txn.category_id)
                label = category.name if category else MISSING_LABEL
                sign = "-"
            yield {
                "transaction_id": txn.transaction_id,
                "date": txn.occurred_at.strftime("%d/%m/%Y"),
                "description": txn.description,
                "classification": label,
                "account": account.name if account else MISSING_LABEL,
                "amount": f"{sign}{format_currency(txn.amount)}",
            }


class CategoryDraft:
    """Local copy of the category list edited on the budget settings screen.

    Nothing reaches the owning view model until ``commit`` succeeds.
    """

    def __init__(self, viewmodel: BudgetViewModel) -> None:
        self._viewmodel = viewmodel
        self.categories: List[BudgetCategory] = list(viewmodel.state.categories)

    @property
    def total_percentage(self) -> Decimal:
        return total_percentage(self.categories)

    @property
    def is_balanced(self) -> bool:
        return is_balanced_allocation(self.categories)

    def _index_of(self, category_id: str) -> int:
        for index, category in enumerate(self.categories):
            if category.category_id == category_id:
                return index
        raise KeyError(f"Unknown category id '{category_id}'")

    def add_category(
        self, name: str = NEW_CATEGORY_NAME, percentage: NumberLike = 0
    ) -> BudgetCategory:
        category = BudgetCategory(
            name=name,
            percentage=coerce_number(percentage),
            kind=CategoryType.CUSTOM,
            color=NEW_CATEGORY_COLOR,
        )
        self.categories.append(category)
        return category

    def remove_category(self, category_id: str) -> None:
        index = self._index_of(category_id)
        if not self.categories[index].is_custom:
            raise BudgetError(
                f"Category '{self.categories[index].name}' is a default category and cannot be removed"
            )
        del self.categories[index]

    def rename(self, category_id: str, name: str) -> None:
        index = self._index_of(category_id)
        if not name or not name.strip():
            raise BudgetError("Category name cannot be empty")
        self.categories[index] = replace(self.categories[index], name=name.strip())

    def set_percentage(self, category_id: str, value: NumberLike) -> None:
        index = self._index_of(category_id)
        self.categories[index] = replace(
            self.categories[index], percentage=coerce_number(value)
        )

    def commit(self) -> None:
        """Apply the draft; raises ``AllocationError`` if it does not total 100%."""
        self._viewmodel.replace_categories(self.categories)
