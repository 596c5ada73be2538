"""Domain models and state transitions for the budgeting dashboard."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Iterable, Optional, Tuple
from uuid import uuid4

getcontext().prec = 28  # Higher precision for money calculations.

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENTAGE_TOLERANCE = Decimal("0.01")

NumberLike = Decimal | int | float | str | None


class BudgetError(Exception):
    """Base class for refused budget commands."""


class InvalidTransactionError(BudgetError, ValueError):
    """Raised when a transaction draft is missing a required field."""


class AllocationError(BudgetError, ValueError):
    """Raised when category percentages do not add up to 100."""

    def __init__(self, total: Decimal) -> None:
        super().__init__(f"Category percentages must total exactly 100% (got {total}%)")
        self.total = total


class CategoryType(str, Enum):
    SAVINGS = "SAVINGS"
    CHARITY = "CHARITY"
    INVESTMENT = "INVESTMENT"
    SPENDING = "SPENDING"
    CUSTOM = "CUSTOM"


class AccountType(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"
    E_WALLET = "E-WALLET"


class Direction(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class IncomeType(str, Enum):
    """Cashflow-quadrant classification of an income transaction."""

    EMPLOYEE = "E"
    SELF_EMPLOYED = "S"
    BUSINESS_OWNER = "B"
    INVESTOR = "I"
    PASSIVE = "P"


INCOME_TYPE_LABELS = {
    IncomeType.EMPLOYEE: "Làm thuê (E)",
    IncomeType.SELF_EMPLOYED: "Tự doanh (S)",
    IncomeType.BUSINESS_OWNER: "Làm chủ (B)",
    IncomeType.INVESTOR: "Đầu tư (I)",
    IncomeType.PASSIVE: "Thụ động (P)",
}

COMMON_EXPENSES = (
    "Ăn uống",
    "Tiền điện-nước",
    "Wifi",
    "Xăng xe",
    "Học tập",
    "Mua sắm",
    "Giải trí",
    "Sức khỏe",
)

NEW_CATEGORY_NAME = "Hạng mục mới"
NEW_CATEGORY_COLOR = "#94a3b8"


def coerce_number(value: NumberLike) -> Decimal:
    """Convert user input into a Decimal; unparsable or non-finite input becomes 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return ZERO
        try:
            number = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not number.is_finite():
        return ZERO
    return number


def parse_income_type(value: IncomeType | str) -> IncomeType:
    """Accept either the single-letter code (``"E"``) or the name (``"EMPLOYEE"``)."""
    if isinstance(value, IncomeType):
        return value
    text = str(value).strip()
    try:
        return IncomeType(text.upper())
    except ValueError:
        pass
    try:
        return IncomeType[text.upper()]
    except KeyError:
        raise ValueError(f"Unknown income type '{value}'") from None


def _new_id() -> str:
    return uuid4().hex


@dataclass(slots=True, frozen=True)
class BudgetCategory:
    """A percentage-of-income allocation envelope."""

    name: str
    percentage: Decimal = ZERO
    kind: CategoryType = CategoryType.CUSTOM
    color: str = NEW_CATEGORY_COLOR
    category_id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "percentage", coerce_number(self.percentage))
        object.__setattr__(self, "kind", CategoryType(self.kind))

    @property
    def is_custom(self) -> bool:
        return self.kind is CategoryType.CUSTOM


@dataclass(slots=True, frozen=True)
class Account:
    """A money-holding bucket whose balance follows posted transactions."""

    name: str
    balance: Decimal = ZERO
    kind: AccountType = AccountType.CASH
    account_id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "balance", coerce_number(self.balance))
        object.__setattr__(self, "kind", AccountType(self.kind))

    def adjusted(self, delta: Decimal) -> "Account":
        return replace(self, balance=self.balance + delta)


@dataclass(slots=True, frozen=True)
class Transaction:
    """A posted income or expense event.

    ``amount`` is a magnitude; the sign comes from ``direction``.
    """

    amount: Decimal
    description: str
    direction: Direction
    account_id: str
    category_id: str = ""
    income_type: Optional[IncomeType] = None
    occurred_at: datetime = field(default_factory=datetime.now)
    transaction_id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", coerce_number(self.amount))
        object.__setattr__(self, "direction", Direction(self.direction))
        if self.income_type is not None:
            object.__setattr__(self, "income_type", parse_income_type(self.income_type))

    @property
    def is_income(self) -> bool:
        return self.direction is Direction.INCOME

    @property
    def balance_effect(self) -> Decimal:
        """Signed change this transaction applies to its account."""
        return self.amount if self.is_income else -self.amount


@dataclass(slots=True, frozen=True)
class CategorySummary:
    """Allocation versus actual spend for a single category."""

    category: BudgetCategory
    allocated: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        # Negative means the envelope is overspent.
        return self.allocated - self.spent

    @property
    def is_overspent(self) -> bool:
        return self.spent > self.allocated

    @property
    def progress_percent(self) -> Optional[Decimal]:
        if not self.allocated:
            return None
        return self.spent / self.allocated * HUNDRED


@dataclass(slots=True, frozen=True)
class Totals:
    total_income: Decimal
    total_expense: Decimal
    total_balance: Decimal
    total_allocation_percentage: Decimal


def total_percentage(categories: Iterable[BudgetCategory]) -> Decimal:
    return sum((category.percentage for category in categories), ZERO)


def is_balanced_allocation(categories: Iterable[BudgetCategory]) -> bool:
    """Return True when the percentages sum to 100 within the save tolerance."""
    return abs(total_percentage(categories) - HUNDRED) <= PERCENTAGE_TOLERANCE


@dataclass(slots=True, frozen=True)
class AppState:
    """Root aggregate of the dashboard.

    Every command returns a new ``AppState``; instances are never mutated in
    place, so a listener holding an old state keeps a consistent snapshot.
    Aggregation ignores dangling references: a transaction whose category or
    account no longer exists contributes to no category and no balance.
    """

    income: Decimal = ZERO
    categories: Tuple[BudgetCategory, ...] = ()
    accounts: Tuple[Account, ...] = ()
    transactions: Tuple[Transaction, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "income", coerce_number(self.income))
        object.__setattr__(self, "categories", tuple(self.categories))
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "transactions", tuple(self.transactions))

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #
    def find_category(self, category_id: str) -> Optional[BudgetCategory]:
        return next((c for c in self.categories if c.category_id == category_id), None)

    def find_account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.account_id == account_id), None)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next(
            (t for t in self.transactions if t.transaction_id == transaction_id), None
        )

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #
    def with_income(self, value: NumberLike) -> "AppState":
        """Replace the declared monthly income."""
        return replace(self, income=coerce_number(value))

    def add_transaction(
        self,
        *,
        amount: NumberLike,
        description: str,
        direction: Direction | str,
        account_id: str,
        category_id: str | None = None,
        income_type: IncomeType | str | None = None,
        occurred_at: datetime | None = None,
        transaction_id: str | None = None,
    ) -> Tuple["AppState", Transaction]:
        """Post a transaction and adjust its account balance in one step.

        Zero and negative amounts are accepted so refunds can be recorded as
        negative expenses.
        """
        try:
            if not isinstance(direction, Direction):
                direction = Direction(str(direction).strip().upper())
        except ValueError:
            raise InvalidTransactionError(f"Unknown transaction direction '{direction}'") from None
        if direction is Direction.INCOME and income_type:
            try:
                income_type = parse_income_type(income_type)
            except ValueError as exc:
                raise InvalidTransactionError(str(exc)) from None
        if amount is None or (isinstance(amount, str) and not amount.strip()):
            raise InvalidTransactionError("Transaction amount is required")
        if not description or not description.strip():
            raise InvalidTransactionError("Transaction description is required")
        if not account_id:
            raise InvalidTransactionError("Transaction account is required")
        if direction is Direction.EXPENSE and not category_id:
            raise InvalidTransactionError("Expense transactions require a category")

        is_income = direction is Direction.INCOME
        transaction = Transaction(
            amount=coerce_number(amount),
            description=description.strip(),
            direction=direction,
            account_id=account_id,
            category_id="" if is_income else category_id or "",
            income_type=income_type if is_income and income_type else None,
            occurred_at=occurred_at or datetime.now(),
            transaction_id=transaction_id or _new_id(),
        )
        if self.find_account(account_id) is None:
            logger.warning(
                "Transaction %s references unknown account '%s'; balances unchanged.",
                transaction.transaction_id,
                account_id,
            )
        new_state = replace(
            self,
            transactions=(transaction,) + self.transactions,
            accounts=self._adjust_balance(account_id, transaction.balance_effect),
        )
        return new_state, transaction

    def delete_transaction(self, transaction_id: str) -> "AppState":
        """Remove a transaction and reverse its balance effect.

        Returns ``self`` unchanged when the id is unknown.
        """
        index = next(
            (i for i, t in enumerate(self.transactions) if t.transaction_id == transaction_id),
            None,
        )
        if index is None:
            logger.info("Ignoring delete of unknown transaction '%s'.", transaction_id)
            return self
        # Ids from older stored data may collide; only the matched entry goes.
        transaction = self.transactions[index]
        return replace(
            self,
            transactions=self.transactions[:index] + self.transactions[index + 1 :],
            accounts=self._adjust_balance(
                transaction.account_id, -transaction.balance_effect
            ),
        )

    def replace_categories(self, categories: Iterable[BudgetCategory]) -> "AppState":
        """Swap in a new category list; the percentages must total 100."""
        proposed = tuple(categories)
        if not is_balanced_allocation(proposed):
            raise AllocationError(total_percentage(proposed))
        return replace(self, categories=proposed)

    def _adjust_balance(self, account_id: str, delta: Decimal) -> Tuple[Account, ...]:
        return tuple(
            account.adjusted(delta) if account.account_id == account_id else account
            for account in self.accounts
        )

    # ------------------------------------------------------------------ #
    # Derived aggregates
    # ------------------------------------------------------------------ #
    def spent_in(self, category_id: str) -> Decimal:
        return sum(
            (
                t.amount
                for t in self.transactions
                if t.direction is Direction.EXPENSE and t.category_id == category_id
            ),
            ZERO,
        )

    def budget_summary(self) -> list[CategorySummary]:
        return [
            CategorySummary(
                category=category,
                allocated=self.income * category.percentage / HUNDRED,
                spent=self.spent_in(category.category_id),
            )
            for category in self.categories
        ]

    def totals(self) -> Totals:
        return Totals(
            total_income=sum(
                (t.amount for t in self.transactions if t.is_income), ZERO
            ),
            total_expense=sum(
                (t.amount for t in self.transactions if not t.is_income), ZERO
            ),
            total_balance=sum((a.balance for a in self.accounts), ZERO),
            total_allocation_percentage=total_percentage(self.categories),
        )


def seed_categories() -> Tuple[BudgetCategory, ...]:
    return (
        BudgetCategory("Tiết kiệm", Decimal("20"), CategoryType.SAVINGS, "#3b82f6", "1"),
        BudgetCategory("Từ thiện", Decimal("2.5"), CategoryType.CHARITY, "#ec4899", "2"),
        BudgetCategory("Đầu tư", Decimal("10"), CategoryType.INVESTMENT, "#10b981", "3"),
        BudgetCategory("Chi tiêu", Decimal("67.5"), CategoryType.SPENDING, "#f59e0b", "4"),
    )


def seed_accounts() -> Tuple[Account, ...]:
    return (
        Account("Tiền mặt", ZERO, AccountType.CASH, "acc1"),
        Account("Ngân hàng VCB", ZERO, AccountType.BANK, "acc2"),
    )


def seed_state() -> AppState:
    """State used the first time no persisted state exists."""
    return AppState(
        income=Decimal("10000000"),
        categories=seed_categories(),
        accounts=seed_accounts(),
    )
