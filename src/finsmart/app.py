"""Composition root and text rendering for the budgeting dashboard."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from .ai import FinancialAdvisor
from .config import Settings
from .models import AppState
from .storage import load_state, save_state
from .viewmodels import BudgetViewModel, format_currency, format_percentage

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = (
    ("name", "Hạng mục"),
    ("percentage", "Tỷ lệ"),
    ("allocated", "Ngân sách"),
    ("spent", "Đã chi"),
    ("remaining", "Còn lại"),
    ("progress", "Tiến độ"),
    ("status", ""),
)
ACCOUNT_COLUMNS = (
    ("account_id", "ID"),
    ("name", "Tài khoản"),
    ("kind", "Loại"),
    ("balance", "Số dư"),
)
TRANSACTION_COLUMNS = (
    ("transaction_id", "ID"),
    ("date", "Ngày"),
    ("description", "Mô tả"),
    ("classification", "Phân loại"),
    ("account", "Tài khoản"),
    ("amount", "Số tiền"),
)


def build_viewmodel(settings: Settings) -> BudgetViewModel:
    """Load the stored state and subscribe the storage writer to every change."""
    viewmodel = BudgetViewModel(
        load_state(settings.data_file),
        advisor=FinancialAdvisor(
            api_key=settings.api_key,
            model=settings.advice_model,
            temperature=settings.advice_temperature,
        ),
    )

    def persist(state: AppState) -> None:
        save_state(state, settings.data_file)
        logger.debug("Saved state to %s.", settings.data_file)

    viewmodel.add_listener(persist)
    return viewmodel


def render_table(
    rows: Iterable[Mapping[str, str]], columns: Sequence[tuple[str, str]]
) -> str:
    """Render rows as a plain-text table with left-aligned columns."""
    rows = list(rows)
    headers = [title for _, title in columns]
    widths = [len(title) for title in headers]
    for row in rows:
        for idx, (key, _) in enumerate(columns):
            widths[idx] = max(widths[idx], len(row.get(key, "")))

    def line(values: Sequence[str]) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths)).rstrip()

    output = [line(headers), line(["-" * width for width in widths])]
    for row in rows:
        output.append(line([row.get(key, "") for key, _ in columns]))
    return "\n".join(output)


def render_dashboard(viewmodel: BudgetViewModel) -> str:
    state = viewmodel.state
    totals = state.totals()
    lines = [
        f"Thu nhập tháng: {format_currency(state.income)}",
        f"Tổng thu: {format_currency(totals.total_income)}"
        f"   Tổng chi: {format_currency(totals.total_expense)}"
        f"   Tổng số dư: {format_currency(totals.total_balance)}",
        f"Tổng tỷ lệ phân bổ: {format_percentage(totals.total_allocation_percentage)}",
        "",
        render_table(viewmodel.summary_for_table(), SUMMARY_COLUMNS),
        "",
        render_table(viewmodel.accounts_for_table(), ACCOUNT_COLUMNS),
    ]
    return "\n".join(lines)


def render_history(viewmodel: BudgetViewModel) -> str:
    if not viewmodel.state.transactions:
        return "Chưa có giao dịch nào."
    return render_table(viewmodel.transactions_for_table(), TRANSACTION_COLUMNS)
