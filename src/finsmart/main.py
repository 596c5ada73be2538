"""Entry point for running the budgeting dashboard."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .app import build_viewmodel, render_dashboard, render_history
from .config import load_settings
from .models import COMMON_EXPENSES, AllocationError, BudgetError, Direction, IncomeType
from .viewmodels import BudgetViewModel, format_currency


def _key_value(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected ID=PERCENT, got '{text}'")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Personal budgeting dashboard")
    parser.add_argument(
        "--data-file",
        dest="data_file",
        help="Path to the JSON file used to persist budget data (defaults to finsmart_state.json).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("show", help="Show income, totals, budget summary and accounts.")
    commands.add_parser("history", help="List transactions, newest first.")

    income = commands.add_parser("set-income", help="Set the monthly income.")
    income.add_argument("value")

    add = commands.add_parser(
        "add",
        help="Post an income or expense transaction.",
        epilog="Common expenses: " + ", ".join(COMMON_EXPENSES),
    )
    add.add_argument("direction", choices=[d.value.lower() for d in Direction])
    add.add_argument("amount")
    add.add_argument("description")
    add.add_argument("--account", required=True, dest="account_id")
    add.add_argument("--category", dest="category_id")
    add.add_argument(
        "--income-type",
        dest="income_type",
        choices=[t.value for t in IncomeType],
        default=IncomeType.EMPLOYEE.value,
    )

    delete = commands.add_parser("delete", help="Delete a transaction and reverse its balance effect.")
    delete.add_argument("transaction_id")

    percentages = commands.add_parser(
        "set-percentages", help="Set category percentages (must total 100%%)."
    )
    percentages.add_argument("assignments", nargs="+", type=_key_value, metavar="ID=PERCENT")

    add_category = commands.add_parser("add-category", help="Add a custom category.")
    add_category.add_argument("name")
    add_category.add_argument("percentage")

    remove_category = commands.add_parser("remove-category", help="Remove a custom category.")
    remove_category.add_argument("category_id")

    rename_category = commands.add_parser("rename-category", help="Rename a category.")
    rename_category.add_argument("category_id")
    rename_category.add_argument("name")

    commands.add_parser("advice", help="Ask the AI advisor for budgeting tips.")
    return parser


def run_command(viewmodel: BudgetViewModel, args: argparse.Namespace) -> str:
    """Apply the parsed command and return the text to display."""
    command = args.command
    if command == "show":
        return render_dashboard(viewmodel)
    if command == "history":
        return render_history(viewmodel)
    if command == "set-income":
        viewmodel.set_income(args.value)
        return f"Thu nhập tháng: {format_currency(viewmodel.state.income)}"
    if command == "add":
        direction = Direction(args.direction.upper())
        transaction = viewmodel.add_transaction(
            amount=args.amount,
            description=args.description,
            direction=direction,
            account_id=args.account_id,
            category_id=args.category_id,
            income_type=args.income_type if direction is Direction.INCOME else None,
        )
        return f"Đã thêm giao dịch {transaction.transaction_id}."
    if command == "delete":
        if viewmodel.state.find_transaction(args.transaction_id) is None:
            return f"Không tìm thấy giao dịch {args.transaction_id}."
        viewmodel.delete_transaction(args.transaction_id)
        return f"Đã xoá giao dịch {args.transaction_id}."
    if command in (
        "set-percentages",
        "add-category",
        "remove-category",
        "rename-category",
    ):
        draft = viewmodel.edit_categories()
        if command == "set-percentages":
            for category_id, value in args.assignments:
                draft.set_percentage(category_id, value)
        elif command == "add-category":
            draft.add_category(args.name, args.percentage)
        elif command == "rename-category":
            draft.rename(args.category_id, args.name)
        else:
            draft.remove_category(args.category_id)
        draft.commit()
        return render_dashboard(viewmodel)
    if command == "advice":
        return viewmodel.fetch_advice()
    raise ValueError(f"Unknown command '{command}'")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.data_file)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level_number,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        viewmodel = build_viewmodel(settings)
        print(run_command(viewmodel, args))
    except AllocationError as exc:
        print(f"Tổng tỷ lệ phải bằng chính xác 100%! ({exc.total}%)", file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 1
    except BudgetError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
