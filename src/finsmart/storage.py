"""Persistence helpers for the budgeting dashboard."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict

from .models import (
    Account,
    AppState,
    BudgetCategory,
    BudgetError,
    Transaction,
    coerce_number,
    seed_state,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "finsmart_state"
DEFAULT_DATA_FILE = Path(f"{STORAGE_KEY}.json")
SCHEMA_VERSION = 2

Payload = Dict[str, Any]


class StorageError(BudgetError):
    """Raised when the state slot cannot be read or written."""


# ---------------------------------------------------------------------- #
# Serialisation
# ---------------------------------------------------------------------- #
def _category_to_dict(category: BudgetCategory) -> Payload:
    return {
        "id": category.category_id,
        "name": category.name,
        "percentage": str(category.percentage),
        "kind": category.kind.value,
        "color": category.color,
    }


def _account_to_dict(account: Account) -> Payload:
    return {
        "id": account.account_id,
        "name": account.name,
        "balance": str(account.balance),
        "kind": account.kind.value,
    }


def _transaction_to_dict(transaction: Transaction) -> Payload:
    return {
        "id": transaction.transaction_id,
        "amount": str(transaction.amount),
        "description": transaction.description,
        "date": transaction.occurred_at.isoformat(),
        "direction": transaction.direction.value,
        "category_id": transaction.category_id,
        "account_id": transaction.account_id,
        "income_type": transaction.income_type.value if transaction.income_type else None,
    }


def state_to_dict(state: AppState) -> Payload:
    """Serialise the state as a versioned document."""
    return {
        "version": SCHEMA_VERSION,
        "state": {
            "income": str(state.income),
            "categories": [_category_to_dict(c) for c in state.categories],
            "accounts": [_account_to_dict(a) for a in state.accounts],
            "transactions": [_transaction_to_dict(t) for t in state.transactions],
        },
    }


def _parse_datetime(value: str | None) -> datetime:
    if not value:
        return datetime.now()
    # Browser ISO strings end with "Z", which fromisoformat rejects before 3.11.
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def state_from_dict(document: Payload) -> AppState:
    """Rehydrate the state from a document of any supported version."""
    data = migrate_payload(document)["state"]
    return AppState(
        income=coerce_number(data.get("income")),
        categories=[
            BudgetCategory(
                name=item["name"],
                percentage=coerce_number(item.get("percentage")),
                kind=item.get("kind", "CUSTOM"),
                color=item.get("color", "#94a3b8"),
                category_id=str(item["id"]),
            )
            for item in data.get("categories", [])
        ],
        accounts=[
            Account(
                name=item["name"],
                balance=coerce_number(item.get("balance")),
                kind=item.get("kind", "CASH"),
                account_id=str(item["id"]),
            )
            for item in data.get("accounts", [])
        ],
        transactions=[
            Transaction(
                amount=coerce_number(item.get("amount")),
                description=item.get("description", ""),
                direction=item["direction"],
                account_id=str(item.get("account_id") or ""),
                category_id=str(item.get("category_id") or ""),
                income_type=item.get("income_type") or None,
                occurred_at=_parse_datetime(item.get("date")),
                transaction_id=str(item["id"]),
            )
            for item in data.get("transactions", [])
        ],
    )


# ---------------------------------------------------------------------- #
# Migrations
# ---------------------------------------------------------------------- #
def _migrate_v1(document: Payload) -> Payload:
    """Upgrade the unversioned browser layout (camelCase, ``type`` fields)."""
    categories = [
        {
            "id": item["id"],
            "name": item["name"],
            "percentage": str(item.get("percentage", 0)),
            "kind": item.get("type", "CUSTOM"),
            "color": item.get("color", "#94a3b8"),
        }
        for item in document.get("categories", [])
    ]
    accounts = [
        {
            "id": item["id"],
            "name": item["name"],
            "balance": str(item.get("balance", 0)),
            "kind": item.get("type", "CASH"),
        }
        for item in document.get("accounts", [])
    ]
    transactions = [
        {
            "id": item["id"],
            "amount": str(item.get("amount", 0)),
            "description": item.get("description", ""),
            "date": item.get("date"),
            "direction": item.get("type", "EXPENSE"),
            "category_id": item.get("categoryId", ""),
            "account_id": item.get("accountId", ""),
            "income_type": item.get("incomeType"),
        }
        for item in document.get("transactions", [])
    ]
    return {
        "version": 2,
        "state": {
            "income": str(document.get("income", 0)),
            "categories": categories,
            "accounts": accounts,
            "transactions": transactions,
        },
    }


MIGRATIONS: Dict[int, Callable[[Payload], Payload]] = {
    1: _migrate_v1,
}


def migrate_payload(document: Payload) -> Payload:
    """Upgrade a stored document step by step to ``SCHEMA_VERSION``."""
    version = document.get("version", 1)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise StorageError(f"Unsupported state schema version: {version!r}")
    while version < SCHEMA_VERSION:
        logger.info("Migrating stored state from schema version %s.", version)
        document = MIGRATIONS[version](document)
        version = document["version"]
    return document


# ---------------------------------------------------------------------- #
# File slot
# ---------------------------------------------------------------------- #
def load_state(data_path: str | Path | None = None) -> AppState:
    """Load state from disk; return the seed state when the file is missing."""
    path = Path(data_path) if data_path else DEFAULT_DATA_FILE
    if not path.exists():
        logger.info("No stored state at %s; starting from seed state.", path)
        return seed_state()
    try:
        with path.open("r", encoding="utf-8") as handle:
            document: Payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise StorageError(f"Unable to read state from {path}: {exc}") from exc
    try:
        return state_from_dict(document)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise StorageError(f"Stored state in {path} is malformed: {exc}") from exc


def save_state(state: AppState, data_path: str | Path | None = None) -> None:
    """Persist the whole state, overwriting the slot."""
    path = Path(data_path) if data_path else DEFAULT_DATA_FILE
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(state_to_dict(state), handle, indent=2, ensure_ascii=False)
        os.replace(temp_path, path)
    except OSError as exc:
        raise StorageError(f"Unable to write state to {path}: {exc}") from exc
