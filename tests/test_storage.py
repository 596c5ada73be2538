import json
from decimal import Decimal

import pytest

from finsmart.models import Direction, IncomeType, seed_state
from finsmart.storage import (
    SCHEMA_VERSION,
    StorageError,
    load_state,
    migrate_payload,
    save_state,
    state_to_dict,
)


def _browser_payload():
    """State as the original browser build stored it (schema version 1)."""
    return {
        "income": 15000000,
        "categories": [
            {"id": "1", "name": "Tiết kiệm", "percentage": 30, "type": "SAVINGS", "color": "#3b82f6"},
            {"id": "17000", "name": "Du lịch", "percentage": 70, "type": "CUSTOM", "color": "#94a3b8"},
        ],
        "accounts": [
            {"id": "acc1", "name": "Tiền mặt", "balance": 1200000.5, "type": "CASH"},
            {"id": "acc3", "name": "Momo", "balance": 0, "type": "E-WALLET"},
        ],
        "transactions": [
            {
                "id": "1718000000001",
                "amount": 300000,
                "description": "Ăn uống",
                "date": "2024-06-10T08:30:00.000Z",
                "categoryId": "17000",
                "accountId": "acc1",
                "type": "EXPENSE",
            },
            {
                "id": "1718000000000",
                "amount": 1500000.5,
                "description": "Lương",
                "date": "2024-06-10T08:00:00.000Z",
                "categoryId": "",
                "accountId": "acc1",
                "type": "INCOME",
                "incomeType": "E",
            },
        ],
    }


def test_missing_file_loads_seed_state(tmp_path):
    assert load_state(tmp_path / "missing.json") == seed_state()


def test_save_then_load_preserves_state(tmp_path):
    path = tmp_path / "state.json"
    state, _ = seed_state().add_transaction(
        amount="2000000",
        description="Lương",
        direction=Direction.INCOME,
        account_id="acc2",
        income_type=IncomeType.PASSIVE,
    )
    state = state.with_income("12000000.5")

    save_state(state, path)

    assert load_state(path) == state
    assert not (tmp_path / "state.json.tmp").exists()


def test_saved_document_is_versioned(tmp_path):
    path = tmp_path / "state.json"
    save_state(seed_state(), path)

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == SCHEMA_VERSION
    assert document["state"]["income"] == "10000000"
    assert document["state"]["categories"][1]["percentage"] == "2.5"
    assert document["state"]["categories"][0]["name"] == "Tiết kiệm"


def test_browser_payload_is_migrated(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps(_browser_payload()), encoding="utf-8")

    state = load_state(path)

    assert state.income == Decimal("15000000")
    assert [c.name for c in state.categories] == ["Tiết kiệm", "Du lịch"]
    assert state.categories[1].is_custom
    assert state.accounts[0].balance == Decimal("1200000.5")
    assert state.accounts[1].kind.value == "E-WALLET"
    expense, income = state.transactions
    assert expense.category_id == "17000"
    assert expense.direction is Direction.EXPENSE
    assert income.income_type is IncomeType.EMPLOYEE
    assert income.amount == Decimal("1500000.5")
    assert state.budget_summary()[1].spent == Decimal("300000")


def test_migrate_payload_keeps_current_documents():
    document = state_to_dict(seed_state())

    assert migrate_payload(document) is document


def test_newer_schema_is_rejected(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"version": SCHEMA_VERSION + 1, "state": {}}), encoding="utf-8")

    with pytest.raises(StorageError):
        load_state(path)


def test_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        load_state(path)


def test_unwritable_location_raises_storage_error(tmp_path):
    with pytest.raises(StorageError):
        save_state(seed_state(), tmp_path / "no-such-dir" / "state.json")


def test_migrated_duplicate_ids_delete_one_at_a_time(tmp_path):
    payload = _browser_payload()
    payload["accounts"][0]["balance"] = -100
    duplicate = {
        "id": "1718000000002",
        "amount": 50,
        "description": "Ăn uống",
        "date": "2024-06-11T08:00:00.000Z",
        "categoryId": "17000",
        "accountId": "acc1",
        "type": "EXPENSE",
    }
    payload["transactions"] = [dict(duplicate), dict(duplicate)]
    path = tmp_path / "state.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    state = load_state(path).delete_transaction("1718000000002")

    assert len(state.transactions) == 1
    assert state.find_account("acc1").balance == Decimal("-50")
    state = state.delete_transaction("1718000000002")
    assert state.find_account("acc1").balance == Decimal("0")
