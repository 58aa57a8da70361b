"""Tests for the SQLite repository and the budget objective store."""

from __future__ import annotations

from datetime import date

import pytest

from budget_dash.database import BUDGET_OBJECTIVES_KEY, BudgetObjectiveStore
from budget_dash.models import BudgetObjective, FxRate, InvalidBudgetObjective, TransactionKind


def test_store_returns_defaults_when_nothing_saved(repository):
    assert BudgetObjectiveStore(repository).load() == BudgetObjective()


def test_store_round_trip(repository):
    store = BudgetObjectiveStore(repository)

    store.save({"regular": 60, "unusual": 20, "savings": 20})

    assert store.load() == BudgetObjective(regular=60, unusual=20, savings=20)


def test_invalid_save_keeps_previous_value(repository):
    store = BudgetObjectiveStore(repository)
    store.save(BudgetObjective(regular=70, unusual=10, savings=20))

    with pytest.raises(InvalidBudgetObjective):
        store.save({"regular": 60, "unusual": 30, "savings": 5})

    assert store.load() == BudgetObjective(regular=70, unusual=10, savings=20)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"regular": 60, "unusual": 30, "savings": 5}',
        '{"regular": 50}',
    ],
)
def test_corrupt_stored_value_falls_back_to_defaults(repository, raw):
    repository.set_setting(BUDGET_OBJECTIVES_KEY, raw)

    assert BudgetObjectiveStore(repository).load() == BudgetObjective()


def test_card_payment_fx_is_keyed_by_month(repository):
    repository.set_card_payment_fx(2025, 3, 1150.0)
    repository.set_card_payment_fx(2025, 3, 1175.5)

    assert repository.get_card_payment_fx(2025, 3) == 1175.5
    assert repository.get_card_payment_fx(2025, 4) is None


def test_latest_fx_rate(repository):
    repository.upsert_fx_rates(
        [
            FxRate("usd", "ars", date(2025, 3, 1), 1200.0, "bluelytics"),
            FxRate("USD", "ARS", date(2025, 3, 5), 1230.0, "bluelytics"),
            FxRate("BTC", "USD", date(2025, 3, 5), 90000.0, "coingecko"),
        ]
    )

    latest = repository.get_latest_fx_rate("USD", "ARS")

    assert latest.rate == 1230.0
    assert latest.valuation_date == date(2025, 3, 5)
    assert repository.get_latest_fx_rate("EUR", "ARS") is None


def test_settings_default(repository):
    assert repository.get_setting("missing", "fallback") == "fallback"
    repository.set_setting("theme", "dark")
    assert repository.get_setting("theme") == "dark"


def test_imported_transactions_by_kind_and_month(repository, make_transaction):
    stored = repository.upsert_transactions(
        [
            make_transaction(100, "Casa", date="2025-03-31", kind=TransactionKind.EXPENSE),
            make_transaction(50, "Sueldo", date="2025-03-01", kind=TransactionKind.INCOME),
            make_transaction(70, "Casa", date="2025-04-01", kind=TransactionKind.EXPENSE),
        ]
    )

    march = repository.list_transactions(TransactionKind.EXPENSE, 2025, 3)

    assert stored == 3
    assert [(tx.amount, tx.kind) for tx in march] == [(100, TransactionKind.EXPENSE)]
    assert repository.list_transactions(TransactionKind.SAVING, 2025, 3) == []
