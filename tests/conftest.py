"""Shared fixtures for the budget_dash test-suite.

The application reads ``BUDGET_DASH_DB_FILE`` to locate its SQLite database.
An autouse fixture points it at the test's own temporary directory so tests
never share on-disk state, and forces demo mode so nothing reaches the
upstream API.  The import file path also lives in that directory; tests that
exercise the import route write it themselves.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from budget_dash.database import SQLiteRepository
from budget_dash.models import CardConsumption, CardNetwork, Transaction, TransactionKind


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUDGET_DASH_DB_FILE", os.fspath(tmp_path / "budget_dash.db"))
    monkeypatch.setenv("BUDGET_DASH_USE_DEMO_DATA", "true")
    monkeypatch.setenv("BUDGET_DASH_IMPORT_FILE", os.fspath(tmp_path / "import.csv"))


@pytest.fixture
def repository(tmp_path: Path):
    repo = SQLiteRepository(tmp_path / "repo.db")
    repo.initialise_schema()
    yield repo
    repo.close()


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    counter = iter(range(1, 10_000))

    def _make(
        amount: float,
        category: str = "Comida",
        description: str = "Supermercado",
        date: str = "2025-03-10",
        currency: str = "ARS",
        kind: TransactionKind = TransactionKind.EXPENSE,
    ) -> Transaction:
        return Transaction(
            id=f"t{next(counter)}",
            date=date,
            amount=amount,
            currency=currency,
            category=category,
            description=description,
            kind=kind,
        )

    return _make


@pytest.fixture
def make_consumption() -> Callable[..., CardConsumption]:
    def _make(
        amount: float,
        description: str = "COMPRA",
        holder: str = "JUAN PEREZ",
        date: str = "05-mar-25",
        is_installment: bool = False,
        network: CardNetwork = CardNetwork.VISA,
    ) -> CardConsumption:
        return CardConsumption(
            amount=amount,
            holder=holder,
            description=description,
            date=date,
            is_installment=is_installment,
            network=network,
        )

    return _make
