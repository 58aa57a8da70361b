"""SQLite persistence layer for the budget_dash backend.

The repository provides a small, well-typed API that hides SQL details from the
rest of the code.  It relies on the standard library :mod:`sqlite3` module.
Only user-entered state lives here: preferences such as the budget objectives,
the card payment FX rate for each statement, the latest market rates and the
transactions imported from spreadsheet exports.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from .models import BudgetObjective, FxRate, InvalidBudgetObjective, Transaction, TransactionKind

logger = logging.getLogger(__name__)

BUDGET_OBJECTIVES_KEY = "budget_objectives"


class SQLiteRepository:
    """Encapsulates all SQLite access for the application."""

    def __init__(self, database_path: Path | str) -> None:
        self._database_path = database_path
        # FastAPI runs sync routes in a worker thread pool.
        self._connection = sqlite3.connect(database_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        self._connection.close()

    # ------------------------------------------------------------------
    # Schema management
    # ------------------------------------------------------------------
    def initialise_schema(self) -> None:
        """Create all tables required by the application if they do not exist."""

        cursor = self._connection.cursor()
        cursor.executescript(
            """
            CREATE TABLE IF NOT EXISTS fx_rates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                base TEXT NOT NULL,
                quote TEXT NOT NULL,
                valuation_date TEXT NOT NULL,
                rate REAL NOT NULL,
                source TEXT NOT NULL,
                UNIQUE(base, quote, valuation_date, source)
            );

            CREATE TABLE IF NOT EXISTS card_payment_fx (
                year INTEGER NOT NULL,
                month INTEGER NOT NULL,
                rate REAL NOT NULL,
                PRIMARY KEY (year, month)
            );

            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS imported_transactions (
                id TEXT PRIMARY KEY,
                date TEXT NOT NULL,
                amount REAL NOT NULL,
                currency TEXT NOT NULL,
                category TEXT NOT NULL,
                description TEXT NOT NULL,
                kind TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_imported_transactions_kind_date
                ON imported_transactions(kind, date);
            """
        )
        self._connection.commit()

    # ------------------------------------------------------------------
    # FX rates
    # ------------------------------------------------------------------
    def upsert_fx_rates(self, rates: Iterable[FxRate]) -> None:
        cursor = self._connection.cursor()
        for rate in rates:
            cursor.execute(
                """
                INSERT OR REPLACE INTO fx_rates (base, quote, valuation_date, rate, source)
                VALUES (:base, :quote, :valuation_date, :rate, :source)
                """,
                {
                    "base": rate.base.upper(),
                    "quote": rate.quote.upper(),
                    "valuation_date": rate.valuation_date.isoformat(),
                    "rate": rate.rate,
                    "source": rate.source,
                },
            )
        self._connection.commit()

    def get_latest_fx_rate(self, base: str, quote: str) -> Optional[FxRate]:
        row = self._connection.execute(
            """
            SELECT base, quote, valuation_date, rate, source
            FROM fx_rates
            WHERE base = ? AND quote = ?
            ORDER BY date(valuation_date) DESC, id DESC
            LIMIT 1
            """,
            (base.upper(), quote.upper()),
        ).fetchone()
        if row is None:
            return None
        return FxRate(
            base=row["base"],
            quote=row["quote"],
            valuation_date=date.fromisoformat(row["valuation_date"]),
            rate=float(row["rate"]),
            source=row["source"],
        )

    # ------------------------------------------------------------------
    # Card payment FX ("dólar tarjeta" used to pay a statement)
    # ------------------------------------------------------------------
    def set_card_payment_fx(self, year: int, month: int, rate: float) -> None:
        self._connection.execute(
            "INSERT OR REPLACE INTO card_payment_fx (year, month, rate) VALUES (?, ?, ?)",
            (year, month, rate),
        )
        self._connection.commit()

    def get_card_payment_fx(self, year: int, month: int) -> Optional[float]:
        row = self._connection.execute(
            "SELECT rate FROM card_payment_fx WHERE year = ? AND month = ?",
            (year, month),
        ).fetchone()
        if row is None:
            return None
        return float(row["rate"])

    # ------------------------------------------------------------------
    # Imported transactions (spreadsheet exports)
    # ------------------------------------------------------------------
    def upsert_transactions(self, transactions: Iterable[Transaction]) -> int:
        """Persist imported transactions; re-importing a row replaces it by id."""

        count = 0
        cursor = self._connection.cursor()
        for transaction in transactions:
            cursor.execute(
                """
                INSERT OR REPLACE INTO imported_transactions (id, date, amount, currency, category, description, kind)
                VALUES (:id, :date, :amount, :currency, :category, :description, :kind)
                """,
                transaction.to_payload(),
            )
            count += 1
        self._connection.commit()
        return count

    def list_transactions(self, kind: TransactionKind, year: int, month: int) -> list[Transaction]:
        rows = self._connection.execute(
            """
            SELECT id, date, amount, currency, category, description, kind
            FROM imported_transactions
            WHERE kind = ? AND date LIKE ?
            ORDER BY date, id
            """,
            (kind.value, f"{year:04d}-{month:02d}-%"),
        ).fetchall()
        return [
            Transaction(
                id=row["id"],
                date=row["date"],
                amount=float(row["amount"]),
                currency=row["currency"],
                category=row["category"],
                description=row["description"],
                kind=TransactionKind(row["kind"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Settings helpers
    # ------------------------------------------------------------------
    def set_setting(self, key: str, value: str) -> None:
        self._connection.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, value),
        )
        self._connection.commit()

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self._connection.execute(
            "SELECT value FROM settings WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return default
        return str(row["value"])


class BudgetObjectiveStore:
    """Load, validate and persist the user's :class:`BudgetObjective`.

    Reads never fail: a missing, malformed or invalid stored value yields the
    default ``50/30/20`` split.  Writes validate first, so an invalid triple
    leaves the previously stored value in effect.
    """

    def __init__(self, repository: SQLiteRepository, key: str = BUDGET_OBJECTIVES_KEY) -> None:
        self._repository = repository
        self._key = key

    def load(self) -> BudgetObjective:
        raw = self._repository.get_setting(self._key)
        if raw is None:
            return BudgetObjective()
        try:
            return BudgetObjective.from_payload(json.loads(raw))
        except (json.JSONDecodeError, AttributeError, InvalidBudgetObjective) as exc:
            logger.warning("Discarding stored budget objectives %r: %s", raw, exc)
            return BudgetObjective()

    def save(self, objectives: BudgetObjective | dict[str, float]) -> BudgetObjective:
        if not isinstance(objectives, BudgetObjective):
            objectives = BudgetObjective.from_payload(objectives)
        self._repository.set_setting(self._key, json.dumps(objectives.to_payload()))
        logger.info("Saved budget objectives %s", objectives.to_payload())
        return objectives
