"""Spreadsheet importers for transaction exports.

A CSV or Excel export (for example a bank download or the household
spreadsheet the upstream API is synchronised from) can be loaded straight into
:class:`~budget_dash.models.Transaction` records and fed to the aggregators.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, Optional
from uuid import uuid4

import pandas as pd
from dateutil import parser as date_parser

from .models import Transaction, TransactionKind

logger = logging.getLogger(__name__)

# Accepted header spellings, lower-cased, for each canonical column.
COLUMN_ALIASES = {
    "id": ("id", "uuid"),
    "date": ("date", "fecha"),
    "amount": ("amount", "importe", "monto"),
    "currency": ("currency", "moneda"),
    "category": ("category", "categoria", "categoría"),
    "description": ("description", "descripcion", "descripción", "concepto"),
    "kind": ("kind", "type", "tipo"),
}


class TransactionImporter:
    """Load and normalise transactions from a CSV or Excel file.

    The importer performs three tasks:

    1. Read the file into a :class:`~pandas.DataFrame` with every cell as text.
    2. Map the headers onto canonical column names.
    3. Parse each row into a :class:`Transaction`, skipping rows whose date or
       amount cannot be understood.

    Amounts are stored as magnitudes.  When the file has no kind column, a
    negative amount marks an expense and other rows take ``default_kind``.
    """

    def __init__(self, path: str | Path, default_kind: TransactionKind = TransactionKind.EXPENSE) -> None:
        self.path = Path(path)
        self.default_kind = default_kind

    def load(self, sheet_name: str | int = 0) -> list[Transaction]:
        dataframe = self._load_frame(sheet_name)
        transactions = list(self._iter_transactions(dataframe))
        skipped = len(dataframe) - len(transactions)
        logger.info("Imported %d transactions from %s (%d rows skipped)", len(transactions), self.path.name, skipped)
        return transactions

    def _load_frame(self, sheet_name: str | int) -> pd.DataFrame:
        if self.path.suffix.lower() in {".xlsx", ".xlsm", ".xls"}:
            dataframe = pd.read_excel(self.path, sheet_name=sheet_name, dtype=str)
        else:
            dataframe = pd.read_csv(self.path, dtype=str)
        dataframe.columns = [_canonical_column(column) for column in dataframe.columns]
        return dataframe

    def _iter_transactions(self, dataframe: pd.DataFrame) -> Iterator[Transaction]:
        for _, row in dataframe.fillna("").iterrows():
            amount = _parse_decimal(row.get("amount"))
            parsed_date = _parse_date(row.get("date"))
            if amount is None or parsed_date is None:
                logger.debug("Skipping row without usable date/amount: %s", row.to_dict())
                continue

            kind = self._classify(_clean_string(row.get("kind")), amount)
            if kind is None:
                logger.debug("Skipping row with unknown kind: %s", row.to_dict())
                continue

            yield Transaction(
                id=_clean_string(row.get("id")) or str(uuid4()),
                date=parsed_date.isoformat(),
                amount=abs(amount),
                currency=(_clean_string(row.get("currency")) or "ARS").upper(),
                category=_clean_string(row.get("category")) or "Otros",
                description=_clean_string(row.get("description")),
                kind=kind,
            )

    def _classify(self, raw_kind: str, amount: float) -> Optional[TransactionKind]:
        if raw_kind:
            try:
                return TransactionKind.parse(raw_kind)
            except KeyError:
                return None
        if amount < 0:
            return TransactionKind.EXPENSE
        return self.default_kind


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def _canonical_column(column: object) -> str:
    label = str(column).strip().lower()
    for canonical, aliases in COLUMN_ALIASES.items():
        if label in aliases:
            return canonical
    return label


def _clean_string(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_decimal(value: object) -> float | None:
    if value is None:
        return None
    stringified = str(value).strip()
    if not stringified:
        return None
    normalised = stringified.replace("$", "").replace("'", "").replace(" ", "")
    # With both separators present, the last one is the decimal point.
    if "," in normalised and "." in normalised:
        if normalised.rfind(",") > normalised.rfind("."):
            normalised = normalised.replace(".", "").replace(",", ".")
        else:
            normalised = normalised.replace(",", "")
    else:
        normalised = normalised.replace(",", ".")
    try:
        return float(Decimal(normalised))
    except (InvalidOperation, ValueError):
        return None


def _parse_date(value: object) -> date | None:
    if value is None:
        return None
    stringified = str(value).strip()
    if not stringified or stringified in {"NaT", "nan"}:
        return None
    try:
        if _looks_iso(stringified):
            return date_parser.isoparse(stringified).date()
        return date_parser.parse(stringified, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def _looks_iso(value: str) -> bool:
    return len(value) >= 10 and value[4] == "-" and value[7] == "-"
