"""Deterministic demo data used while the upstream API is unavailable.

Every value is derived from a ``year * 100 + month`` seed, so the same window
always renders the same numbers.  :class:`DemoDataSource` exposes the same
methods as :class:`~budget_dash.api_client.DashboardApiClient`.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from .cards import SPANISH_MONTHS
from .models import (
    CardConsumption,
    CardNetwork,
    CardStatement,
    Holding,
    NetWorthSnapshot,
    Transaction,
    TransactionKind,
)

EXPENSE_CATEGORIES = [
    "Casa",
    "Transporte",
    "Comida",
    "Actividades",
    "Educación",
    "Equipo",
    "Necesidades",
    "Salud",
    "Cuotas",
    "Servicios",
    "Entretenimiento",
    "Ropa",
    "Boludeces",
    "Otros",
]

INCOME_CATEGORIES = ["Sueldo", "Freelance", "Inversiones", "Alquiler", "Otros"]

SAVINGS_CATEGORIES = ["Plazo Fijo", "Dólares", "Crypto", "Fondos", "Acciones", "Otros"]

CATEGORIES = {
    TransactionKind.EXPENSE: EXPENSE_CATEGORIES,
    TransactionKind.INCOME: INCOME_CATEGORIES,
    TransactionKind.SAVING: SAVINGS_CATEGORIES,
}

CARD_HOLDERS = ("JUAN PEREZ", "MARIA GOMEZ")

_MONTH_ABBREVIATIONS = {number: name.upper() for name, number in SPANISH_MONTHS.items()}

# (day, share of base amount, category, description)
_EXPENSE_ROWS = [
    (5, 0.30, "Casa", "Alquiler mensual"),
    (8, 0.15, "Comida", "Supermercado Carrefour"),
    (10, 0.08, "Transporte", "Nafta"),
    (12, 0.05, "Servicios", "Luz EDENOR"),
    (12, 0.04, "Servicios", "Gas Metrogas"),
    (15, 0.10, "Comida", "Restaurante cumpleaños"),
    (18, 0.06, "Salud", "Farmacia"),
    (20, 0.12, "Cuotas", "Cuota auto"),
    (22, 0.03, "Entretenimiento", "Netflix + Spotify"),
    (25, 0.07, "Actividades", "Gimnasio"),
    (27, 0.05, "Boludeces", "Gadget impulsivo"),
]

_INCOME_ROWS = [
    (1, 1.0, "Sueldo", "Sueldo mensual"),
    (15, 0.2, "Freelance", "Proyecto web cliente"),
]

_SAVINGS_ROWS = [
    (5, 0.5, "Plazo Fijo", "Renovación plazo fijo", "ARS"),
    (10, 0.3, "Dólares", "Compra USD", "USD"),
    (20, 0.2, "Fondos", "FCI Balanceado", "ARS"),
]


def _seed(year: int, month: int) -> int:
    return year * 100 + month


def demo_uuid(seed: int) -> str:
    hex_seed = f"{seed:08x}"
    return f"{hex_seed}-{hex_seed[:4]}-4{hex_seed[1:4]}-a{hex_seed[1:4]}-{hex_seed}{hex_seed[:4]}"


def _iso(year: int, month: int, day: int) -> str:
    return f"{year}-{month:02d}-{day:02d}"


class DemoDataSource:
    """Generate transactions, card statements and net worth snapshots."""

    def monthly_transactions(self, kind: TransactionKind, year: int, month: int) -> list[Transaction]:
        seed = _seed(year, month)
        if kind is TransactionKind.EXPENSE:
            base = 50000 + seed % 30000
            return [
                Transaction(demo_uuid(seed + index + 1), _iso(year, month, day), base * share, "ARS", category, text, kind)
                for index, (day, share, category, text) in enumerate(_EXPENSE_ROWS)
            ]
        if kind is TransactionKind.INCOME:
            base = 450000 + seed % 50000
            return [
                Transaction(demo_uuid(seed + 100 + index), _iso(year, month, day), base * share, "ARS", category, text, kind)
                for index, (day, share, category, text) in enumerate(_INCOME_ROWS)
            ]
        base = 80000 + seed % 20000
        return [
            Transaction(demo_uuid(seed + 200 + index), _iso(year, month, day), base * share, currency, category, text, kind)
            for index, (day, share, category, text, currency) in enumerate(_SAVINGS_ROWS)
        ]

    def card_statement(self, year: int, month: int) -> Optional[CardStatement]:
        seed = _seed(year, month)
        conversion = 1000.0 + seed % 500
        abbreviation = _MONTH_ABBREVIATIONS[month]
        short_year = year % 100

        def long_date(day: int) -> str:
            return f"{day:02d}-{abbreviation}-{short_year:02d}"

        headphones = seed % 12 + 1
        monitor = seed % 6 + 1
        keyboard = seed % 3 + 1

        visa = [
            CardConsumption(45000.0, CARD_HOLDERS[0], f"MERCADOLIBRE AURICULARES C.{headphones:02d}/12", long_date(3), True, CardNetwork.VISA),
            CardConsumption(28000.0, CARD_HOLDERS[0], f"MERCADOLIBRE MONITOR C.{monitor:02d}/06", long_date(7), True, CardNetwork.VISA),
            CardConsumption(125000.0, CARD_HOLDERS[0], "OSDE PLAN 410", long_date(10), False, CardNetwork.VISA),
            CardConsumption(12.99 * conversion, CARD_HOLDERS[1], "NETFLIX.COM USD 12,99", long_date(14), False, CardNetwork.VISA),
            CardConsumption(35000.0 + seed % 15000, CARD_HOLDERS[1], "RAPPI", f"18/{month:02d}", False, CardNetwork.VISA),
        ]
        mastercard = [
            CardConsumption(15000.0, CARD_HOLDERS[1], f"TECLADO MECANICO C.{keyboard:02d}/03", long_date(4), True, CardNetwork.MASTERCARD),
            CardConsumption(42000.0, CARD_HOLDERS[0], "SEGURO AUTO LA CAJA", long_date(9), False, CardNetwork.MASTERCARD),
            CardConsumption(28000.0, CARD_HOLDERS[0], "FIBERTEL 300MB", long_date(11), False, CardNetwork.MASTERCARD),
            CardConsumption(9.99 * conversion, CARD_HOLDERS[0], "SPOTIFY USD 9,99", long_date(16), False, CardNetwork.MASTERCARD),
            CardConsumption(22000.0 + seed % 10000, CARD_HOLDERS[1], "PEDIDOS YA", f"21/{month:02d}", False, CardNetwork.MASTERCARD),
        ]
        return CardStatement(year=year, month=month, visa=visa, mastercard=mastercard, conversion_amount=conversion)

    def net_worth(self, year: Optional[int] = None, month: Optional[int] = None) -> Optional[NetWorthSnapshot]:
        """Snapshot for ``year``/``month``, or for today when omitted.

        Only the checking account drifts between months, so historical
        snapshots stay comparable.
        """

        today = date.today()
        if year is None or month is None:
            year, month = today.year, today.month
            snapshot_date = today.isoformat()
        else:
            snapshot_date = _iso(year, month, 1)
        months = year * 12 + month
        checking = 850000.0 + (months * 7919) % 500000

        return NetWorthSnapshot(
            date=snapshot_date,
            assets=[
                Holding("Cuenta Corriente", checking, "Efectivo"),
                Holding("Caja de Ahorro USD", 3200000, "Efectivo"),
                Holding("Plazo Fijo", 2500000, "Inversiones"),
                Holding("FCI Balanceado", 1800000, "Inversiones"),
                Holding("Bitcoin", 950000, "Inversiones"),
                Holding("Auto", 4500000, "Bienes"),
                Holding("Electrodomésticos", 1700000, "Bienes"),
            ],
            debts=[
                Holding("Préstamo Personal", 1200000, "Préstamos"),
                Holding("Tarjeta de Crédito", 450000, "Tarjetas"),
                Holding("Cuotas Auto", 1150000, "Cuotas"),
            ],
        )
