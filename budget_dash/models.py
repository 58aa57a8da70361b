"""Domain models used by the budget_dash aggregation library.

The classes defined here are intentionally lightweight data containers that do
not know anything about persistence or transport concerns.  Keeping the domain
model pure makes it easier to test the aggregation logic and lets the demo
generator, the upstream API client and the spreadsheet importer all feed the
same functions.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional


class TransactionKind(str, Enum):
    """Statistical bucket a transaction belongs to."""

    EXPENSE = "Expense"
    INCOME = "Income"
    SAVING = "Saving"

    @classmethod
    def parse(cls, value: str) -> "TransactionKind":
        """Accept both the English names and the upstream ``EGRESO`` style codes."""

        normalised = str(value).strip().upper()
        return _KIND_ALIASES[normalised]


_KIND_ALIASES = {
    "EXPENSE": TransactionKind.EXPENSE,
    "EGRESO": TransactionKind.EXPENSE,
    "INCOME": TransactionKind.INCOME,
    "INGRESO": TransactionKind.INCOME,
    "SAVING": TransactionKind.SAVING,
    "AHORRO": TransactionKind.SAVING,
}


class CardNetwork(str, Enum):
    VISA = "Visa"
    MASTERCARD = "Mastercard"


class BudgetBucket(str, Enum):
    """The three budget buckets objectives are expressed in."""

    REGULAR = "Regular"
    UNUSUAL = "Unusual"
    SAVINGS = "Savings"


class TrendLabel(str, Enum):
    """Direction of a cost series.  Lower spending reads as ``SAVINGS``."""

    SAVINGS = "Savings"
    SPENDING = "Spending"
    NEUTRAL = "Neutral"


@dataclass(slots=True, frozen=True)
class Transaction:
    """A single dated money movement.

    Attributes:
        id: Opaque identifier assigned by the data source.
        date: ISO-8601 timestamp text.  It is kept as text so unparsable values
            coming from the upstream API survive until a sort needs them.
        amount: Non-negative magnitude expressed in :attr:`currency`.
        currency: ISO currency code such as ``ARS`` or ``USD``.
        category: Free-text category label.
        description: Merchant or purpose.
        kind: Statistical bucket; never changes after creation.
    """

    id: str
    date: str
    amount: float
    currency: str
    category: str
    description: str
    kind: TransactionKind

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Transaction":
        """Build a transaction from the upstream JSON shape.

        The upstream API names the identifier ``uuid`` and the kind ``type``
        (``EGRESO``/``INGRESO``/``AHORRO``); the canonical names are accepted
        as well.
        """

        return cls(
            id=str(payload.get("id", payload.get("uuid", ""))),
            date=str(payload.get("date", "")),
            amount=float(payload.get("amount") or 0.0),
            currency=str(payload.get("currency") or "ARS").upper(),
            category=str(payload.get("category") or ""),
            description=str(payload.get("description") or ""),
            kind=TransactionKind.parse(payload.get("kind", payload.get("type", "EGRESO"))),
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "date": self.date,
            "amount": self.amount,
            "currency": self.currency,
            "category": self.category,
            "description": self.description,
            "kind": self.kind.value,
        }


_INSTALLMENT_LABEL = re.compile(r"C\.\d{2}/\d{2}")


@dataclass(slots=True, frozen=True)
class CardConsumption:
    """A single card statement line ("consumo").

    :attr:`amount` is always denominated in ARS, even for purchases made in US
    dollars; those carry ``USD`` somewhere in :attr:`description`.  The
    :attr:`network` is assigned by the statement bucket the line arrived in.
    """

    amount: float
    holder: str
    description: str
    date: str
    is_installment: bool
    network: CardNetwork

    @property
    def installment_label(self) -> Optional[str]:
        """Return the ``C.NN/MM`` token embedded in the description, if any."""

        match = _INSTALLMENT_LABEL.search(self.description)
        return match.group(0) if match else None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], network: CardNetwork) -> "CardConsumption":
        return cls(
            amount=float(payload.get("importe", payload.get("amount")) or 0.0),
            holder=str(payload.get("holder") or ""),
            description=str(payload.get("descripcion", payload.get("description")) or ""),
            date=str(payload.get("fecha", payload.get("date")) or ""),
            is_installment=bool(payload.get("is_cuota", payload.get("is_installment", False))),
            network=network,
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "amount": self.amount,
            "holder": self.holder,
            "description": self.description,
            "date": self.date,
            "is_installment": self.is_installment,
            "installment_label": self.installment_label,
            "network": self.network.value,
        }


@dataclass(slots=True)
class CardStatement:
    """One monthly card statement, grouped by network as the API delivers it."""

    year: int
    month: int
    visa: list[CardConsumption] = field(default_factory=list)
    mastercard: list[CardConsumption] = field(default_factory=list)
    conversion_amount: Optional[float] = None

    @property
    def consumptions(self) -> list[CardConsumption]:
        return [*self.visa, *self.mastercard]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], year: int, month: int) -> "CardStatement":
        """Decode ``{"visa": [...], "mastercard": [...], "conversionAmount": n}``."""

        rate = payload.get("conversionAmount", payload.get("conversion_amount"))
        return cls(
            year=year,
            month=month,
            visa=[CardConsumption.from_payload(item, CardNetwork.VISA) for item in payload.get("visa") or []],
            mastercard=[
                CardConsumption.from_payload(item, CardNetwork.MASTERCARD)
                for item in payload.get("mastercard") or []
            ],
            conversion_amount=float(rate) if rate is not None else None,
        )


@dataclass(slots=True, frozen=True)
class CategoryBreakdown:
    category: str
    amount: float
    percentage: float


class InvalidBudgetObjective(ValueError):
    """Raised when a budget objective triple is out of range or does not sum to 100."""


OBJECTIVE_SUM_TOLERANCE = 0.1


@dataclass(slots=True, frozen=True)
class BudgetObjective:
    """Target split of income across the three budget buckets, in percent.

    Construction validates the triple: every value must lie in ``[0, 100]`` and
    the three must add up to 100 (within :data:`OBJECTIVE_SUM_TOLERANCE`).
    Invalid values raise :class:`InvalidBudgetObjective` instead of being
    clamped.
    """

    regular: float = 50.0
    unusual: float = 30.0
    savings: float = 20.0

    def __post_init__(self) -> None:
        for name in ("regular", "unusual", "savings"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise InvalidBudgetObjective(f"{name} must be between 0% and 100%, got {value}")
        total = self.regular + self.unusual + self.savings
        if abs(total - 100) > OBJECTIVE_SUM_TOLERANCE:
            raise InvalidBudgetObjective(f"Percentages must add up to 100%, got {total:g}")

    def percentage_for(self, bucket: BudgetBucket) -> float:
        return {
            BudgetBucket.REGULAR: self.regular,
            BudgetBucket.UNUSUAL: self.unusual,
            BudgetBucket.SAVINGS: self.savings,
        }[bucket]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BudgetObjective":
        try:
            regular = float(payload["regular"])
            unusual = float(payload["unusual"])
            savings = float(payload["savings"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidBudgetObjective(f"Malformed budget objective: {exc}") from exc
        return cls(regular=regular, unusual=unusual, savings=savings)

    def to_payload(self) -> dict[str, float]:
        return {"regular": self.regular, "unusual": self.unusual, "savings": self.savings}


@dataclass(slots=True, frozen=True)
class MonthlyAggregate:
    """Card spending totals for one calendar month."""

    month: int
    total: float
    visa_total: float = 0.0
    mastercard_total: float = 0.0


@dataclass(slots=True)
class FxRate:
    """FX rate as persisted in the local database."""

    base: str
    quote: str
    valuation_date: date
    rate: float
    source: str


@dataclass(slots=True, frozen=True)
class Holding:
    """An asset or a debt line in a net worth snapshot."""

    name: str
    value: float
    category: str


@dataclass(slots=True)
class NetWorthSnapshot:
    """Assets and debts at a point in time ("patrimonio")."""

    date: str
    assets: list[Holding] = field(default_factory=list)
    debts: list[Holding] = field(default_factory=list)

    @property
    def total_assets(self) -> float:
        return sum(asset.value for asset in self.assets)

    @property
    def total_debts(self) -> float:
        return sum(debt.value for debt in self.debts)

    @property
    def net_worth(self) -> float:
        return self.total_assets - self.total_debts

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NetWorthSnapshot":
        def _holdings(items: Any) -> list[Holding]:
            return [
                Holding(name=str(item.get("name", "")), value=float(item.get("value") or 0.0), category=str(item.get("category", "")))
                for item in items or []
            ]

        return cls(
            date=str(payload.get("date", "")),
            assets=_holdings(payload.get("assets")),
            debts=_holdings(payload.get("debts")),
        )


__all__ = [
    "BudgetBucket",
    "BudgetObjective",
    "CardConsumption",
    "CardNetwork",
    "CardStatement",
    "CategoryBreakdown",
    "FxRate",
    "Holding",
    "InvalidBudgetObjective",
    "MonthlyAggregate",
    "NetWorthSnapshot",
    "Transaction",
    "TransactionKind",
    "TrendLabel",
]
