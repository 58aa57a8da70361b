"""Category aggregation, filtering and sorting over transaction collections.

Everything here is a pure function of its input.  The helpers never raise on
empty input; they return zeroed totals and empty breakdowns so the HTTP layer
can always render something.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timezone
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

from dateutil import parser as date_parser

from .models import CategoryBreakdown, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

SORT_FIELDS = ("amount", "date")
SORT_ORDERS = ("asc", "desc")


@dataclass(slots=True)
class AggregateResult:
    """Totals and per-category breakdown for one collection.

    ``total`` is a plain sum of amounts: no FX conversion happens here.  When
    the collection mixes currencies :attr:`is_mixed_currency` is ``True`` and
    callers should treat the total as approximate.
    """

    total: float = 0.0
    count: int = 0
    breakdown: list[CategoryBreakdown] = field(default_factory=list)
    currencies: tuple[str, ...] = ()

    @property
    def is_mixed_currency(self) -> bool:
        return len(self.currencies) > 1

    def to_payload(self) -> dict[str, object]:
        return {
            "total": self.total,
            "count": self.count,
            "breakdown": [
                {"category": item.category, "amount": item.amount, "percentage": item.percentage}
                for item in self.breakdown
            ],
            "currencies": list(self.currencies),
            "mixed_currency": self.is_mixed_currency,
        }


@dataclass(slots=True)
class FilterResult(Generic[T]):
    """Filtered rows plus the total shown in the table's filtered-total row."""

    items: list[T]
    total: float
    active: bool


def category_breakdown(pairs: Iterable[tuple[str, float]]) -> tuple[float, list[CategoryBreakdown]]:
    """Group ``(label, amount)`` pairs and return ``(total, breakdown)``.

    Groups keep first-seen order before a stable sort by amount, descending, so
    ties are deterministic.  Percentages are ``0`` when the total is zero.
    """

    totals: dict[str, float] = {}
    for label, amount in pairs:
        totals[label] = totals.get(label, 0.0) + amount

    total = sum(totals.values())
    breakdown = [
        CategoryBreakdown(
            category=label,
            amount=amount,
            percentage=(amount / total * 100) if total else 0.0,
        )
        for label, amount in totals.items()
    ]
    breakdown.sort(key=lambda item: item.amount, reverse=True)
    return total, breakdown


def parse_iso_timestamp(value: str) -> float:
    """Return the POSIX timestamp of an ISO-8601 string, ``0`` when unparsable.

    Naive timestamps are read as UTC so the result does not depend on the host
    timezone.
    """

    if not value:
        return 0.0
    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError):
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_with_sentinel(
    items: Sequence[T],
    key: Callable[[T], float],
    descending: bool,
) -> list[T]:
    """Sort by ``key`` keeping items whose key is ``0`` at the end in both directions."""

    known = [item for item in items if key(item)]
    unknown = [item for item in items if not key(item)]
    known.sort(key=key, reverse=descending)
    return known + unknown


class TransactionAggregator:
    """Category totals and table helpers for expense, income and savings views."""

    @staticmethod
    def aggregate(transactions: Optional[Iterable[Transaction]]) -> AggregateResult:
        """Return total, count and the amount-sorted category breakdown."""

        items = list(transactions or [])
        if not items:
            return AggregateResult()

        total, breakdown = category_breakdown((tx.category, tx.amount) for tx in items)
        currencies = tuple(dict.fromkeys(tx.currency for tx in items))
        if len(currencies) > 1:
            logger.warning(
                "Aggregating %d transactions across currencies %s without conversion",
                len(items),
                ", ".join(currencies),
            )
        return AggregateResult(total=total, count=len(items), breakdown=breakdown, currencies=currencies)

    @staticmethod
    def filter(
        transactions: Optional[Iterable[Transaction]],
        text: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> FilterResult[Transaction]:
        """Filter by description text (case-insensitive) and category membership."""

        needle = (text or "").lower()
        wanted = set(categories or [])
        matched = [
            tx
            for tx in transactions or []
            if (not needle or needle in tx.description.lower()) and (not wanted or tx.category in wanted)
        ]
        return FilterResult(
            items=matched,
            total=sum(tx.amount for tx in matched),
            active=bool(needle or wanted),
        )

    @staticmethod
    def sort(
        transactions: Optional[Iterable[Transaction]],
        by: str = "date",
        order: str = "desc",
    ) -> list[Transaction]:
        """Sort by ``amount`` or ``date``; unparsable dates always go last."""

        if by not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field {by!r}; expected one of {SORT_FIELDS}")
        if order not in SORT_ORDERS:
            raise ValueError(f"Unsupported sort order {order!r}; expected one of {SORT_ORDERS}")

        items = list(transactions or [])
        descending = order == "desc"
        if by == "amount":
            return sorted(items, key=lambda tx: tx.amount, reverse=descending)
        return sort_with_sentinel(items, lambda tx: parse_iso_timestamp(tx.date), descending)
