"""Credit-card statement aggregation.

Statement lines arrive already converted to ARS.  The helpers in this module
split them by network and by original currency, recognise installment
("cuota") lines and parse the short, non-sortable dates the card issuers print.
"""
from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from .aggregation import FilterResult, category_breakdown, sort_with_sentinel
from .models import CardConsumption, CardStatement, CategoryBreakdown

logger = logging.getLogger(__name__)

SPANISH_MONTHS = {
    "ene": 1,
    "feb": 2,
    "mar": 3,
    "abr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dic": 12,
}

PAYMENT_TYPES = ("all", "installments", "one-time")

_LONG_DATE = re.compile(r"(\d{1,2})-([A-Za-z]{3})-(\d{2})")
_SHORT_DATE = re.compile(r"(\d{1,2})/(\d{1,2})")
_INSTALLMENT = re.compile(r"C\.(\d{2})/(\d{2})")


@dataclass(slots=True)
class NetworkSplit:
    visa: list[CardConsumption] = field(default_factory=list)
    mastercard: list[CardConsumption] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CurrencyTotals:
    """Display totals of a statement split by the currency of the purchase.

    ``usd_total`` is derived from ARS amounts using the statement rate.  When
    that rate is missing or zero a rate of ``1`` is used and
    :attr:`rate_was_missing` is set so the caller can warn about it; in that
    case ``ars_total + usd_total * rate`` does not reconcile with the raw sum.
    """

    ars_total: float
    usd_total: float
    rate_was_missing: bool


@dataclass(slots=True, frozen=True)
class InstallmentTotals:
    installments: float
    one_time: float

    @property
    def total(self) -> float:
        return self.installments + self.one_time


def is_usd_denominated(consumption: CardConsumption) -> bool:
    return "USD" in consumption.description.upper()


def current_year() -> int:
    """Wall-clock year assumed for ``DD/MM`` dates; only called at the boundary."""

    return date.today().year


class CardConsumptionAggregator:
    """Stateless helpers over card statement lines."""

    @staticmethod
    def split_by_network(statement: CardStatement) -> NetworkSplit:
        return NetworkSplit(visa=list(statement.visa), mastercard=list(statement.mastercard))

    @staticmethod
    def currency_totals(
        consumptions: Optional[Iterable[CardConsumption]],
        fx_rate: Optional[float] = None,
    ) -> CurrencyTotals:
        """Return ARS and USD totals, using ``fx_rate`` ARS per USD."""

        rate_was_missing = not fx_rate
        rate = 1.0 if rate_was_missing else float(fx_rate)
        if rate_was_missing:
            logger.debug("No conversion rate available, USD totals use a rate of 1")

        ars_total = 0.0
        usd_total = 0.0
        for consumption in consumptions or []:
            if is_usd_denominated(consumption):
                usd_total += consumption.amount / rate
            else:
                ars_total += consumption.amount
        return CurrencyTotals(ars_total=ars_total, usd_total=usd_total, rate_was_missing=rate_was_missing)

    @staticmethod
    def is_terminal_installment(consumption: CardConsumption) -> bool:
        """True for the last installment of a plan, e.g. ``C.12/12``.

        The two groups are compared as text, exactly as printed.
        """

        if not consumption.is_installment:
            return False
        match = _INSTALLMENT.search(consumption.description)
        if match is None:
            return False
        return match.group(1) == match.group(2)

    @staticmethod
    def parse_statement_date(text: str, year: int) -> int:
        """Parse ``DD-MMM-YY`` or ``DD/MM`` into a UTC timestamp, ``0`` when unknown.

        ``year`` is the year assumed for ``DD/MM`` dates.  Impossible dates such
        as ``31/02`` are rejected.
        """

        value = (text or "").strip()
        match = _LONG_DATE.fullmatch(value)
        if match:
            day, month_name, short_year = match.groups()
            month = SPANISH_MONTHS.get(month_name.lower())
            if month is None:
                return 0
            return _timestamp(2000 + int(short_year), month, int(day))

        match = _SHORT_DATE.fullmatch(value)
        if match:
            day, month = match.groups()
            return _timestamp(year, int(month), int(day))
        return 0

    @classmethod
    def sort_by_date(
        cls,
        consumptions: Optional[Iterable[CardConsumption]],
        order: str = "desc",
        year: Optional[int] = None,
    ) -> list[CardConsumption]:
        """Chronological sort; lines whose date cannot be parsed go last."""

        if order not in ("asc", "desc"):
            raise ValueError(f"Unsupported sort order {order!r}")
        assumed_year = year if year is not None else current_year()
        return sort_with_sentinel(
            list(consumptions or []),
            lambda item: cls.parse_statement_date(item.date, assumed_year),
            order == "desc",
        )

    @staticmethod
    def filter_by_type(
        consumptions: Optional[Iterable[CardConsumption]],
        mode: str = "all",
    ) -> list[CardConsumption]:
        if mode not in PAYMENT_TYPES:
            raise ValueError(f"Unsupported payment type {mode!r}; expected one of {PAYMENT_TYPES}")
        items = list(consumptions or [])
        if mode == "installments":
            return [item for item in items if item.is_installment]
        if mode == "one-time":
            return [item for item in items if not item.is_installment]
        return items

    @staticmethod
    def filter(
        consumptions: Optional[Iterable[CardConsumption]],
        text: Optional[str] = None,
        holder: Optional[str] = None,
    ) -> FilterResult[CardConsumption]:
        """Description search plus holder selection; ``'all'`` means any holder."""

        needle = (text or "").lower()
        wanted_holder = None if holder in (None, "", "all") else holder
        matched = [
            item
            for item in consumptions or []
            if (not needle or needle in item.description.lower())
            and (wanted_holder is None or item.holder == wanted_holder)
        ]
        return FilterResult(
            items=matched,
            total=sum(item.amount for item in matched),
            active=bool(needle or wanted_holder),
        )

    @staticmethod
    def holders(consumptions: Optional[Iterable[CardConsumption]]) -> list[str]:
        return sorted({item.holder for item in consumptions or []})

    @staticmethod
    def installment_totals(consumptions: Optional[Iterable[CardConsumption]]) -> InstallmentTotals:
        installments = 0.0
        one_time = 0.0
        for item in consumptions or []:
            if item.is_installment:
                installments += item.amount
            else:
                one_time += item.amount
        return InstallmentTotals(installments=installments, one_time=one_time)

    @classmethod
    def terminal_installments(cls, consumptions: Optional[Iterable[CardConsumption]]) -> list[CardConsumption]:
        """Lines that will not be charged again next month."""

        return [item for item in consumptions or [] if cls.is_terminal_installment(item)]

    @staticmethod
    def merchant_breakdown(consumptions: Optional[Iterable[CardConsumption]]) -> list[CategoryBreakdown]:
        _, breakdown = category_breakdown((item.description, item.amount) for item in consumptions or [])
        return breakdown


def _timestamp(year: int, month: int, day: int) -> int:
    try:
        parsed = date(year, month, day)
    except ValueError:
        return 0
    return calendar.timegm(parsed.timetuple())
