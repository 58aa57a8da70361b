"""High-level application services orchestrating the budget_dash backend."""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Protocol, TypeVar

from .aggregation import TransactionAggregator
from .api_client import UpstreamApiError
from .budget import BudgetReconciler
from .cards import CardConsumptionAggregator, current_year
from .database import BudgetObjectiveStore, SQLiteRepository
from .importers import TransactionImporter
from .models import (
    BudgetObjective,
    CardStatement,
    Holding,
    NetWorthSnapshot,
    Transaction,
    TransactionKind,
)
from .price_service import PriceService
from .trends import TrendAnalyzer

logger = logging.getLogger(__name__)

T = TypeVar("T")

MONTH_NAMES = ["Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"]
EVOLUTION_RANGES = {"6m": 6, "12m": 12, "24m": 24}
TOP_CATEGORIES = 5
BITCOIN_ASSET = "Bitcoin"


class DataSource(Protocol):
    """Anything that can provide raw records for a year/month window."""

    def monthly_transactions(self, kind: TransactionKind, year: int, month: int) -> list[Transaction]:
        ...

    def card_statement(self, year: int, month: int) -> Optional[CardStatement]:
        ...

    def net_worth(self, year: Optional[int] = None, month: Optional[int] = None) -> Optional[NetWorthSnapshot]:
        ...


def months_back(year: int, month: int, count: int) -> list[tuple[int, int]]:
    """Return ``count`` (year, month) pairs ending at the anchor, oldest first."""

    pairs = []
    for offset in range(count - 1, -1, -1):
        index = year * 12 + (month - 1) - offset
        pairs.append((index // 12, index % 12 + 1))
    return pairs


class DashboardService:
    """Coordinates data sources, aggregation and persistence for every view."""

    def __init__(
        self,
        source: DataSource,
        repository: SQLiteRepository,
        price_service: Optional[PriceService] = None,
        btc_holdings: float = 0.0,
        reconciler: Optional[BudgetReconciler] = None,
        categories: Optional[Mapping[TransactionKind, list[str]]] = None,
    ) -> None:
        self._source = source
        self._repository = repository
        self._price_service = price_service
        self._btc_holdings = btc_holdings
        self._objectives = BudgetObjectiveStore(repository)
        self._reconciler = reconciler or BudgetReconciler()
        self._categories = categories

    # ------------------------------------------------------------------
    # Data access with "no data" fallback
    # ------------------------------------------------------------------
    def _fetch(self, what: str, loader: Callable[[], T], default: T) -> T:
        try:
            return loader()
        except UpstreamApiError as exc:
            logger.error("Could not load %s: %s", what, exc)
            return default

    def transactions(self, kind: TransactionKind, year: int, month: int) -> list[Transaction]:
        """Source transactions for the month followed by any imported ones."""

        fetched = self._fetch(
            f"{kind.value.lower()} for {year}-{month:02d}",
            lambda: self._source.monthly_transactions(kind, year, month),
            [],
        )
        return [*fetched, *self._repository.list_transactions(kind, year, month)]

    def _load_statement(self, year: int, month: int) -> Optional[CardStatement]:
        return self._fetch(
            f"card statement for {year}-{month:02d}",
            lambda: self._source.card_statement(year, month),
            None,
        )

    def card_statement(self, year: int, month: int) -> Optional[CardStatement]:
        """Statement for the month, using the stored payment rate when there is one."""

        statement = self._load_statement(year, month)
        if statement is None:
            return None
        paid_rate = self._repository.get_card_payment_fx(year, month)
        if paid_rate:
            statement.conversion_amount = paid_rate
        return statement

    # ------------------------------------------------------------------
    # Monthly views
    # ------------------------------------------------------------------
    def monthly_list(
        self,
        kind: TransactionKind,
        year: int,
        month: int,
        text: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
        sort_by: str = "date",
        order: str = "desc",
    ) -> dict[str, object]:
        """Items, totals and breakdown for the expenses/income/savings tables."""

        items = self.transactions(kind, year, month)
        aggregate = TransactionAggregator.aggregate(items)
        filtered = TransactionAggregator.filter(items, text=text, categories=categories)
        ordered = TransactionAggregator.sort(filtered.items, by=sort_by, order=order)
        payload = aggregate.to_payload()
        return {
            "year": year,
            "month": month,
            "kind": kind.value,
            "items": [tx.to_payload() for tx in ordered],
            "totals": {"total": payload["total"], "count": payload["count"]},
            "breakdown": payload["breakdown"],
            "currencies": payload["currencies"],
            "mixed_currency": payload["mixed_currency"],
            "filtered": {
                "active": filtered.active,
                "total": filtered.total,
                "count": len(filtered.items),
            },
            "categories": self.category_options(kind, items),
        }

    def category_options(self, kind: TransactionKind, items: Iterable[Transaction]) -> list[str]:
        """Categories offered by the table filter.

        A configured catalogue wins; otherwise the categories present in
        ``items`` are offered in first-seen order.
        """

        if self._categories is not None and kind in self._categories:
            return list(self._categories[kind])
        return list(dict.fromkeys(tx.category for tx in items))

    def monthly_summary(self, year: int, month: int) -> dict[str, object]:
        expenses = TransactionAggregator.aggregate(self.transactions(TransactionKind.EXPENSE, year, month))
        income = TransactionAggregator.aggregate(self.transactions(TransactionKind.INCOME, year, month))
        savings = TransactionAggregator.aggregate(self.transactions(TransactionKind.SAVING, year, month))
        return {
            "year": year,
            "month": month,
            "total_expenses": expenses.total,
            "total_income": income.total,
            "total_savings": savings.total,
            "balance": income.total - expenses.total - savings.total,
            "top_categories": expenses.to_payload()["breakdown"][:TOP_CATEGORIES],
        }

    def annual_summary(self, year: int) -> dict[str, object]:
        months = []
        for month in range(1, 13):
            summary = self.monthly_summary(year, month)
            months.append(
                {
                    "month": month,
                    "month_name": MONTH_NAMES[month - 1],
                    "expenses": summary["total_expenses"],
                    "income": summary["total_income"],
                    "savings": summary["total_savings"],
                    "balance": summary["balance"],
                }
            )
        totals = {
            key: sum(row[key] for row in months)
            for key in ("expenses", "income", "savings", "balance")
        }
        return {"year": year, "months": months, "totals": totals}

    def evolution(self, year: int, month: int, range_: str = "12m") -> dict[str, object]:
        """Income, expenses, savings and net worth for the months up to the anchor."""

        if range_ not in EVOLUTION_RANGES:
            raise ValueError(f"Unsupported range {range_!r}; expected one of {tuple(EVOLUTION_RANGES)}")

        data = []
        for target_year, target_month in months_back(year, month, EVOLUTION_RANGES[range_]):
            summary = self.monthly_summary(target_year, target_month)
            snapshot = self._fetch(
                f"net worth for {target_year}-{target_month:02d}",
                lambda: self._source.net_worth(target_year, target_month),
                None,
            )
            data.append(
                {
                    "date": f"{target_year}-{target_month:02d}-01",
                    "month": f"{MONTH_NAMES[target_month - 1]} {target_year}",
                    "expenses": summary["total_expenses"],
                    "income": summary["total_income"],
                    "savings": summary["total_savings"],
                    "net_worth": snapshot.net_worth if snapshot else None,
                }
            )
        return {"range": range_, "data": data}

    # ------------------------------------------------------------------
    # Import workflows
    # ------------------------------------------------------------------
    def import_transactions(
        self,
        path: str | Path,
        default_kind: TransactionKind = TransactionKind.EXPENSE,
        sheet_name: str | int = 0,
    ) -> int:
        """Load a CSV/Excel export and persist its rows.

        Returns the number of transactions stored.  Rows keep the id from the
        file when it has one, so re-importing the same export replaces them.
        """

        transactions = TransactionImporter(path, default_kind=default_kind).load(sheet_name)
        return self._repository.upsert_transactions(transactions)

    # ------------------------------------------------------------------
    # Budget objectives
    # ------------------------------------------------------------------
    def budget_objectives(self) -> BudgetObjective:
        return self._objectives.load()

    def update_budget_objectives(self, objectives: BudgetObjective | dict[str, float]) -> BudgetObjective:
        return self._objectives.save(objectives)

    def reconciliation(self, year: int, month: int) -> dict[str, object]:
        expenses = self.transactions(TransactionKind.EXPENSE, year, month)
        income = TransactionAggregator.aggregate(self.transactions(TransactionKind.INCOME, year, month))
        objectives = self.budget_objectives()
        result = self._reconciler.reconcile(expenses, income.total, objectives)
        payload = result.to_payload()
        payload["objectives"] = objectives.to_payload()
        return payload

    # ------------------------------------------------------------------
    # Card statements
    # ------------------------------------------------------------------
    def card_statement_view(
        self,
        year: int,
        month: int,
        text: Optional[str] = None,
        holder: Optional[str] = None,
        payment_type: str = "all",
        order: str = "desc",
    ) -> Optional[dict[str, object]]:
        statement = self.card_statement(year, month)
        if statement is None:
            return None

        cards = CardConsumptionAggregator
        split = cards.split_by_network(statement)
        assumed_year = current_year()

        def network_view(consumptions: list) -> dict[str, object]:
            typed = cards.filter_by_type(consumptions, payment_type)
            filtered = cards.filter(typed, text=text, holder=holder)
            currency = cards.currency_totals(consumptions, statement.conversion_amount)
            installments = cards.installment_totals(consumptions)
            return {
                "items": [
                    {**item.to_payload(), "is_terminal_installment": cards.is_terminal_installment(item)}
                    for item in cards.sort_by_date(filtered.items, order=order, year=assumed_year)
                ],
                "holders": cards.holders(consumptions),
                "filtered": {"active": filtered.active, "total": filtered.total, "count": len(filtered.items)},
                "ars_total": currency.ars_total,
                "usd_total": currency.usd_total,
                "rate_was_missing": currency.rate_was_missing,
                "installments_total": installments.installments,
                "one_time_total": installments.one_time,
                "total": installments.total,
            }

        everything = statement.consumptions
        return {
            "year": year,
            "month": month,
            "conversion_amount": statement.conversion_amount,
            "visa": network_view(split.visa),
            "mastercard": network_view(split.mastercard),
            "total": sum(item.amount for item in everything),
            "ending_installments": [item.to_payload() for item in cards.terminal_installments(everything)],
            "merchants": [
                {"merchant": item.category, "amount": item.amount, "percentage": item.percentage}
                for item in cards.merchant_breakdown(everything)
            ],
        }

    def card_trend(self, year: int, field_name: str = "total") -> dict[str, object]:
        """Month-over-month card spending trend for a calendar year."""

        # Totals are ARS amounts; stored payment rates do not apply.
        with ThreadPoolExecutor(max_workers=4) as pool:
            statements = list(pool.map(lambda month: self._load_statement(year, month), range(1, 13)))
        series = TrendAnalyzer.monthly_aggregates(statements)
        trend = TrendAnalyzer.compute_trend(series, field_name)
        payload = trend.to_payload()
        payload["year"] = year
        payload["field"] = field_name
        payload["series"] = [
            {
                "month": item.month,
                "total": item.total,
                "visa_total": item.visa_total,
                "mastercard_total": item.mastercard_total,
            }
            for item in series
        ]
        return payload

    def save_card_payment_fx(self, year: int, month: int, rate: float) -> float:
        """Record the "dólar tarjeta" rate used to pay a statement."""

        if rate is None or not math.isfinite(rate) or rate <= 0:
            raise ValueError("The exchange rate must be a finite number greater than 0")
        self._repository.set_card_payment_fx(year, month, float(rate))
        logger.info("Saved card payment FX %.2f for %d-%02d", rate, year, month)
        return float(rate)

    # ------------------------------------------------------------------
    # Net worth and market data
    # ------------------------------------------------------------------
    def exchange_rates(self) -> dict[str, Optional[float]]:
        if self._price_service is None:
            return {"dolar_blue": None, "btc_usd": None}

        rates = {}
        for name, fetch, base, quote in (
            ("dolar_blue", self._price_service.fetch_dolar_blue, "USD", "ARS"),
            ("btc_usd", self._price_service.fetch_btc_usd, "BTC", "USD"),
        ):
            rate = fetch()
            if rate is not None:
                self._repository.upsert_fx_rates([rate])
            else:
                rate = self._repository.get_latest_fx_rate(base, quote)
            rates[name] = rate.rate if rate else None
        return rates

    def net_worth(self) -> Optional[dict[str, object]]:
        snapshot = self._fetch("net worth", lambda: self._source.net_worth(), None)
        if snapshot is None:
            return None

        rates = self.exchange_rates()
        live = revalue_bitcoin(snapshot, rates["btc_usd"], rates["dolar_blue"], self._btc_holdings)

        def rows(holdings: list[Holding]) -> list[dict[str, object]]:
            return [{"name": h.name, "value": h.value, "category": h.category} for h in holdings]

        breakdown: dict[str, float] = {}
        for asset in live.assets:
            breakdown[asset.category] = breakdown.get(asset.category, 0.0) + asset.value

        return {
            "date": live.date,
            "total_assets": live.total_assets,
            "total_debts": live.total_debts,
            "net_worth": live.net_worth,
            "assets": rows(live.assets),
            "debts": rows(live.debts),
            "breakdown": [{"category": key, "amount": value} for key, value in breakdown.items()],
            "rates": rates,
        }


def revalue_bitcoin(
    snapshot: NetWorthSnapshot,
    btc_usd: Optional[float],
    dolar_blue: Optional[float],
    holdings: float,
) -> NetWorthSnapshot:
    """Replace the Bitcoin asset value with a live ARS valuation when possible.

    Without both prices (or without holdings) the stored value is kept.
    """

    if not (btc_usd and dolar_blue and holdings):
        return snapshot
    value_ars = btc_usd * holdings * dolar_blue
    assets = [
        Holding(name=f"{BITCOIN_ASSET} ({holdings} BTC)", value=value_ars, category=asset.category)
        if asset.name == BITCOIN_ASSET
        else asset
        for asset in snapshot.assets
    ]
    return NetWorthSnapshot(date=snapshot.date, assets=assets, debts=list(snapshot.debts))
