"""Tests for the dashboard service over the demo source and failing sources."""

from __future__ import annotations

from datetime import date

import pytest

from budget_dash.api_client import UpstreamApiError
from budget_dash.demo import CATEGORIES, DemoDataSource
from budget_dash.models import FxRate, Holding, InvalidBudgetObjective, NetWorthSnapshot, TransactionKind
from budget_dash.services import DashboardService, months_back, revalue_bitcoin


class StubPriceService:
    def __init__(self, dolar_blue=None, btc_usd=None):
        self.dolar_blue = dolar_blue
        self.btc_usd = btc_usd

    def fetch_dolar_blue(self):
        if self.dolar_blue is None:
            return None
        return FxRate("USD", "ARS", date.today(), self.dolar_blue, "stub")

    def fetch_btc_usd(self):
        if self.btc_usd is None:
            return None
        return FxRate("BTC", "USD", date.today(), self.btc_usd, "stub")


class FailingSource:
    def monthly_transactions(self, kind, year, month):
        raise UpstreamApiError("API Error: 503 Service Unavailable")

    def card_statement(self, year, month):
        raise UpstreamApiError("API Error: 503 Service Unavailable")

    def net_worth(self, year=None, month=None):
        raise UpstreamApiError("API Error: 503 Service Unavailable")


@pytest.fixture
def service(repository):
    return DashboardService(DemoDataSource(), repository)


def test_months_back_crosses_year_boundary():
    assert months_back(2025, 2, 6) == [(2024, 9), (2024, 10), (2024, 11), (2024, 12), (2025, 1), (2025, 2)]
    assert months_back(2025, 12, 1) == [(2025, 12)]


def test_demo_data_is_deterministic():
    source = DemoDataSource()

    assert source.monthly_transactions(TransactionKind.EXPENSE, 2025, 3) == source.monthly_transactions(
        TransactionKind.EXPENSE, 2025, 3
    )
    assert source.net_worth(2025, 3) == source.net_worth(2025, 3)
    assert source.net_worth(2025, 3).date == "2025-03-01"


def test_monthly_list_with_filters(service):
    payload = service.monthly_list(TransactionKind.EXPENSE, 2025, 3, text="carrefour", sort_by="amount", order="asc")

    assert payload["totals"]["count"] == 11
    assert payload["filtered"] == {"active": True, "total": payload["items"][0]["amount"], "count": 1}
    assert payload["items"][0]["description"] == "Supermercado Carrefour"
    assert sum(item["percentage"] for item in payload["breakdown"]) == pytest.approx(100)


def test_savings_list_flags_mixed_currency(service):
    payload = service.monthly_list(TransactionKind.SAVING, 2025, 3)

    assert payload["mixed_currency"]
    assert payload["currencies"] == ["ARS", "USD"]


def test_monthly_summary_balance(service):
    summary = service.monthly_summary(2025, 3)

    assert summary["balance"] == pytest.approx(
        summary["total_income"] - summary["total_expenses"] - summary["total_savings"]
    )
    assert len(summary["top_categories"]) == 5
    assert summary["top_categories"][0]["category"] == "Casa"


def test_annual_summary_totals(service):
    annual = service.annual_summary(2025)

    assert [row["month_name"] for row in annual["months"]][:3] == ["Ene", "Feb", "Mar"]
    assert annual["totals"]["income"] == pytest.approx(sum(row["income"] for row in annual["months"]))


def test_evolution_range(service):
    evolution = service.evolution(2025, 2, "6m")

    assert [row["date"] for row in evolution["data"]] == [
        "2024-09-01",
        "2024-10-01",
        "2024-11-01",
        "2024-12-01",
        "2025-01-01",
        "2025-02-01",
    ]
    assert evolution["data"][-1]["month"] == "Feb 2025"
    assert all(row["net_worth"] is not None for row in evolution["data"])
    with pytest.raises(ValueError):
        service.evolution(2025, 2, "5m")


def test_card_statement_view_reports_ending_installments(service):
    view = service.card_statement_view(2025, 5)

    assert sorted(item["description"] for item in view["ending_installments"]) == [
        "MERCADOLIBRE MONITOR C.06/06",
        "TECLADO MECANICO C.03/03",
    ]
    assert view["visa"]["usd_total"] == pytest.approx(12.99)
    assert view["mastercard"]["usd_total"] == pytest.approx(9.99)
    assert not view["visa"]["rate_was_missing"]
    assert view["total"] == pytest.approx(view["visa"]["total"] + view["mastercard"]["total"])


def test_card_statement_view_filters(service):
    view = service.card_statement_view(2025, 5, holder="MARIA GOMEZ", payment_type="one-time")

    holders = {item["holder"] for item in view["visa"]["items"] + view["mastercard"]["items"]}
    assert holders == {"MARIA GOMEZ"}
    assert not any(item["is_installment"] for item in view["visa"]["items"])
    assert view["visa"]["holders"] == ["JUAN PEREZ", "MARIA GOMEZ"]


def test_saved_payment_fx_overrides_statement_rate(service):
    service.save_card_payment_fx(2025, 5, 1300)

    statement = service.card_statement(2025, 5)

    assert statement.conversion_amount == 1300
    with pytest.raises(ValueError):
        service.save_card_payment_fx(2025, 5, 0)


def test_card_trend_covers_the_year(service):
    trend = service.card_trend(2025)

    assert [row["month"] for row in trend["series"]] == list(range(1, 13))
    assert len(trend["per_month_delta"]) == 11
    assert trend["trend_label"] in {"Savings", "Spending", "Neutral"}


def test_budget_objectives_round_trip(service):
    assert service.budget_objectives().to_payload() == {"regular": 50.0, "unusual": 30.0, "savings": 20.0}

    service.update_budget_objectives({"regular": 40, "unusual": 40, "savings": 20})
    with pytest.raises(InvalidBudgetObjective):
        service.update_budget_objectives({"regular": 60, "unusual": 30, "savings": 5})

    assert service.reconciliation(2025, 3)["objectives"] == {"regular": 40.0, "unusual": 40.0, "savings": 20.0}


def test_reconciliation_on_demo_data(service):
    payload = service.reconciliation(2025, 3)

    assert payload["has_data"]
    assert not payload["income_estimated"]
    assert payload["buckets"]["Unusual"]["real"] > 0


def test_failing_source_yields_no_data(repository):
    service = DashboardService(FailingSource(), repository)

    listing = service.monthly_list(TransactionKind.EXPENSE, 2025, 3)
    assert listing["items"] == []
    assert listing["totals"] == {"total": 0.0, "count": 0}
    assert service.card_statement_view(2025, 3) is None
    assert service.net_worth() is None
    assert not service.reconciliation(2025, 3)["has_data"]
    assert service.card_trend(2025)["trend_label"] == "Neutral"


def test_exchange_rates_fall_back_to_stored_values(repository):
    live = DashboardService(DemoDataSource(), repository, price_service=StubPriceService(1200, 95000))
    assert live.exchange_rates() == {"dolar_blue": 1200, "btc_usd": 95000}

    offline = DashboardService(DemoDataSource(), repository, price_service=StubPriceService())
    assert offline.exchange_rates() == {"dolar_blue": 1200, "btc_usd": 95000}


def test_exchange_rates_without_price_service(service):
    assert service.exchange_rates() == {"dolar_blue": None, "btc_usd": None}


def test_net_worth_revalues_bitcoin(repository):
    service = DashboardService(
        DemoDataSource(),
        repository,
        price_service=StubPriceService(dolar_blue=1000, btc_usd=100000),
        btc_holdings=0.01,
    )

    payload = service.net_worth()

    bitcoin = next(asset for asset in payload["assets"] if asset["name"].startswith("Bitcoin"))
    assert bitcoin == {"name": "Bitcoin (0.01 BTC)", "value": 1_000_000, "category": "Inversiones"}
    assert payload["net_worth"] == pytest.approx(payload["total_assets"] - payload["total_debts"])
    assert payload["total_debts"] == 2_800_000


def test_revalue_bitcoin_keeps_snapshot_without_prices():
    snapshot = NetWorthSnapshot(date="2025-03-01", assets=[Holding("Bitcoin", 950000, "Inversiones")])

    assert revalue_bitcoin(snapshot, None, 1000, 0.5) is snapshot
    assert revalue_bitcoin(snapshot, 90000, 1000, 0) is snapshot


@pytest.mark.parametrize("rate", [float("nan"), float("inf"), -1.0, None])
def test_unusable_payment_fx_is_rejected_and_not_stored(service, rate):
    with pytest.raises(ValueError):
        service.save_card_payment_fx(2025, 5, rate)

    assert service.card_statement(2025, 5).conversion_amount == 1005


def test_category_options_follow_the_data_without_a_catalogue(service):
    categories = service.monthly_list(TransactionKind.EXPENSE, 2025, 3)["categories"]

    assert categories[:3] == ["Casa", "Comida", "Transporte"]
    assert "Boludeces" in categories
    assert "Ropa" not in categories


def test_category_options_use_the_configured_catalogue(repository):
    service = DashboardService(DemoDataSource(), repository, categories=CATEGORIES)

    assert service.monthly_list(TransactionKind.INCOME, 2025, 3)["categories"] == CATEGORIES[TransactionKind.INCOME]


def test_imported_transactions_join_the_month(service, tmp_path):
    export = tmp_path / "banco.csv"
    export.write_text(
        "Fecha,Importe,Categoría,Descripción,ID\n"
        '03/03/2025,"1,250.50",Sueldo,Bono,bono-1\n'
        "2025-02-27,900,Sueldo,Adelanto,adelanto-1\n",
        encoding="utf-8",
    )

    assert service.import_transactions(export, default_kind=TransactionKind.INCOME) == 2
    assert service.import_transactions(export, default_kind=TransactionKind.INCOME) == 2

    march = service.transactions(TransactionKind.INCOME, 2025, 3)
    imported = [tx for tx in march if tx.id == "bono-1"]
    assert len(march) == 3
    assert imported[0].amount == pytest.approx(1250.5)
    assert service.transactions(TransactionKind.EXPENSE, 2025, 3) == DemoDataSource().monthly_transactions(
        TransactionKind.EXPENSE, 2025, 3
    )


def test_imported_transactions_survive_upstream_failure(repository, make_transaction):
    repository.upsert_transactions([make_transaction(300, "Casa", date="2025-03-10")])

    service = DashboardService(FailingSource(), repository)

    assert [tx.amount for tx in service.transactions(TransactionKind.EXPENSE, 2025, 3)] == [300]
