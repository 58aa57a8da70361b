"""Tests for bucket classification and budget reconciliation."""

from __future__ import annotations

import pytest

from budget_dash.budget import BudgetReconciler, TableClassifier, classify_category
from budget_dash.models import BudgetBucket, BudgetObjective


@pytest.mark.parametrize(
    ("category", "bucket"),
    [
        ("Boludeces", BudgetBucket.UNUSUAL),
        ("Gastos inusuales", BudgetBucket.UNUSUAL),
        ("Ahorro Plazo Fijo", BudgetBucket.SAVINGS),
        ("Savings account", BudgetBucket.SAVINGS),
        ("Supermercado", BudgetBucket.REGULAR),
        ("", BudgetBucket.REGULAR),
        ("Ahorro en boludeces", BudgetBucket.UNUSUAL),
    ],
)
def test_classify_category(category, bucket):
    assert classify_category(category) is bucket


def test_table_classifier_overrides_and_falls_back():
    classifier = TableClassifier({"Viajes": "Unusual", "crypto": BudgetBucket.SAVINGS})

    assert classifier("viajes") is BudgetBucket.UNUSUAL
    assert classifier("Crypto") is BudgetBucket.SAVINGS
    assert classifier("Boludeces") is BudgetBucket.UNUSUAL
    assert classifier("Casa") is BudgetBucket.REGULAR


def test_reconcile_against_real_income(make_transaction):
    expenses = [
        make_transaction(40000, "Supermercado"),
        make_transaction(10000, "Casa"),
        make_transaction(45000, "Boludeces"),
        make_transaction(5000, "Ahorro Plazo Fijo"),
    ]

    result = BudgetReconciler().reconcile(expenses, 100000, BudgetObjective())

    assert result.has_data
    assert not result.income_estimated
    assert result.income_base == 100000

    regular = result.buckets[BudgetBucket.REGULAR]
    unusual = result.buckets[BudgetBucket.UNUSUAL]
    savings = result.buckets[BudgetBucket.SAVINGS]
    assert (regular.real, regular.target) == (50000, 50000)
    assert not regular.is_over
    assert regular.percent_of_target == pytest.approx(100)
    assert (unusual.real, unusual.target) == (45000, 30000)
    assert unusual.is_over
    assert unusual.percent_of_target == pytest.approx(150)
    assert (savings.real, savings.target) == (5000, 20000)
    assert savings.percent_of_target == pytest.approx(25)


def test_reconcile_estimates_income_when_missing(make_transaction):
    expenses = [make_transaction(60000, "Casa"), make_transaction(40000, "Boludeces")]

    for income in (None, 0):
        result = BudgetReconciler().reconcile(expenses, income, BudgetObjective())

        assert result.has_data
        assert result.income_estimated
        assert result.income_base == pytest.approx(150000)
        assert result.buckets[BudgetBucket.REGULAR].target == pytest.approx(75000)


def test_reconcile_without_any_data():
    result = BudgetReconciler().reconcile([], 0, BudgetObjective())

    assert not result.has_data
    assert result.income_estimated
    assert set(result.buckets) == set(BudgetBucket)
    for comparison in result.buckets.values():
        assert comparison.real == 0
        assert comparison.target == 0
        assert comparison.percent_of_target == 0
        assert not comparison.is_over


def test_zero_target_reports_zero_percent(make_transaction):
    objectives = BudgetObjective(regular=80, unusual=0, savings=20)

    result = BudgetReconciler().reconcile([make_transaction(100, "Boludeces")], 1000, objectives)

    unusual = result.buckets[BudgetBucket.UNUSUAL]
    assert unusual.target == 0
    assert unusual.percent_of_target == 0
    assert unusual.is_over


def test_reconciler_uses_injected_classifier(make_transaction):
    reconciler = BudgetReconciler(classifier=TableClassifier({"Viajes": BudgetBucket.UNUSUAL}))

    real = reconciler.real_by_bucket([make_transaction(100, "Viajes"), make_transaction(50, "Casa")])

    assert real == {BudgetBucket.REGULAR: 50, BudgetBucket.UNUSUAL: 100, BudgetBucket.SAVINGS: 0}


def test_reconciliation_payload_uses_bucket_names(make_transaction):
    payload = BudgetReconciler().reconcile([make_transaction(10, "Casa")], 100, BudgetObjective()).to_payload()

    assert set(payload["buckets"]) == {"Regular", "Unusual", "Savings"}
    assert payload["buckets"]["Regular"]["target"] == 50
