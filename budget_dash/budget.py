"""Budget reconciliation: realised spending per bucket against income targets."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional

from .models import BudgetBucket, BudgetObjective, Transaction

logger = logging.getLogger(__name__)

# Multiplier applied to total expenses when no income figure is available.
ESTIMATED_INCOME_FACTOR = 1.5

Classifier = Callable[[str], BudgetBucket]


def classify_category(category: str) -> BudgetBucket:
    """Map a free-text category onto a budget bucket by substring match.

    ``bolud``/``inusual`` wins over ``ahorro``/``saving``; every other category
    is regular spending.  Unanticipated synonyms land in ``REGULAR``.
    """

    lowered = (category or "").lower()
    if "bolud" in lowered or "inusual" in lowered:
        return BudgetBucket.UNUSUAL
    if "ahorro" in lowered or "saving" in lowered:
        return BudgetBucket.SAVINGS
    return BudgetBucket.REGULAR


class TableClassifier:
    """Explicit category to bucket table, falling back to another classifier."""

    def __init__(
        self,
        table: Mapping[str, BudgetBucket | str],
        fallback: Classifier = classify_category,
    ) -> None:
        self._table = {key.lower(): BudgetBucket(value) for key, value in table.items()}
        self._fallback = fallback

    def __call__(self, category: str) -> BudgetBucket:
        bucket = self._table.get((category or "").lower())
        if bucket is not None:
            return bucket
        return self._fallback(category)


@dataclass(slots=True, frozen=True)
class BucketComparison:
    real: float
    target: float
    percent_of_target: float
    is_over: bool


@dataclass(slots=True)
class Reconciliation:
    """Per-bucket comparison plus the income base it was computed against.

    ``income_estimated`` marks results whose base is the expense-derived
    estimate rather than a real income figure.
    """

    buckets: dict[BudgetBucket, BucketComparison] = field(default_factory=dict)
    income_base: float = 0.0
    income_estimated: bool = False
    has_data: bool = False

    def to_payload(self) -> dict[str, object]:
        return {
            "income_base": self.income_base,
            "income_estimated": self.income_estimated,
            "has_data": self.has_data,
            "buckets": {
                bucket.value: {
                    "real": comparison.real,
                    "target": comparison.target,
                    "percent_of_target": comparison.percent_of_target,
                    "is_over": comparison.is_over,
                }
                for bucket, comparison in self.buckets.items()
            },
        }


class BudgetReconciler:
    """Compare expenses against a :class:`BudgetObjective` split of income."""

    def __init__(self, classifier: Classifier = classify_category) -> None:
        self._classifier = classifier

    def classify(self, category: str) -> BudgetBucket:
        return self._classifier(category)

    def real_by_bucket(self, expenses: Optional[Iterable[Transaction]]) -> dict[BudgetBucket, float]:
        totals = {bucket: 0.0 for bucket in BudgetBucket}
        for expense in expenses or []:
            totals[self.classify(expense.category)] += expense.amount
        return totals

    def reconcile(
        self,
        expenses: Optional[Iterable[Transaction]],
        total_income: Optional[float],
        objectives: BudgetObjective,
    ) -> Reconciliation:
        real = self.real_by_bucket(expenses)
        total_expenses = sum(real.values())

        income_estimated = not (total_income and total_income > 0)
        if income_estimated:
            income_base = total_expenses * ESTIMATED_INCOME_FACTOR if total_expenses > 0 else 0.0
        else:
            income_base = float(total_income)

        if total_expenses == 0 and income_base == 0:
            empty = BucketComparison(real=0.0, target=0.0, percent_of_target=0.0, is_over=False)
            return Reconciliation(
                buckets={bucket: empty for bucket in BudgetBucket},
                income_estimated=income_estimated,
            )

        if income_estimated:
            logger.info("No income available, estimating income base as %.2f", income_base)

        buckets = {}
        for bucket in BudgetBucket:
            target = income_base * objectives.percentage_for(bucket) / 100
            buckets[bucket] = BucketComparison(
                real=real[bucket],
                target=target,
                percent_of_target=(real[bucket] / target * 100) if target > 0 else 0.0,
                is_over=real[bucket] > target,
            )
        return Reconciliation(
            buckets=buckets,
            income_base=income_base,
            income_estimated=income_estimated,
            has_data=True,
        )
