"""Month-over-month trend analysis over card spending totals.

The series tracks a cost, so a falling total is good news: a negative average
delta is labelled :attr:`TrendLabel.SAVINGS` and a rising one
:attr:`TrendLabel.SPENDING`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import CardStatement, MonthlyAggregate, TrendLabel

TREND_FIELDS = ("total", "visa_total", "mastercard_total")


@dataclass(slots=True, frozen=True)
class MonthDelta:
    month: int
    delta: float
    percent_change: Optional[float]
    direction: TrendLabel


@dataclass(slots=True)
class TrendResult:
    per_month_delta: list[MonthDelta] = field(default_factory=list)
    average_delta: float = 0.0
    average_percent_change: float = 0.0
    trend_label: TrendLabel = TrendLabel.NEUTRAL

    def to_payload(self) -> dict[str, object]:
        return {
            "per_month_delta": [
                {
                    "month": item.month,
                    "delta": item.delta,
                    "percent_change": item.percent_change,
                    "direction": item.direction.value,
                }
                for item in self.per_month_delta
            ],
            "average_delta": self.average_delta,
            "average_percent_change": self.average_percent_change,
            "trend_label": self.trend_label.value,
        }


def label_for(delta: float) -> TrendLabel:
    if delta < 0:
        return TrendLabel.SAVINGS
    if delta > 0:
        return TrendLabel.SPENDING
    return TrendLabel.NEUTRAL


class TrendAnalyzer:
    """Compute deltas against the immediately preceding month."""

    @staticmethod
    def compute_trend(
        monthly_series: Optional[Iterable[MonthlyAggregate]],
        field_name: str = "total",
    ) -> TrendResult:
        if field_name not in TREND_FIELDS:
            raise ValueError(f"Unsupported trend field {field_name!r}; expected one of {TREND_FIELDS}")

        series = sorted(monthly_series or [], key=lambda item: item.month)
        if len(series) < 2:
            return TrendResult()

        deltas: list[MonthDelta] = []
        for previous, current in zip(series, series[1:]):
            previous_value = getattr(previous, field_name)
            delta = getattr(current, field_name) - previous_value
            percent_change = delta / previous_value * 100 if previous_value != 0 else None
            deltas.append(
                MonthDelta(
                    month=current.month,
                    delta=delta,
                    percent_change=percent_change,
                    direction=label_for(delta),
                )
            )

        average_delta = sum(item.delta for item in deltas) / len(deltas)
        percent_changes = [item.percent_change for item in deltas if item.percent_change is not None]
        average_percent_change = sum(percent_changes) / len(percent_changes) if percent_changes else 0.0

        return TrendResult(
            per_month_delta=deltas,
            average_delta=average_delta,
            average_percent_change=average_percent_change,
            trend_label=label_for(average_delta),
        )

    @staticmethod
    def monthly_aggregates(statements: Iterable[Optional[CardStatement]]) -> list[MonthlyAggregate]:
        """Build the month-ordered series from card statements; missing months are skipped."""

        aggregates = []
        for statement in statements:
            if statement is None:
                continue
            visa_total = sum(item.amount for item in statement.visa)
            mastercard_total = sum(item.amount for item in statement.mastercard)
            aggregates.append(
                MonthlyAggregate(
                    month=statement.month,
                    total=visa_total + mastercard_total,
                    visa_total=visa_total,
                    mastercard_total=mastercard_total,
                )
            )
        aggregates.sort(key=lambda item: item.month)
        return aggregates
