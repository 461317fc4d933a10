"""Forecast accuracy scoring: MAPE, trend, grade, confidence and risk flags."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Sequence

import pandas as pd

from forecast_engine.reconcile import ReconciliationResult


Metric = Literal["revenue", "costs", "profit"]
Trend = Literal["improving", "stable", "declining"]
Grade = Literal["A", "B", "C", "D", "F"]

MIN_PERIODS_FOR_ACCURACY = 2
TREND_WINDOW = 6
TREND_THRESHOLD_PCT = 5.0
POOR_ACCURACY_MAPE = 25.0
EXCELLENT_ACCURACY_MAPE = 10.0
BIAS_SHARE = 0.8

_METRIC_FIELDS = {
    "revenue": ("forecast_revenue", "actual_revenue"),
    "costs": ("forecast_cost", "actual_cost"),
    "profit": ("forecast_profit", "actual_profit"),
}


@dataclass(frozen=True)
class AccuracyPeriod:
    period: int
    label: str
    projected: float
    actual: float
    absolute_error: float
    percentage_error: float
    grade: Grade


@dataclass(frozen=True)
class RiskFlag:
    risk_category: str
    severity: Literal["low", "medium", "high", "critical"]
    description: str
    suggested_action: str
    data_source: str
    confidence: int


@dataclass(frozen=True)
class ForecastAccuracy:
    project_id: str
    metric: Metric
    periods: list[AccuracyPeriod]
    overall_mape: float
    trend: Trend
    confidence_score: int
    risk_flags: list[RiskFlag] = field(default_factory=list)


@dataclass(frozen=True)
class AccuracyInsight:
    project_id: str
    metric: str
    insight: str
    recommendation: str
    priority: Literal["low", "medium", "high"]


def calculate_mape(projected: Sequence[float], actual: Sequence[float]) -> float:
    """Mean absolute percentage error, skipping periods whose actual is zero.

    Returns 0.0 for empty or mismatched inputs, or when every actual is zero.
    """
    if len(projected) != len(actual) or not projected:
        return 0.0
    errors = [abs((a - p) / a) * 100.0 for p, a in zip(projected, actual) if a != 0]
    return sum(errors) / len(errors) if errors else 0.0


def accuracy_grade(pct_error: float) -> Grade:
    if pct_error <= 10:
        return "A"
    if pct_error <= 20:
        return "B"
    if pct_error <= 30:
        return "C"
    if pct_error <= 40:
        return "D"
    return "F"


def accuracy_trend(periods: Sequence[AccuracyPeriod]) -> Trend:
    if len(periods) < 3:
        return "stable"
    recent = list(periods)[-TREND_WINDOW:]
    half = len(recent) // 2
    first = recent[:half]
    second = recent[half:]
    first_avg = sum(p.percentage_error for p in first) / len(first)
    second_avg = sum(p.percentage_error for p in second) / len(second)
    if second_avg < first_avg - TREND_THRESHOLD_PCT:
        return "improving"
    if second_avg > first_avg + TREND_THRESHOLD_PCT:
        return "declining"
    return "stable"


def confidence_score(mape: float, trend: Trend) -> int:
    score = max(0.0, 100.0 - mape * 2.0)
    if trend == "improving":
        score = min(100.0, score + 10.0)
    elif trend == "declining":
        score = max(0.0, score - 15.0)
    # Half-up so 72.5 scores 73.
    return int(score + 0.5)


def score_periods(rows: Sequence[tuple[int, str, float, float]]) -> list[AccuracyPeriod]:
    out: list[AccuracyPeriod] = []
    for period, label, projected, actual in rows:
        absolute_error = abs(actual - projected)
        pct_error = absolute_error / abs(actual) * 100.0 if actual != 0 else 0.0
        out.append(
            AccuracyPeriod(
                period=period,
                label=label,
                projected=float(projected),
                actual=float(actual),
                absolute_error=float(absolute_error),
                percentage_error=float(pct_error),
                grade=accuracy_grade(pct_error),
            )
        )
    return out


def identify_accuracy_risks(accuracy: ForecastAccuracy) -> list[RiskFlag]:
    risks: list[RiskFlag] = []
    mape = accuracy.overall_mape
    if mape > 30:
        risks.append(
            RiskFlag(
                risk_category="financial_unit_economics",
                severity="high",
                description=f"Poor forecast accuracy ({mape:.1f}% MAPE) for {accuracy.metric}",
                suggested_action="Review forecasting methodology and assumptions",
                data_source="forecast_accuracy_analysis",
                confidence=90,
            )
        )
    elif mape > 20:
        risks.append(
            RiskFlag(
                risk_category="financial_unit_economics",
                severity="medium",
                description=f"Moderate forecast accuracy issues ({mape:.1f}% MAPE) for {accuracy.metric}",
                suggested_action="Monitor forecast assumptions and adjust if needed",
                data_source="forecast_accuracy_analysis",
                confidence=85,
            )
        )

    if accuracy.trend == "declining":
        risks.append(
            RiskFlag(
                risk_category="execution_delivery",
                severity="medium",
                description=f"Forecast accuracy is declining for {accuracy.metric}",
                suggested_action="Investigate root causes of declining prediction reliability",
                data_source="forecast_trend_analysis",
                confidence=80,
            )
        )

    total = len(accuracy.periods)
    over = sum(1 for p in accuracy.periods if p.projected > p.actual)
    under = sum(1 for p in accuracy.periods if p.projected < p.actual)
    if total and over > total * BIAS_SHARE:
        risks.append(
            RiskFlag(
                risk_category="strategic_scaling",
                severity="medium",
                description=f"Consistent overestimation of {accuracy.metric} ({over / total * 100:.0f}% of periods)",
                suggested_action="Adjust forecasting to be more conservative",
                data_source="forecast_bias_analysis",
                confidence=85,
            )
        )
    elif total and under > total * BIAS_SHARE:
        risks.append(
            RiskFlag(
                risk_category="strategic_scaling",
                severity="low",
                description=f"Consistent underestimation of {accuracy.metric} ({under / total * 100:.0f}% of periods)",
                suggested_action="Review if growth opportunities are being missed",
                data_source="forecast_bias_analysis",
                confidence=75,
            )
        )
    return risks


def assess_accuracy(
    result: ReconciliationResult,
    metric: Metric = "revenue",
    project_id: str = "",
) -> ForecastAccuracy | None:
    """Score forecast accuracy over the periods that carry actuals.

    Returns None when fewer than two periods have actuals.
    """
    forecast_field, actual_field = _METRIC_FIELDS[metric]
    rows = [
        (p.period, p.label, float(getattr(p, forecast_field)), float(getattr(p, actual_field)))
        for p in result.periods
        if p.has_actuals and getattr(p, actual_field) is not None
    ]
    if len(rows) < MIN_PERIODS_FOR_ACCURACY:
        return None

    periods = score_periods(rows)
    mape = calculate_mape([p.projected for p in periods], [p.actual for p in periods])
    trend = accuracy_trend(periods)
    accuracy = ForecastAccuracy(
        project_id=project_id,
        metric=metric,
        periods=periods,
        overall_mape=mape,
        trend=trend,
        confidence_score=confidence_score(mape, trend),
    )
    return replace(accuracy, risk_flags=identify_accuracy_risks(accuracy))


def accuracy_insights(accuracies: Sequence[ForecastAccuracy]) -> list[AccuracyInsight]:
    insights: list[AccuracyInsight] = []
    for a in accuracies:
        if a.overall_mape < EXCELLENT_ACCURACY_MAPE:
            insights.append(
                AccuracyInsight(
                    project_id=a.project_id,
                    metric=a.metric,
                    insight=f"Excellent forecast accuracy ({a.overall_mape:.1f}% MAPE)",
                    recommendation="Maintain current forecasting approach",
                    priority="low",
                )
            )
    for a in accuracies:
        if a.overall_mape > POOR_ACCURACY_MAPE:
            insights.append(
                AccuracyInsight(
                    project_id=a.project_id,
                    metric=a.metric,
                    insight=f"Poor forecast accuracy ({a.overall_mape:.1f}% MAPE) requires attention",
                    recommendation="Schedule forecast methodology review with project team",
                    priority="high",
                )
            )
    for a in accuracies:
        if a.trend == "improving":
            insights.append(
                AccuracyInsight(
                    project_id=a.project_id,
                    metric=a.metric,
                    insight="Forecast accuracy is improving",
                    recommendation="Document successful changes to forecasting approach",
                    priority="medium",
                )
            )
    for a in accuracies:
        if a.trend == "declining":
            insights.append(
                AccuracyInsight(
                    project_id=a.project_id,
                    metric=a.metric,
                    insight="Forecast accuracy is declining and needs intervention",
                    recommendation="Investigate changes in market conditions or project assumptions",
                    priority="high",
                )
            )
    return insights


def portfolio_accuracy(accuracies: Sequence[ForecastAccuracy]) -> dict:
    """Roll revenue accuracy up across projects.

    The portfolio trend is the most common revenue trend; ties resolve in the
    order improving, stable, declining.
    """
    revenue = [a for a in accuracies if a.metric == "revenue"]
    if not revenue:
        return {
            "overall_mape": 0.0,
            "trend": "stable",
            "confidence_score": 0,
            "projects_analyzed": 0,
            "projects_with_poor_accuracy": 0,
            "insights": accuracy_insights(accuracies),
        }
    overall = sum(a.overall_mape for a in revenue) / len(revenue)
    counts = {"improving": 0, "stable": 0, "declining": 0}
    for a in revenue:
        counts[a.trend] += 1
    trend = max(counts, key=counts.get)
    return {
        "overall_mape": overall,
        "trend": trend,
        "confidence_score": confidence_score(overall, trend),
        "projects_analyzed": len(revenue),
        "projects_with_poor_accuracy": sum(1 for a in revenue if a.overall_mape > POOR_ACCURACY_MAPE),
        "insights": accuracy_insights(accuracies),
    }


def accuracy_frame(accuracy: ForecastAccuracy) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Period": p.period,
                "Label": p.label,
                "Projected": p.projected,
                "Actual": p.actual,
                "Absolute Error": p.absolute_error,
                "Percentage Error": p.percentage_error,
                "Grade": p.grade,
            }
            for p in accuracy.periods
        ]
    )
