from __future__ import annotations

import pytest

from forecast_engine.accuracy import (
    ForecastAccuracy,
    accuracy_frame,
    accuracy_grade,
    accuracy_insights,
    accuracy_trend,
    assess_accuracy,
    calculate_mape,
    confidence_score,
    identify_accuracy_risks,
    portfolio_accuracy,
    score_periods,
)
from forecast_engine.reconcile import run_analysis


def _accuracy(mape: float, trend: str = "stable", metric: str = "revenue", rows=None, project_id: str = "p1"):
    periods = score_periods(rows or [(1, "Month 1", 100.0, 100.0), (2, "Month 2", 100.0, 100.0)])
    return ForecastAccuracy(
        project_id=project_id,
        metric=metric,
        periods=periods,
        overall_mape=mape,
        trend=trend,
        confidence_score=confidence_score(mape, trend),
    )


def test_mape_skips_zero_actuals():
    assert calculate_mape([100, 200], [110, 0]) == pytest.approx(10 / 110 * 100)
    assert calculate_mape([], []) == 0.0
    assert calculate_mape([1, 2], [1]) == 0.0
    assert calculate_mape([5], [0]) == 0.0


@pytest.mark.parametrize(
    "pct,grade",
    [(0, "A"), (10, "A"), (10.01, "B"), (20, "B"), (30, "C"), (40, "D"), (40.5, "F")],
)
def test_accuracy_grade_boundaries(pct, grade):
    assert accuracy_grade(pct) == grade


def test_trend_needs_three_periods():
    periods = score_periods([(1, "Month 1", 100, 50), (2, "Month 2", 100, 100)])
    assert accuracy_trend(periods) == "stable"


def test_trend_improving_and_declining():
    # Errors of 30% then 10% across the last six periods.
    bad = [(i, f"Month {i}", 130.0, 100.0) for i in range(1, 4)]
    good = [(i, f"Month {i}", 110.0, 100.0) for i in range(4, 7)]
    assert accuracy_trend(score_periods(bad + good)) == "improving"
    assert accuracy_trend(score_periods(good + bad)) == "declining"
    assert accuracy_trend(score_periods(good + good)) == "stable"


def test_trend_uses_last_six_periods():
    old_bad = [(i, f"Month {i}", 200.0, 100.0) for i in range(1, 4)]
    steady = [(i, f"Month {i}", 110.0, 100.0) for i in range(4, 10)]
    assert accuracy_trend(score_periods(old_bad + steady)) == "stable"


def test_confidence_score():
    assert confidence_score(10, "stable") == 80
    assert confidence_score(10, "improving") == 90
    assert confidence_score(2, "improving") == 100
    assert confidence_score(50, "declining") == 0
    assert confidence_score(12.3, "stable") == 75


def test_assess_accuracy_from_reconciliation(monthly_raw):
    actuals = [
        {"period": 1, "revenueActuals": {"Subscriptions": 1900}},
        {"period": 2, "revenueActuals": {"Subscriptions": 1000}},
    ]
    accuracy = assess_accuracy(run_analysis(monthly_raw, actuals), metric="revenue", project_id="demo")
    assert accuracy is not None
    assert accuracy.project_id == "demo"
    assert [p.period for p in accuracy.periods] == [1, 2]
    expected = (400 / 1900 * 100 + 100 / 1000 * 100) / 2
    assert accuracy.overall_mape == pytest.approx(expected)
    assert accuracy.trend == "stable"
    assert accuracy.confidence_score == round(100 - 2 * expected)
    assert accuracy.risk_flags == []


def test_assess_accuracy_needs_two_periods(monthly_raw):
    result = run_analysis(monthly_raw, [{"period": 1, "revenueActuals": {"Subscriptions": 1}}])
    assert assess_accuracy(result) is None


def test_risk_flags_for_poor_declining_overestimated_forecast():
    rows = [(i, f"Month {i}", 200.0, 100.0) for i in range(1, 6)]
    flags = identify_accuracy_risks(_accuracy(35.0, "declining", rows=rows))
    assert [(f.risk_category, f.severity, f.confidence) for f in flags] == [
        ("financial_unit_economics", "high", 90),
        ("execution_delivery", "medium", 80),
        ("strategic_scaling", "medium", 85),
    ]
    assert "100% of periods" in flags[-1].description


def test_risk_flags_for_moderate_underestimated_forecast():
    rows = [(i, f"Month {i}", 80.0, 100.0) for i in range(1, 6)]
    flags = identify_accuracy_risks(_accuracy(25.0, rows=rows))
    assert [(f.severity, f.confidence) for f in flags] == [("medium", 85), ("low", 75)]


def test_insights_and_portfolio_rollup():
    good = _accuracy(5.0, "improving", project_id="a")
    poor = _accuracy(30.0, "declining", project_id="b")
    costs = _accuracy(50.0, "declining", metric="costs", project_id="b")

    insights = accuracy_insights([good, poor])
    assert [(i.project_id, i.priority) for i in insights] == [
        ("a", "low"),
        ("b", "high"),
        ("a", "medium"),
        ("b", "high"),
    ]

    rollup = portfolio_accuracy([good, poor, costs])
    assert rollup["overall_mape"] == pytest.approx(17.5)
    assert rollup["projects_analyzed"] == 2
    assert rollup["projects_with_poor_accuracy"] == 1
    assert rollup["trend"] == "improving"


def test_portfolio_without_revenue_accuracy():
    rollup = portfolio_accuracy([])
    assert rollup["trend"] == "stable"
    assert rollup["projects_analyzed"] == 0


def test_accuracy_frame():
    df = accuracy_frame(_accuracy(0.0))
    assert list(df.columns) == ["Period", "Label", "Projected", "Actual", "Absolute Error", "Percentage Error", "Grade"]
    assert df["Grade"].tolist() == ["A", "A"]
