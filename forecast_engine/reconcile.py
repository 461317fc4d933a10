"""Overlay recorded actuals on a forecast series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import pandas as pd

from forecast_engine.metrics import _safe_div, find_break_even
from forecast_engine.model import PeriodRecord, run_forecast
from forecast_engine.runtime_logging import ACTUALS_NORMALIZATION, log_warnings
from forecast_engine.schema import ActualsEntry, ModelAssumptions, normalize_actuals


@dataclass(frozen=True)
class ReconciledPeriod:
    """Forecast, actual and revised figures for one period.

    Actual fields are None when the period has no actuals entry; variance
    percents are None when the forecast side is zero.
    """

    period: int
    label: str
    has_actuals: bool
    forecast_revenue: int
    forecast_cost: int
    forecast_profit: int
    cumulative_forecast_revenue: int
    cumulative_forecast_cost: int
    cumulative_forecast_profit: int
    forecast_attendance: int | None
    actual_revenue: float | None
    actual_cost: float | None
    actual_profit: float | None
    actual_attendance: float | None
    cumulative_actual_revenue: float | None
    cumulative_actual_cost: float | None
    cumulative_actual_profit: float | None
    revenue_variance: float | None
    cost_variance: float | None
    profit_variance: float | None
    revenue_variance_percent: float | None
    cost_variance_percent: float | None
    profit_variance_percent: float | None
    attendance_variance: float | None
    revised_revenue: float
    revised_cost: float
    revised_profit: float
    cumulative_revised_revenue: float
    cumulative_revised_cost: float
    cumulative_revised_profit: float


@dataclass(frozen=True)
class ReconciliationSummary:
    forecast_revenue: float
    forecast_cost: float
    forecast_profit: float
    forecast_margin_pct: float
    period_forecast_revenue: float
    period_forecast_cost: float
    period_forecast_profit: float
    actual_revenue: float
    actual_cost: float
    actual_profit: float
    actual_margin_pct: float
    periods_with_actuals: int
    latest_actual_period: int | None
    revised_revenue: float
    revised_cost: float
    revised_profit: float
    revised_margin_pct: float
    revenue_variance: float
    cost_variance: float
    profit_variance: float
    period_revenue_variance: float
    period_cost_variance: float
    period_profit_variance: float
    period_revenue_variance_pct: float | None
    period_cost_variance_pct: float | None
    period_profit_variance_pct: float | None
    forecast_attendance: int | None
    actual_attendance: float | None
    attendance_variance: float | None
    forecast_break_even_period: int | None
    actual_break_even_period: int | None
    revised_break_even_period: int | None


@dataclass(frozen=True)
class ReconciliationResult:
    periods: list[ReconciledPeriod]
    summary: ReconciliationSummary
    warnings: list[str]


def variance_percent(variance: float, forecast: float) -> float | None:
    if not forecast:
        return None
    return float(variance) / float(forecast) * 100.0


def _margin_pct(profit: float, revenue: float) -> float:
    return _safe_div(profit, revenue) * 100.0


def _reconcile_period(
    record: PeriodRecord,
    entry: ActualsEntry | None,
    running: dict[str, float],
) -> ReconciledPeriod:
    actual_revenue = actual_cost = actual_profit = None
    cum_actual_revenue = cum_actual_cost = cum_actual_profit = None
    revenue_variance = cost_variance = profit_variance = None
    actual_attendance = attendance_variance = None

    if entry is not None:
        actual_revenue = float(sum(entry.revenue_actuals.values()))
        actual_cost = float(sum(entry.cost_actuals.values()))
        actual_profit = actual_revenue - actual_cost
        running["actual_revenue"] += actual_revenue
        running["actual_cost"] += actual_cost
        running["actual_profit"] += actual_profit
        cum_actual_revenue = running["actual_revenue"]
        cum_actual_cost = running["actual_cost"]
        cum_actual_profit = running["actual_profit"]
        revenue_variance = actual_revenue - record.revenue
        cost_variance = actual_cost - record.cost
        profit_variance = actual_profit - record.profit
        actual_attendance = entry.attendance_actual
        if actual_attendance is not None and record.attendance is not None:
            attendance_variance = actual_attendance - record.attendance

    revised_revenue = actual_revenue if actual_revenue is not None else float(record.revenue)
    revised_cost = actual_cost if actual_cost is not None else float(record.cost)
    revised_profit = revised_revenue - revised_cost
    running["revised_revenue"] += revised_revenue
    running["revised_cost"] += revised_cost
    running["revised_profit"] += revised_profit

    return ReconciledPeriod(
        period=record.period,
        label=record.label,
        has_actuals=entry is not None,
        forecast_revenue=record.revenue,
        forecast_cost=record.cost,
        forecast_profit=record.profit,
        cumulative_forecast_revenue=record.cumulative_revenue,
        cumulative_forecast_cost=record.cumulative_cost,
        cumulative_forecast_profit=record.cumulative_profit,
        forecast_attendance=record.attendance,
        actual_revenue=actual_revenue,
        actual_cost=actual_cost,
        actual_profit=actual_profit,
        actual_attendance=actual_attendance,
        cumulative_actual_revenue=cum_actual_revenue,
        cumulative_actual_cost=cum_actual_cost,
        cumulative_actual_profit=cum_actual_profit,
        revenue_variance=revenue_variance,
        cost_variance=cost_variance,
        profit_variance=profit_variance,
        revenue_variance_percent=None if revenue_variance is None else variance_percent(revenue_variance, record.revenue),
        cost_variance_percent=None if cost_variance is None else variance_percent(cost_variance, record.cost),
        profit_variance_percent=None if profit_variance is None else variance_percent(profit_variance, record.profit),
        attendance_variance=attendance_variance,
        revised_revenue=revised_revenue,
        revised_cost=revised_cost,
        revised_profit=revised_profit,
        cumulative_revised_revenue=running["revised_revenue"],
        cumulative_revised_cost=running["revised_cost"],
        cumulative_revised_profit=running["revised_profit"],
    )


def summarize(periods: list[ReconciledPeriod]) -> ReconciliationSummary:
    forecast_revenue = float(sum(p.forecast_revenue for p in periods))
    forecast_cost = float(sum(p.forecast_cost for p in periods))
    forecast_profit = forecast_revenue - forecast_cost

    with_actuals = [p for p in periods if p.has_actuals]
    period_forecast_revenue = float(sum(p.forecast_revenue for p in with_actuals))
    period_forecast_cost = float(sum(p.forecast_cost for p in with_actuals))
    period_forecast_profit = period_forecast_revenue - period_forecast_cost
    actual_revenue = float(sum(p.actual_revenue or 0.0 for p in with_actuals))
    actual_cost = float(sum(p.actual_cost or 0.0 for p in with_actuals))
    actual_profit = actual_revenue - actual_cost

    revised_revenue = float(sum(p.revised_revenue for p in periods))
    revised_cost = float(sum(p.revised_cost for p in periods))
    revised_profit = revised_revenue - revised_cost

    forecast_attendance = None
    if periods and all(p.forecast_attendance is not None for p in periods):
        forecast_attendance = int(sum(p.forecast_attendance for p in periods))
    with_attendance = [p for p in with_actuals if p.actual_attendance is not None]
    actual_attendance = None
    attendance_variance = None
    if with_attendance:
        actual_attendance = float(sum(p.actual_attendance for p in with_attendance))
        if all(p.forecast_attendance is not None for p in with_attendance):
            attendance_variance = actual_attendance - sum(p.forecast_attendance for p in with_attendance)

    period_numbers = [p.period for p in periods]
    period_revenue_variance = actual_revenue - period_forecast_revenue
    period_cost_variance = actual_cost - period_forecast_cost
    period_profit_variance = actual_profit - period_forecast_profit

    return ReconciliationSummary(
        forecast_revenue=forecast_revenue,
        forecast_cost=forecast_cost,
        forecast_profit=forecast_profit,
        forecast_margin_pct=_margin_pct(forecast_profit, forecast_revenue),
        period_forecast_revenue=period_forecast_revenue,
        period_forecast_cost=period_forecast_cost,
        period_forecast_profit=period_forecast_profit,
        actual_revenue=actual_revenue,
        actual_cost=actual_cost,
        actual_profit=actual_profit,
        actual_margin_pct=_margin_pct(actual_profit, actual_revenue),
        periods_with_actuals=len(with_actuals),
        latest_actual_period=max((p.period for p in with_actuals), default=None),
        revised_revenue=revised_revenue,
        revised_cost=revised_cost,
        revised_profit=revised_profit,
        revised_margin_pct=_margin_pct(revised_profit, revised_revenue),
        revenue_variance=revised_revenue - forecast_revenue,
        cost_variance=revised_cost - forecast_cost,
        profit_variance=revised_profit - forecast_profit,
        period_revenue_variance=period_revenue_variance,
        period_cost_variance=period_cost_variance,
        period_profit_variance=period_profit_variance,
        period_revenue_variance_pct=variance_percent(period_revenue_variance, period_forecast_revenue),
        period_cost_variance_pct=variance_percent(period_cost_variance, period_forecast_cost),
        period_profit_variance_pct=variance_percent(period_profit_variance, period_forecast_profit),
        forecast_attendance=forecast_attendance,
        actual_attendance=actual_attendance,
        attendance_variance=attendance_variance,
        forecast_break_even_period=find_break_even([p.cumulative_forecast_profit for p in periods], period_numbers),
        actual_break_even_period=find_break_even([p.cumulative_actual_profit for p in periods], period_numbers),
        revised_break_even_period=find_break_even([p.cumulative_revised_profit for p in periods], period_numbers),
    )


def reconcile(
    forecast: list[PeriodRecord],
    actuals: Iterable[Mapping[str, Any] | ActualsEntry] | None,
) -> ReconciliationResult:
    """Merge actuals into the forecast, period by period.

    Duplicate entries for one period keep the last one; entries outside the
    forecast window are dropped. Both produce warnings that are also logged.
    """
    horizon = max((r.period for r in forecast), default=0)
    by_period, warnings = normalize_actuals(actuals, horizon=horizon)
    if warnings:
        log_warnings(ACTUALS_NORMALIZATION, warnings, context={"horizon": horizon})

    running = {
        "actual_revenue": 0.0,
        "actual_cost": 0.0,
        "actual_profit": 0.0,
        "revised_revenue": 0.0,
        "revised_cost": 0.0,
        "revised_profit": 0.0,
    }
    periods = [_reconcile_period(record, by_period.get(record.period), running) for record in forecast]
    return ReconciliationResult(periods=periods, summary=summarize(periods), warnings=warnings)


def run_analysis(
    assumptions: ModelAssumptions | Mapping[str, Any],
    actuals: Iterable[Mapping[str, Any] | ActualsEntry] | None,
    period_count: int | None = None,
) -> ReconciliationResult:
    return reconcile(run_forecast(assumptions, period_count=period_count), actuals)


def reconciliation_frame(result: ReconciliationResult) -> pd.DataFrame:
    rows = [
        {
            "Period": p.period,
            "Label": p.label,
            "Has Actuals": p.has_actuals,
            "Forecast Revenue": p.forecast_revenue,
            "Forecast Cost": p.forecast_cost,
            "Forecast Profit": p.forecast_profit,
            "Cumulative Forecast Profit": p.cumulative_forecast_profit,
            "Actual Revenue": p.actual_revenue,
            "Actual Cost": p.actual_cost,
            "Actual Profit": p.actual_profit,
            "Cumulative Actual Profit": p.cumulative_actual_profit,
            "Revenue Variance": p.revenue_variance,
            "Cost Variance": p.cost_variance,
            "Profit Variance": p.profit_variance,
            "Revenue Variance %": p.revenue_variance_percent,
            "Cost Variance %": p.cost_variance_percent,
            "Profit Variance %": p.profit_variance_percent,
            "Forecast Attendance": p.forecast_attendance,
            "Actual Attendance": p.actual_attendance,
            "Attendance Variance": p.attendance_variance,
            "Revised Revenue": p.revised_revenue,
            "Revised Cost": p.revised_cost,
            "Revised Profit": p.revised_profit,
            "Cumulative Revised Profit": p.cumulative_revised_profit,
        }
        for p in result.periods
    ]
    return pd.DataFrame(rows)
