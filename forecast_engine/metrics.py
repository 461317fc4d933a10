"""Metric calculations for forecast summaries and scenario comparison."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from forecast_engine.model import PeriodRecord


def _safe_div(a: float, b: float) -> float:
    return float(a / b) if b else 0.0


def find_break_even(cumulative_profit: Sequence[float | None], periods: Sequence[int] | None = None) -> int | None:
    """First period whose cumulative profit is >= 0; None when never reached.

    None entries (periods without data) are skipped.
    """
    for idx, value in enumerate(cumulative_profit):
        if value is None:
            continue
        if value >= 0:
            return int(periods[idx]) if periods is not None else idx + 1
    return None


def break_even_label(period: int | None, records: Sequence[PeriodRecord] = ()) -> str:
    if period is None:
        return "N/A"
    for r in records:
        if r.period == period:
            return r.label
    return f"Period {period}"


def compute_metrics(records: list[PeriodRecord]) -> dict:
    if not records:
        return {
            "total_revenue": 0.0,
            "total_cost": 0.0,
            "total_profit": 0.0,
            "profit_margin_pct": 0.0,
            "break_even_period": None,
            "break_even_label": "N/A",
            "periods": 0,
            "avg_revenue_per_period": 0.0,
            "avg_cost_per_period": 0.0,
            "avg_profit_per_period": 0.0,
            "min_cumulative_profit": 0.0,
            "min_cumulative_profit_period": None,
            "loss_periods": 0,
            "total_attendance": None,
            "revenue_per_attendee": None,
        }

    revenue = np.array([r.revenue for r in records], dtype=float)
    cost = np.array([r.cost for r in records], dtype=float)
    profit = np.array([r.profit for r in records], dtype=float)
    cum_profit = np.array([r.cumulative_profit for r in records], dtype=float)

    total_revenue = float(revenue.sum())
    total_cost = float(cost.sum())
    total_profit = float(profit.sum())
    break_even = find_break_even(cum_profit.tolist(), [r.period for r in records])
    min_idx = int(np.argmin(cum_profit))

    attendance = [r.attendance for r in records]
    total_attendance = None
    revenue_per_attendee = None
    if all(a is not None for a in attendance):
        total_attendance = int(sum(attendance))
        revenue_per_attendee = _safe_div(total_revenue, total_attendance)

    return {
        "total_revenue": total_revenue,
        "total_cost": total_cost,
        "total_profit": total_profit,
        "profit_margin_pct": _safe_div(total_profit, total_revenue) * 100.0,
        "break_even_period": break_even,
        "break_even_label": break_even_label(break_even, records),
        "periods": len(records),
        "avg_revenue_per_period": float(revenue.mean()),
        "avg_cost_per_period": float(cost.mean()),
        "avg_profit_per_period": float(profit.mean()),
        "min_cumulative_profit": float(cum_profit[min_idx]),
        "min_cumulative_profit_period": records[min_idx].period,
        "loss_periods": int((profit < 0).sum()),
        "total_attendance": total_attendance,
        "revenue_per_attendee": revenue_per_attendee,
    }


def compare_scenarios(baseline: list[PeriodRecord], scenario: list[PeriodRecord]) -> dict:
    """Scenario minus baseline for the headline metrics."""
    base = compute_metrics(baseline)
    alt = compute_metrics(scenario)
    out = {"baseline": base, "scenario": alt}
    for key in ("revenue", "cost", "profit"):
        delta = alt[f"total_{key}"] - base[f"total_{key}"]
        out[f"{key}_delta"] = delta
        out[f"{key}_delta_pct"] = _safe_div(delta, abs(base[f"total_{key}"])) * 100.0
    out["margin_delta_pct_points"] = alt["profit_margin_pct"] - base["profit_margin_pct"]
    if base["break_even_period"] is not None and alt["break_even_period"] is not None:
        out["break_even_delta"] = alt["break_even_period"] - base["break_even_period"]
    else:
        out["break_even_delta"] = None
    return out
