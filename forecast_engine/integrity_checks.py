"""Accounting and roll-forward integrity checks over forecast and reconciliation frames."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd


def _finding(
    check: str,
    max_abs_delta: float,
    period: str,
    lhs_name: str,
    rhs_name: str,
) -> dict[str, Any]:
    return {
        "Check": check,
        "Max Abs Delta": float(max_abs_delta),
        "Period of Max Delta": period,
        "LHS": lhs_name,
        "RHS": rhs_name,
    }


def _period_of_max_delta(df: pd.DataFrame, delta: np.ndarray) -> str:
    if len(delta) == 0:
        return ""
    idx = int(np.argmax(np.abs(delta)))
    if "Label" in df.columns and idx < len(df):
        return str(df.iloc[idx]["Label"])
    return str(idx)


def _numeric(series: pd.Series) -> np.ndarray:
    return pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)


def _check_series_identity(
    findings: list[dict[str, Any]],
    df: pd.DataFrame,
    check_name: str,
    lhs_name: str,
    rhs_name: str,
    lhs: np.ndarray,
    rhs: np.ndarray,
    tol: float,
) -> None:
    # Periods without data compare as NaN and are not findings.
    delta = np.nan_to_num(np.asarray(lhs, dtype=float) - np.asarray(rhs, dtype=float), nan=0.0)
    if len(delta) == 0:
        return
    max_abs = float(np.max(np.abs(delta)))
    if max_abs > float(tol):
        findings.append(_finding(check_name, max_abs, _period_of_max_delta(df, delta), lhs_name, rhs_name))


def _missing(df: Any, columns: list[str]) -> list[dict[str, Any]] | None:
    if not isinstance(df, pd.DataFrame) or df.empty:
        return [{"Check": "Dataframe not available", "Max Abs Delta": np.nan, "Period of Max Delta": "", "LHS": "", "RHS": ""}]
    absent = [c for c in columns if c not in df.columns]
    if absent:
        return [
            {"Check": "Missing columns", "Max Abs Delta": np.nan, "Period of Max Delta": "", "LHS": ", ".join(absent), "RHS": ""}
        ]
    return None


def run_integrity_checks(df: pd.DataFrame, tol: float = 1e-6) -> list[dict[str, Any]]:
    """Return integrity findings for a forecast frame (empty list means all checks passed)."""
    required = ["Revenue", "Cost", "Profit", "Cumulative Revenue", "Cumulative Cost", "Cumulative Profit"]
    early = _missing(df, required)
    if early is not None:
        return early

    findings: list[dict[str, Any]] = []
    revenue = _numeric(df["Revenue"])
    cost = _numeric(df["Cost"])
    profit = _numeric(df["Profit"])

    _check_series_identity(findings, df, "Profit identity", "Profit", "Revenue - Cost", profit, revenue - cost, tol)

    _check_series_identity(
        findings,
        df,
        "Cumulative revenue roll-forward",
        "Cumulative Revenue",
        "Running sum of Revenue",
        _numeric(df["Cumulative Revenue"]),
        np.cumsum(revenue),
        tol,
    )
    _check_series_identity(
        findings,
        df,
        "Cumulative cost roll-forward",
        "Cumulative Cost",
        "Running sum of Cost",
        _numeric(df["Cumulative Cost"]),
        np.cumsum(cost),
        tol,
    )
    _check_series_identity(
        findings,
        df,
        "Cumulative profit roll-forward",
        "Cumulative Profit",
        "Running sum of Profit",
        _numeric(df["Cumulative Profit"]),
        np.cumsum(profit),
        tol,
    )
    _check_series_identity(
        findings,
        df,
        "Cumulative profit identity",
        "Cumulative Profit",
        "Cumulative Revenue - Cumulative Cost",
        _numeric(df["Cumulative Profit"]),
        _numeric(df["Cumulative Revenue"]) - _numeric(df["Cumulative Cost"]),
        tol,
    )
    return findings


def run_reconciliation_checks(df: pd.DataFrame, tol: float = 1e-6) -> list[dict[str, Any]]:
    """Return integrity findings for a reconciliation frame."""
    required = [
        "Forecast Revenue",
        "Forecast Cost",
        "Forecast Profit",
        "Actual Revenue",
        "Actual Cost",
        "Actual Profit",
        "Revenue Variance",
        "Cost Variance",
        "Profit Variance",
        "Revised Revenue",
        "Revised Cost",
        "Revised Profit",
    ]
    early = _missing(df, required)
    if early is not None:
        return early

    findings: list[dict[str, Any]] = []
    actual_revenue = _numeric(df["Actual Revenue"])
    actual_cost = _numeric(df["Actual Cost"])

    _check_series_identity(
        findings,
        df,
        "Actual profit identity",
        "Actual Profit",
        "Actual Revenue - Actual Cost",
        _numeric(df["Actual Profit"]),
        actual_revenue - actual_cost,
        tol,
    )
    for name in ("Revenue", "Cost", "Profit"):
        _check_series_identity(
            findings,
            df,
            f"{name} variance identity",
            f"{name} Variance",
            f"Actual {name} - Forecast {name}",
            _numeric(df[f"{name} Variance"]),
            _numeric(df[f"Actual {name}"]) - _numeric(df[f"Forecast {name}"]),
            tol,
        )
    _check_series_identity(
        findings,
        df,
        "Revised profit identity",
        "Revised Profit",
        "Revised Revenue - Revised Cost",
        _numeric(df["Revised Profit"]),
        _numeric(df["Revised Revenue"]) - _numeric(df["Revised Cost"]),
        tol,
    )
    return findings
