"""Variance trend analysis over reconciled periods.

Variance here is the percent gap between actual and forecast for one metric,
``(actual - forecast) / forecast * 100``. The trend is fitted by least squares
over the sequence of periods with actuals; anomalies combine a z-score test
with an interquartile fence; seasonality groups periods into twelve buckets.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Sequence

import numpy as np
import pandas as pd

from forecast_engine.accuracy import _METRIC_FIELDS, Metric
from forecast_engine.reconcile import ReconciliationResult


Direction = Literal["improving", "stable", "worsening"]
RiskLevel = Literal["low", "medium", "high"]
Severity = Literal["mild", "moderate", "severe"]
InsightSeverity = Literal["info", "warning", "critical"]

MIN_POINTS_FOR_TREND = 3
MIN_POINTS_FOR_ANOMALIES = 5
MIN_POINTS_FOR_SEASONALITY = 12
SEASON_LENGTH = 12
SLOPE_THRESHOLD = 1.0

_INSIGHT_ORDER = {"critical": 0, "warning": 1, "info": 2}


@dataclass(frozen=True)
class VariancePoint:
    period: int
    label: str
    variance: float
    actual: float
    projected: float
    is_anomaly: bool = False
    risk_level: RiskLevel = "low"


@dataclass(frozen=True)
class AnomalyPoint:
    period: int
    variance: float
    severity: Severity
    deviation_from_norm: float
    potential_causes: list[str]


@dataclass(frozen=True)
class SeasonalPattern:
    detected: bool
    period: int
    strength: float
    # Season bucket (1-12) -> bucket mean / overall mean.
    adjustment_factors: dict[int, float]


@dataclass(frozen=True)
class TrendAnalysis:
    direction: Direction
    strength: float
    confidence: float
    change_rate: float
    projected_next_variance: float | None = None


@dataclass(frozen=True)
class VarianceStatistics:
    mean: float
    std_dev: float
    median: float


@dataclass(frozen=True)
class VarianceTrend:
    project_id: str
    metric: Metric
    points: list[VariancePoint]
    trend: TrendAnalysis
    volatility: float
    seasonal_pattern: SeasonalPattern | None
    anomalies: list[AnomalyPoint] = field(default_factory=list)
    average_variance: float = 0.0
    variance_std_dev: float = 0.0

    @property
    def trend_direction(self) -> Direction:
        return self.trend.direction


@dataclass(frozen=True)
class VarianceInsight:
    type: Literal["trend", "anomaly", "seasonal", "volatility"]
    severity: InsightSeverity
    title: str
    description: str
    recommendation: str
    affected_periods: list[int]
    confidence_score: int


def season_bucket(period: int) -> int:
    return (int(period) - 1) % SEASON_LENGTH + 1


def variance_series(result: ReconciliationResult, metric: Metric = "revenue") -> list[VariancePoint]:
    """Percent variance for each period with actuals and a nonzero forecast."""
    forecast_field, actual_field = _METRIC_FIELDS[metric]
    points: list[VariancePoint] = []
    for p in result.periods:
        actual = getattr(p, actual_field)
        projected = float(getattr(p, forecast_field))
        if not p.has_actuals or actual is None or projected == 0:
            continue
        points.append(
            VariancePoint(
                period=p.period,
                label=p.label,
                variance=(float(actual) - projected) / projected * 100.0,
                actual=float(actual),
                projected=projected,
            )
        )
    return sorted(points, key=lambda pt: pt.period)


def _variances(points: Sequence[VariancePoint]) -> np.ndarray:
    return np.array([pt.variance for pt in points], dtype=float)


def variance_statistics(points: Sequence[VariancePoint]) -> VarianceStatistics:
    values = _variances(points)
    if values.size == 0:
        return VarianceStatistics(mean=0.0, std_dev=0.0, median=0.0)
    return VarianceStatistics(
        mean=float(values.mean()),
        std_dev=float(values.std()),
        median=float(np.median(values)),
    )


def calculate_volatility(points: Sequence[VariancePoint]) -> float:
    """Population standard deviation of the variances; 0 below two points."""
    if len(points) < 2:
        return 0.0
    return float(_variances(points).std())


def detect_trend(points: Sequence[VariancePoint]) -> TrendAnalysis:
    if len(points) < MIN_POINTS_FOR_TREND:
        return TrendAnalysis(direction="stable", strength=0.0, confidence=0.0, change_rate=0.0)

    y = _variances(points)
    n = y.size
    x = np.arange(1, n + 1, dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    slope, intercept = float(slope), float(intercept)

    total_ss = float(((y - y.mean()) ** 2).sum())
    residual_ss = float(((y - (slope * x + intercept)) ** 2).sum())
    # A flat series is a perfect fit.
    r_squared = 1.0 - residual_ss / total_ss if total_ss > 0 else 1.0

    if slope < -SLOPE_THRESHOLD:
        direction: Direction = "improving"
    elif slope > SLOPE_THRESHOLD:
        direction = "worsening"
    else:
        direction = "stable"

    return TrendAnalysis(
        direction=direction,
        strength=min(1.0, abs(slope) / 10.0),
        confidence=max(0.0, min(100.0, r_squared * 100.0)),
        change_rate=slope,
        projected_next_variance=slope * (n + 1) + intercept,
    )


def _z_score(variance: float, stats: VarianceStatistics) -> float:
    return abs(variance - stats.mean) / (stats.std_dev or 1.0)


def potential_causes(variance: float, stats: VarianceStatistics) -> list[str]:
    magnitude = abs(variance)
    if variance > 0:
        if magnitude > 50:
            causes = ["Significant market opportunity or forecasting error", "Seasonal effects not captured in projections"]
        elif magnitude > 25:
            causes = ["Better than expected market conditions", "Operational efficiency improvements"]
        else:
            causes = ["Minor forecasting adjustment needed"]
    else:
        if magnitude > 50:
            causes = ["Major market downturn or competitive pressure", "Operational challenges or capacity constraints"]
        elif magnitude > 25:
            causes = ["Market conditions worse than expected", "Execution or delivery issues"]
        else:
            causes = ["Conservative forecasting or minor headwinds"]
    if _z_score(variance, stats) > 3:
        causes.append("Highly unusual event requiring investigation")
    return causes


def detect_anomalies(points: Sequence[VariancePoint]) -> list[AnomalyPoint]:
    """Flag points beyond two standard deviations or outside the 1.5 IQR fence."""
    if len(points) < MIN_POINTS_FOR_ANOMALIES:
        return []

    stats = variance_statistics(points)
    ordered = np.sort(_variances(points))
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr

    anomalies: list[AnomalyPoint] = []
    for pt in points:
        z = _z_score(pt.variance, stats)
        if not (z > 2 or pt.variance < lower or pt.variance > upper):
            continue
        magnitude = abs(pt.variance)
        if z > 3 or magnitude > 50:
            severity: Severity = "severe"
        elif z > 2.5 or magnitude > 25:
            severity = "moderate"
        else:
            severity = "mild"
        anomalies.append(
            AnomalyPoint(
                period=pt.period,
                variance=pt.variance,
                severity=severity,
                deviation_from_norm=z,
                potential_causes=potential_causes(pt.variance, stats),
            )
        )
    return anomalies


def detect_seasonal_pattern(points: Sequence[VariancePoint]) -> SeasonalPattern | None:
    """Twelve-period seasonality; None below a full cycle or when too weak."""
    if len(points) < MIN_POINTS_FOR_SEASONALITY:
        return None

    frame = pd.DataFrame({"bucket": [season_bucket(pt.period) for pt in points], "variance": _variances(points)})
    overall_mean = float(frame["variance"].mean())
    bucket_means = frame.groupby("bucket")["variance"].mean()
    spread = float(np.sqrt(((bucket_means - overall_mean) ** 2).mean()))
    strength = spread / abs(overall_mean or 1.0)

    if strength <= 0.1 or len(bucket_means) < 3:
        return None
    factors = {
        int(bucket): float(mean / overall_mean) if overall_mean else 1.0 for bucket, mean in bucket_means.items()
    }
    return SeasonalPattern(detected=True, period=SEASON_LENGTH, strength=min(1.0, strength), adjustment_factors=factors)


def assess_risk_level(variance: float, stats: VarianceStatistics) -> RiskLevel:
    magnitude = abs(variance)
    z = _z_score(variance, stats)
    if magnitude > 30 or z > 2:
        return "high"
    if magnitude > 15 or z > 1:
        return "medium"
    return "low"


def analyze_variance_trend(
    result: ReconciliationResult,
    metric: Metric = "revenue",
    project_id: str = "",
) -> VarianceTrend:
    """Trend, anomalies, seasonality and volatility for one metric.

    Below three variance points the analysis is flat: a stable trend with no
    anomalies and zero statistics.
    """
    points = variance_series(result, metric)
    if len(points) < MIN_POINTS_FOR_TREND:
        return VarianceTrend(
            project_id=project_id,
            metric=metric,
            points=points,
            trend=detect_trend(points),
            volatility=0.0,
            seasonal_pattern=None,
        )

    stats = variance_statistics(points)
    anomalies = detect_anomalies(points)
    anomalous = {a.period for a in anomalies}
    enriched = [
        replace(pt, is_anomaly=pt.period in anomalous, risk_level=assess_risk_level(pt.variance, stats)) for pt in points
    ]
    return VarianceTrend(
        project_id=project_id,
        metric=metric,
        points=enriched,
        trend=detect_trend(points),
        volatility=calculate_volatility(points),
        seasonal_pattern=detect_seasonal_pattern(points),
        anomalies=anomalies,
        average_variance=stats.mean,
        variance_std_dev=stats.std_dev,
    )


def variance_insights(trends: Sequence[VarianceTrend]) -> list[VarianceInsight]:
    """Insights across trends, critical first, then warnings, then info."""
    insights: list[VarianceInsight] = []
    for t in trends:
        if t.trend_direction == "worsening" and len(t.points) >= MIN_POINTS_FOR_TREND:
            insights.append(
                VarianceInsight(
                    type="trend",
                    severity="critical" if t.volatility > 20 else "warning",
                    title=f"{t.metric} variance is worsening",
                    description=(
                        f"Variance has been trending worse over the last {len(t.points)} periods "
                        f"with {t.volatility:.1f}% volatility"
                    ),
                    recommendation="Review forecasting methodology and identify root causes of increasing variance",
                    affected_periods=[pt.period for pt in t.points[-3:]],
                    confidence_score=85,
                )
            )

        severe = [a for a in t.anomalies if a.severity == "severe"]
        if severe:
            insights.append(
                VarianceInsight(
                    type="anomaly",
                    severity="critical",
                    title=f"Severe variance anomalies detected in {t.metric}",
                    description=(
                        f"{len(severe)} severe anomalies found with deviations up to "
                        f"{max(a.deviation_from_norm for a in severe):.1f} standard deviations"
                    ),
                    recommendation="Investigate underlying causes and adjust future forecasting assumptions",
                    affected_periods=[a.period for a in severe],
                    confidence_score=90,
                )
            )

        if t.volatility > 30:
            insights.append(
                VarianceInsight(
                    type="volatility",
                    severity="warning",
                    title=f"High volatility in {t.metric} variance",
                    description=f"Variance volatility of {t.volatility:.1f}% indicates unpredictable performance",
                    recommendation="Consider implementing more frequent forecasting reviews and scenario planning",
                    affected_periods=[pt.period for pt in t.points],
                    confidence_score=75,
                )
            )

        pattern = t.seasonal_pattern
        if pattern is not None and pattern.detected and pattern.strength > 0.3:
            insights.append(
                VarianceInsight(
                    type="seasonal",
                    severity="info",
                    title=f"Seasonal pattern detected in {t.metric} variance",
                    description=(
                        f"Strong seasonal pattern ({pattern.strength * 100:.0f}% strength) "
                        "suggests predictable variance cycles"
                    ),
                    recommendation="Incorporate seasonal adjustments into forecasting models to improve accuracy",
                    affected_periods=sorted(pattern.adjustment_factors),
                    confidence_score=80,
                )
            )
    # Stable sort keeps trend order within a severity.
    return sorted(insights, key=lambda i: _INSIGHT_ORDER[i.severity])


def apply_seasonal_adjustments(
    projections: Sequence[tuple[int, float]],
    pattern: SeasonalPattern,
) -> list[dict]:
    """Scale (period, value) pairs by their season bucket's factor, default 1."""
    out = []
    for period, value in projections:
        factor = pattern.adjustment_factors.get(season_bucket(period), 1.0)
        out.append({"period": int(period), "adjusted_value": float(value) * factor, "adjustment_factor": factor})
    return out


def variance_trend_frame(trend: VarianceTrend) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Period": pt.period,
                "Label": pt.label,
                "Projected": pt.projected,
                "Actual": pt.actual,
                "Variance %": pt.variance,
                "Anomaly": pt.is_anomaly,
                "Risk Level": pt.risk_level,
            }
            for pt in trend.points
        ]
    )
