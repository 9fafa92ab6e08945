from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Sequence, Union

import pandas as pd

from pmdash.sources import StatusDistribution, WeeklySample, WeeklySeries, as_weekly_series

NO_DATA = "-"

WEEKLY_COLUMNS = [
    "week",
    "planned_hours",
    "actual_hours",
    "available_hours",
    "completed_count",
    "productivity",
    "utilization",
]


@dataclass(frozen=True)
class DerivedMetrics:
    productivity: Optional[int] = None
    utilization: Optional[int] = None
    available_hours_total: Optional[int] = None


@dataclass(frozen=True)
class TaskStats:
    total: int = 0
    completed: int = 0
    pending: int = 0
    todo: int = 0
    in_progress: int = 0
    blocked: int = 0


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _round_int(value: object) -> Optional[int]:
    rounded = round_half_up(value)
    return None if rounded is None else int(rounded)


def weekly_frame(series: Union[WeeklySeries, Sequence[WeeklySample]]) -> pd.DataFrame:
    samples = as_weekly_series(series).samples
    if not samples:
        return pd.DataFrame(
            {col: pd.Series(dtype=object if col == "week" else "float64") for col in WEEKLY_COLUMNS}
        )
    df = pd.DataFrame([asdict(s) for s in samples], columns=WEEKLY_COLUMNS)
    for col in WEEKLY_COLUMNS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def _ratio_percent(numerator: float, denominator: float) -> Optional[int]:
    if not denominator:
        return None
    return _round_int(numerator / denominator * 100)


def compute_productivity(df: pd.DataFrame, authoritative: Optional[float] = None) -> Optional[int]:
    """Planned over actual hours, counting only weeks that completed some work."""
    if authoritative is not None and not pd.isna(authoritative):
        return _round_int(authoritative)
    if df.empty:
        return None
    signal = df["productivity"].notna() | (df["completed_count"].fillna(0) > 0)
    weeks = df[signal]
    if weeks.empty:
        return None
    return _ratio_percent(float(weeks["planned_hours"].fillna(0).sum()), float(weeks["actual_hours"].fillna(0).sum()))


def compute_utilization(df: pd.DataFrame, authoritative: Optional[float] = None) -> Optional[int]:
    """Planned over available hours across every week in range."""
    if authoritative is not None and not pd.isna(authoritative):
        return _round_int(authoritative)
    if df.empty:
        return None
    return _ratio_percent(float(df["planned_hours"].fillna(0).sum()), float(df["available_hours"].fillna(0).sum()))


def compute_available_hours_total(df: pd.DataFrame) -> Optional[int]:
    if df.empty:
        return None
    return _round_int(float(df["available_hours"].fillna(0).sum()))


def compute_metrics(series: Union[WeeklySeries, Sequence[WeeklySample]]) -> DerivedMetrics:
    series = as_weekly_series(series)
    df = weekly_frame(series)
    return DerivedMetrics(
        productivity=compute_productivity(df, series.productivity),
        utilization=compute_utilization(df, series.utilization),
        available_hours_total=compute_available_hours_total(df),
    )


def compute_task_stats(distribution: StatusDistribution) -> TaskStats:
    return TaskStats(
        total=distribution.total,
        completed=distribution.completed,
        pending=distribution.total - distribution.completed,
        todo=distribution.todo,
        in_progress=distribution.in_progress,
        blocked=distribution.blocked,
    )


def availability_balance(series: Union[WeeklySeries, Sequence[WeeklySample]]) -> pd.DataFrame:
    """Split each week's available hours into spare capacity and over-utilisation."""
    df = weekly_frame(series)
    out = pd.DataFrame({"week": df["week"]})
    hours = df["available_hours"].fillna(0)
    out["available"] = hours.clip(lower=0)
    out["over_utilised"] = hours.clip(upper=0)
    return out.reset_index(drop=True)


def display_value(value: Any) -> Union[str, int, float]:
    if value is None:
        return NO_DATA
    if isinstance(value, float) and pd.isna(value):
        return NO_DATA
    if isinstance(value, str) and not value.strip():
        return NO_DATA
    return value


def format_percent(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return NO_DATA
    return f"{int(value)}%"


def metrics_payload(metrics: DerivedMetrics, stats: Optional[TaskStats] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "metrics": asdict(metrics),
        "display": {
            "productivity": format_percent(metrics.productivity),
            "utilization": format_percent(metrics.utilization),
            "available_hours_total": display_value(metrics.available_hours_total),
        },
    }
    if stats is not None:
        payload["task_stats"] = asdict(stats)
        payload["display"].update(
            {
                "total_tasks": display_value(stats.total),
                "completed": display_value(stats.completed),
                "pending": display_value(stats.pending),
            }
        )
    return payload
