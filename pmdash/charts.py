from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from pmdash.metrics import availability_balance, weekly_frame
from pmdash.orchestrator import Snapshot
from pmdash.sources import STATUSES

alt.data_transformers.disable_max_rows()

STATUS_COLORS = {
    "todo": "#9ca3af",
    "in_progress": "#3b82f6",
    "completed": "#10b981",
    "blocked": "#ef4444",
}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _weekly_line(df: pd.DataFrame, column: str, title: str) -> Optional[Dict[str, Any]]:
    data = df[["week", column]].dropna(subset=[column])
    if data.empty:
        return None
    chart = (
        alt.Chart(data)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("week:O", title="Week", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y(f"{column}:Q", title=title, axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("week", title="Week"), alt.Tooltip(f"{column}:Q", title=title, format=".0f")],
        )
    )
    return to_vega_spec(chart)


def availability_chart(snapshot: Snapshot) -> Optional[Dict[str, Any]]:
    balance = availability_balance(snapshot.weekly_series)
    if balance.empty:
        return None
    long_df = balance.melt(id_vars=["week"], value_vars=["available", "over_utilised"], var_name="kind", value_name="hours")
    chart = (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X("week:O", title="Week", sort=None),
            y=alt.Y("hours:Q", title="Available Hours", stack="zero"),
            color=alt.Color(
                "kind:N",
                title=None,
                scale=alt.Scale(domain=["available", "over_utilised"], range=["#10b981", "#ef4444"]),
            ),
            tooltip=["week", "kind", alt.Tooltip("hours:Q", format=",.0f")],
        )
    )
    return to_vega_spec(chart)


def task_status_chart(snapshot: Snapshot) -> Optional[Dict[str, Any]]:
    distribution = snapshot.status_distribution
    if distribution.total == 0:
        return None
    data = pd.DataFrame({"status": list(STATUSES), "count": [getattr(distribution, s) for s in STATUSES]})
    chart = (
        alt.Chart(data)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color(
                "status:N",
                scale=alt.Scale(domain=list(STATUS_COLORS), range=list(STATUS_COLORS.values())),
            ),
            tooltip=["status", "count"],
        )
    )
    return to_vega_spec(chart)


def dashboard_charts(snapshot: Snapshot) -> Dict[str, Optional[Dict[str, Any]]]:
    df = weekly_frame(snapshot.weekly_series)
    return {
        "utilization": _weekly_line(df, "utilization", "Utilization %"),
        "productivity": _weekly_line(df, "productivity", "Productivity %"),
        "availability": availability_chart(snapshot),
        "task_status": task_status_chart(snapshot),
    }
