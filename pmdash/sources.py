from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from pmdash.scope import ResolvedScope

STATUSES = ("todo", "in_progress", "completed", "blocked")


def _opt_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _float(value: Any) -> float:
    out = _opt_float(value)
    return 0.0 if out is None else out


@dataclass(frozen=True)
class WeeklySample:
    week: str
    planned_hours: float = 0.0
    actual_hours: Optional[float] = None
    available_hours: float = 0.0
    completed_count: int = 0
    # Per-week figures as reported by the backend; None when the week has no signal.
    productivity: Optional[float] = None
    utilization: Optional[float] = None

    @property
    def has_productivity_signal(self) -> bool:
        return self.productivity is not None or self.completed_count > 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "WeeklySample":
        return cls(
            week=str(record.get("week", "")),
            planned_hours=_float(record.get("planned_hours", record.get("plannedHours"))),
            actual_hours=_opt_float(record.get("actual_hours", record.get("hours"))),
            available_hours=_float(record.get("available_hours", record.get("availableHours"))),
            completed_count=int(_float(record.get("completed_count", record.get("completed")))),
            productivity=_opt_float(record.get("productivity")),
            utilization=_opt_float(record.get("utilization")),
        )


@dataclass(frozen=True)
class WeeklySeries:
    """Chronological weekly samples plus any authoritative aggregates the source supplied."""

    samples: Tuple[WeeklySample, ...] = ()
    productivity: Optional[float] = None
    utilization: Optional[float] = None

    def __len__(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class StatusDistribution:
    todo: int = 0
    in_progress: int = 0
    completed: int = 0
    blocked: int = 0

    @property
    def total(self) -> int:
        return self.todo + self.in_progress + self.completed + self.blocked

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> "StatusDistribution":
        record = record or {}
        in_progress = record.get("in_progress", record.get("inProgress"))
        return cls(
            todo=int(_float(record.get("todo"))),
            in_progress=int(_float(in_progress)),
            completed=int(_float(record.get("completed"))),
            blocked=int(_float(record.get("blocked"))),
        )

    def as_dict(self) -> Dict[str, int]:
        return {status: getattr(self, status) for status in STATUSES}


@dataclass(frozen=True)
class Task:
    id: int
    title: str = ""
    assignee: str = ""
    status: str = "todo"
    estimated: Optional[float] = None
    logged: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Task":
        return cls(
            id=int(record["id"]),
            title=str(record.get("title") or record.get("name") or ""),
            assignee=str(record.get("assignee") or record.get("assignee_name") or ""),
            status=str(record.get("status") or "todo"),
            estimated=_opt_float(record.get("estimated", record.get("planned_hours"))),
            logged=_opt_float(record.get("logged", record.get("actual_hours"))),
        )


@dataclass(frozen=True)
class TaskTimeline:
    this_week: Tuple[Task, ...] = field(default_factory=tuple)
    next_week: Tuple[Task, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> "TaskTimeline":
        record = record or {}
        this_week = record.get("this_week", record.get("thisWeek")) or []
        next_week = record.get("next_week", record.get("nextWeek")) or []
        return cls(
            this_week=tuple(t if isinstance(t, Task) else Task.from_record(t) for t in this_week),
            next_week=tuple(t if isinstance(t, Task) else Task.from_record(t) for t in next_week),
        )


class MetricsSource(Protocol):
    async def get_weekly_series(self, scope: ResolvedScope) -> Union[WeeklySeries, Sequence[WeeklySample]]:
        ...

    async def get_status_distribution(self, scope: ResolvedScope) -> Union[StatusDistribution, Mapping[str, Any]]:
        ...

    async def get_task_timeline(self, scope: ResolvedScope) -> Union[TaskTimeline, Mapping[str, Any]]:
        ...


def as_weekly_series(value: Any) -> WeeklySeries:
    if value is None:
        return WeeklySeries()
    if isinstance(value, WeeklySeries):
        return value
    if isinstance(value, Mapping):
        return weekly_series_from_payload(value)
    return WeeklySeries(
        samples=tuple(s if isinstance(s, WeeklySample) else WeeklySample.from_record(s) for s in value)
    )


def weekly_series_from_payload(payload: Mapping[str, Any]) -> WeeklySeries:
    """Merge the backend's per-chart weekly arrays into one series keyed by week label.

    The backend returns ``utilizationData``, ``productivityData`` and
    ``availabilityData`` arrays sharing week labels, plus optional
    pre-aggregated ``productivity``/``utilization`` figures.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    order: List[str] = []
    for key in ("series", "utilizationData", "productivityData", "availabilityData"):
        for row in payload.get(key) or []:
            week = str(row.get("week", ""))
            if week not in merged:
                merged[week] = {}
                order.append(week)
            for name, value in row.items():
                if value is not None or name not in merged[week]:
                    merged[week][name] = value
    samples = tuple(WeeklySample.from_record(merged[week]) for week in order)
    return WeeklySeries(
        samples=samples,
        productivity=_opt_float(payload.get("productivity")),
        utilization=_opt_float(payload.get("utilization")),
    )
