from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Dict, FrozenSet, List, Optional, Tuple

from pmdash.catalog import ReferenceCatalog
from pmdash.dates import format_date, parse_iso_date, today, work_week
from pmdash.errors import ValidationError
from pmdash.filters import FilterState, selection_ids
from pmdash.identity import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedScope:
    """API-ready query scope. ``None`` id sets mean "no restriction"."""

    project_ids: Optional[FrozenSet[int]]
    employee_ids: Optional[FrozenSet[int]]
    start_date: date
    end_date: date
    identity: Optional[Identity] = None
    # True when the scope can only match nothing; the orchestrator must not query.
    zero_result: bool = False

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")


def _parse_or_none(value: Optional[str], field_name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return parse_iso_date(value)
    except ValidationError as exc:
        logger.info("Ignoring %s: %s", field_name, exc)
        return None


def resolve_dates(
    start: Optional[str],
    end: Optional[str],
    *,
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> Tuple[date, date]:
    monday, friday = work_week(today(tz, now))
    start_date = _parse_or_none(start, "start_date")
    end_date = _parse_or_none(end, "end_date")
    if start_date is not None and end_date is not None and start_date > end_date:
        logger.info("Date range %s..%s is inverted; using current week", start_date, end_date)
        return monday, friday
    start_date = start_date or monday
    end_date = end_date or friday
    if start_date > end_date:
        # Only one side was supplied and it lies on the wrong side of the default week.
        return monday, friday
    return start_date, end_date


def resolve_employees(state: FilterState, identity: Identity, catalog: ReferenceCatalog) -> FrozenSet[int]:
    explicit = selection_ids(state.employee_selection)
    if explicit:
        return frozenset(explicit)
    if identity.is_employee:
        return frozenset({identity.id})
    return catalog.employee_ids


def resolve_projects(
    state: FilterState, identity: Identity, catalog: ReferenceCatalog
) -> Optional[FrozenSet[int]]:
    explicit = selection_ids(state.project_selection)
    if explicit:
        return frozenset(explicit)
    if identity.is_super_admin:
        return None
    return catalog.project_ids


def resolve(
    state: FilterState,
    identity: Identity,
    catalog: ReferenceCatalog,
    *,
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> ResolvedScope:
    """Apply the date, employee and project default policy to ``state``."""
    start_date, end_date = resolve_dates(state.start_date, state.end_date, tz=tz, now=now)
    employee_ids = resolve_employees(state, identity, catalog)
    project_ids = resolve_projects(state, identity, catalog)

    zero_result = False
    if state.project_selection is not None and not catalog.employees:
        zero_result = True
    elif not employee_ids or (project_ids is not None and not project_ids):
        # An empty id list would read as "unscoped" on the backend.
        zero_result = True
    if zero_result:
        logger.info("Scope for identity %s matches nothing; skipping fetch", identity.id)

    return ResolvedScope(
        project_ids=project_ids,
        employee_ids=employee_ids,
        start_date=start_date,
        end_date=end_date,
        identity=identity,
        zero_result=zero_result,
    )


def _join_ids(ids: Optional[FrozenSet[int]]) -> Optional[str]:
    if not ids:
        return None
    return ",".join(str(i) for i in sorted(ids))


def scope_to_params(scope: ResolvedScope, *, include_dates: bool = True) -> Dict[str, str]:
    """Encode a scope as backend query parameters (comma joined ids, ISO dates)."""
    params: Dict[str, str] = {}
    project_ids = _join_ids(scope.project_ids)
    employee_ids = _join_ids(scope.employee_ids)
    if project_ids:
        params["projectId"] = project_ids
    if employee_ids:
        params["employeeId"] = employee_ids
    if include_dates:
        params["startDate"] = format_date(scope.start_date)
        params["endDate"] = format_date(scope.end_date)
    if scope.identity is not None:
        params["userId"] = str(scope.identity.id)
        params["userRole"] = scope.identity.role
    return params


def scope_to_json(scope: ResolvedScope) -> Dict[str, object]:
    def ids(values: Optional[FrozenSet[int]]) -> Optional[List[int]]:
        return sorted(values) if values is not None else None

    return {
        "project_ids": ids(scope.project_ids),
        "employee_ids": ids(scope.employee_ids),
        "start_date": format_date(scope.start_date),
        "end_date": format_date(scope.end_date),
        "zero_result": scope.zero_result,
    }
