from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import TYPE_CHECKING, Iterable, List, Mapping, Optional, Tuple, Union

from pmdash.errors import ValidationError

if TYPE_CHECKING:
    from pmdash.catalog import ReferenceCatalog

logger = logging.getLogger(__name__)

# None = no selection, int = a single id, tuple = a multi-id selection.
SelectionValue = Optional[Union[int, Tuple[int, ...]]]

ALL_TOKENS = {"", "all", "none", "null", "undefined"}


@dataclass(frozen=True)
class FilterState:
    project_selection: SelectionValue = None
    employee_selection: SelectionValue = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def with_changes(self, **changes) -> "FilterState":
        """Return a copy with raw ``changes`` normalized and applied."""
        normalized = {}
        for key, value in changes.items():
            if key in ("project_selection", "employee_selection"):
                normalized[key] = normalize_selection(value)
            elif key in ("start_date", "end_date"):
                normalized[key] = _as_date_text(value)
            else:
                raise TypeError(f"Unknown filter field: {key}")
        return replace(self, **normalized)

    def without_dates(self) -> "FilterState":
        return replace(self, start_date=None, end_date=None)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Not an id: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"Not an id: {value!r}")
    try:
        return int(str(value).strip()) if isinstance(value, str) else int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Not an id: {value!r}") from exc


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if not values:
        return []
    out: List[int] = []
    for v in values:
        try:
            i = _as_int(v)
        except ValidationError:
            logger.debug("Dropping invalid id %r from selection", v)
            continue
        if i not in out:
            out.append(i)
    return out


def normalize_selection(value: object) -> SelectionValue:
    """Coerce raw selection input into a SelectionValue.

    Accepts None, ``"all"``, an id, a numeric string, a comma separated id
    string or any iterable of ids. Array input keeps its array shape even
    when only one id survives; invalid entries are dropped.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ALL_TOKENS:
            return None
        if "," in text:
            ids = _as_int_list(text.split(","))
            return tuple(ids) if ids else None
        value = text
    if isinstance(value, (set, frozenset)):
        ids = sorted(_as_int_list(value))
        return tuple(ids) if ids else None
    if isinstance(value, (list, tuple)):
        ids = _as_int_list(value)
        return tuple(ids) if ids else None
    try:
        return _as_int(value)
    except ValidationError:
        logger.debug("Ignoring invalid selection %r", value)
        return None


def selection_ids(selection: SelectionValue) -> Tuple[int, ...]:
    if selection is None:
        return ()
    if isinstance(selection, tuple):
        return selection
    return (selection,)


def selections_equal(a: SelectionValue, b: SelectionValue) -> bool:
    """Value equality on sorted id sets; a single id equals a one-element array."""
    return sorted(set(selection_ids(a))) == sorted(set(selection_ids(b)))


def filters_equal(a: FilterState, b: FilterState) -> bool:
    return (
        selections_equal(a.project_selection, b.project_selection)
        and selections_equal(a.employee_selection, b.employee_selection)
        and a.start_date == b.start_date
        and a.end_date == b.end_date
    )


def is_date_only_change(old: FilterState, new: FilterState) -> bool:
    """True when the selections are unchanged and only the date range moved."""
    return (
        selections_equal(old.project_selection, new.project_selection)
        and selections_equal(old.employee_selection, new.employee_selection)
        and (old.start_date != new.start_date or old.end_date != new.end_date)
    )


def _scrub_selection(selection: SelectionValue, valid: Mapping[int, object]) -> SelectionValue:
    if selection is None:
        return None
    if isinstance(selection, tuple):
        kept = tuple(i for i in selection if i in valid)
        return kept if kept else None
    return selection if selection in valid else None


def scrub(state: FilterState, catalog: "ReferenceCatalog") -> FilterState:
    """Drop selected ids that are not in ``catalog``.

    Shape is preserved: an array stays an array, an emptied selection becomes
    None. When nothing changes the same object is returned so callers can
    skip change notifications.
    """
    projects = _scrub_selection(state.project_selection, catalog.projects)
    employees = _scrub_selection(state.employee_selection, catalog.employees)
    scrubbed = replace(state, project_selection=projects, employee_selection=employees)
    if filters_equal(state, scrubbed):
        return state
    logger.info(
        "Scrubbed filters: projects %s -> %s, employees %s -> %s",
        state.project_selection,
        projects,
        state.employee_selection,
        employees,
    )
    return scrubbed


def _as_date_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def normalize_filters(raw: Mapping[str, object]) -> FilterState:
    """Build a FilterState from a raw request/storage dict (snake_case or camelCase keys)."""
    raw = raw or {}

    def pick(*keys: str) -> object:
        for key in keys:
            if key in raw:
                return raw[key]
        return None

    return FilterState(
        project_selection=normalize_selection(pick("project_selection", "project_id", "projectId")),
        employee_selection=normalize_selection(pick("employee_selection", "employee_id", "employeeId")),
        start_date=_as_date_text(pick("start_date", "startDate")),
        end_date=_as_date_text(pick("end_date", "endDate")),
    )


def selection_to_json(selection: SelectionValue) -> Union[None, int, List[int]]:
    if isinstance(selection, tuple):
        return list(selection)
    return selection
