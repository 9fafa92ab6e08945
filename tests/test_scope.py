"""
Tests for scope resolution: date fallbacks and per-role defaults.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import NOW
from pmdash.catalog import ReferenceCatalog
from pmdash.dates import parse_iso_date, work_week
from pmdash.errors import ValidationError
from pmdash.filters import FilterState
from pmdash.identity import Identity
from pmdash.scope import ResolvedScope, resolve, resolve_dates, scope_to_json, scope_to_params

MONDAY = date(2024, 3, 11)
FRIDAY = date(2024, 3, 15)


class TestDates:
    """Strict parsing and current work-week defaults."""

    def test_parse_strict(self):
        assert parse_iso_date("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("raw", ["2024-02-30", "2024-3-1", "03/01/2024", "2024-03-01T00:00", "", 20240301])
    def test_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_iso_date(raw)

    @pytest.mark.parametrize("raw", ["2024-03-01\n", "٢٠٢٤-٠٣-٠١", " 2024-03-01"])
    def test_rejects_trailing_newline_and_non_ascii_digits(self, raw):
        with pytest.raises(ValidationError):
            parse_iso_date(raw)

    def test_work_week_sunday_belongs_to_previous_week(self):
        assert work_week(date(2024, 3, 17)) == (MONDAY, FRIDAY)
        assert work_week(date(2024, 3, 11)) == (MONDAY, FRIDAY)

    def test_missing_dates_default_to_current_week(self):
        assert resolve_dates(None, None, now=NOW) == (MONDAY, FRIDAY)

    def test_each_side_defaults_independently(self):
        assert resolve_dates("2024-03-12", None, now=NOW) == (date(2024, 3, 12), FRIDAY)
        assert resolve_dates(None, "2024-03-14", now=NOW) == (MONDAY, date(2024, 3, 14))
        assert resolve_dates("garbage", "2024-03-14", now=NOW) == (MONDAY, date(2024, 3, 14))

    def test_inverted_range_falls_back_to_week_not_swap(self):
        assert resolve_dates("2024-03-10", "2024-03-01", now=NOW) == (MONDAY, FRIDAY)

    def test_single_side_past_default_week_falls_back(self):
        assert resolve_dates("2024-04-01", None, now=NOW) == (MONDAY, FRIDAY)

    def test_reference_timezone_decides_the_day(self):
        # Monday 01:00 in Tokyo is still Sunday in UTC.
        now = datetime(2024, 3, 17, 16, 0, tzinfo=timezone.utc)
        assert resolve_dates(None, None, tz=ZoneInfo("Asia/Tokyo"), now=now) == (date(2024, 3, 18), date(2024, 3, 22))
        assert resolve_dates(None, None, tz=ZoneInfo("UTC"), now=now) == (MONDAY, FRIDAY)

    def test_scope_rejects_unordered_dates(self):
        with pytest.raises(ValueError):
            ResolvedScope(project_ids=None, employee_ids=None, start_date=FRIDAY, end_date=MONDAY)


class TestEmployeeDefaults:
    """No explicit employee filter means "everyone I can see"."""

    def test_employee_defaults_to_self(self, catalog, employee):
        scope = resolve(FilterState(), employee, catalog, now=NOW)
        assert scope.employee_ids == {employee.id}

    def test_manager_defaults_to_catalog(self, catalog, manager):
        scope = resolve(FilterState(), manager, catalog, now=NOW)
        assert scope.employee_ids == {10, 11, 12}

    def test_explicit_selection_is_verbatim(self, catalog, manager):
        scope = resolve(FilterState(employee_selection=(11,)), manager, catalog, now=NOW)
        assert scope.employee_ids == {11}


class TestProjectDefaults:
    """Assigned projects for scoped roles, no restriction for super admins."""

    @pytest.mark.parametrize("role", ["employee", "manager", "team_lead"])
    def test_scoped_roles_default_to_catalog(self, catalog, role):
        scope = resolve(FilterState(), Identity(id=10, role=role), catalog, now=NOW)
        assert scope.project_ids == {1, 2, 3}

    def test_super_admin_is_unrestricted(self, catalog, admin):
        scope = resolve(FilterState(), admin, catalog, now=NOW)
        assert scope.project_ids is None
        assert not scope.zero_result

    def test_explicit_project_is_verbatim(self, catalog, admin):
        assert resolve(FilterState(project_selection=2), admin, catalog, now=NOW).project_ids == {2}


class TestZeroResult:
    """Scopes that can only match nothing are flagged instead of sent unscoped."""

    def test_explicit_project_with_no_employees(self, manager):
        catalog = ReferenceCatalog.from_records([{"id": 3, "name": "Cygnus"}], [])
        scope = resolve(FilterState(project_selection=3), manager, catalog, now=NOW)
        assert scope.zero_result

    def test_no_assigned_projects(self, manager):
        catalog = ReferenceCatalog.from_records([], [{"id": 12, "username": "cara"}])
        assert resolve(FilterState(), manager, catalog, now=NOW).zero_result

    def test_normal_scope_is_not_zero(self, catalog, manager):
        assert not resolve(FilterState(project_selection=1), manager, catalog, now=NOW).zero_result


class TestEncoding:
    """Scopes encode to comma-joined ids and ISO dates."""

    def test_params(self, catalog, manager):
        scope = resolve(FilterState(project_selection=(2, 1), employee_selection=(11, 10)), manager, catalog, now=NOW)
        assert scope_to_params(scope) == {
            "projectId": "1,2",
            "employeeId": "10,11",
            "startDate": "2024-03-11",
            "endDate": "2024-03-15",
            "userId": "12",
            "userRole": "manager",
        }

    def test_params_without_dates_or_projects(self, catalog, admin):
        params = scope_to_params(resolve(FilterState(), admin, catalog, now=NOW), include_dates=False)
        assert "projectId" not in params
        assert "startDate" not in params

    def test_json(self, catalog, admin):
        out = scope_to_json(resolve(FilterState(employee_selection=11), admin, catalog, now=NOW))
        assert out == {
            "project_ids": None,
            "employee_ids": [11],
            "start_date": "2024-03-11",
            "end_date": "2024-03-15",
            "zero_result": False,
        }
