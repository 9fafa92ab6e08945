"""
Tests for filter normalization, value equality and scrubbing.
"""
import pytest

from pmdash.catalog import ReferenceCatalog
from pmdash.filters import (
    FilterState,
    filters_equal,
    is_date_only_change,
    normalize_filters,
    normalize_selection,
    scrub,
    selections_equal,
)


class TestNormalizeSelection:
    """Raw selection input is coerced without raising."""

    @pytest.mark.parametrize("raw", [None, "", "all", "ALL", [], ()])
    def test_empty_means_no_selection(self, raw):
        assert normalize_selection(raw) is None

    def test_single_id_forms(self):
        assert normalize_selection(5) == 5
        assert normalize_selection("5") == 5
        assert normalize_selection(" 7 ") == 7

    def test_comma_string_becomes_array(self):
        assert normalize_selection("3,5") == (3, 5)

    def test_one_element_array_keeps_array_shape(self):
        assert normalize_selection([4]) == (4,)

    def test_invalid_entries_are_dropped(self):
        assert normalize_selection([1, "x", None, 2, 1]) == (1, 2)
        assert normalize_selection("abc") is None
        assert normalize_selection(True) is None

    def test_sets_are_sorted(self):
        assert normalize_selection({9, 2, 10}) == (2, 9, 10)


class TestEquality:
    """Selections compare by sorted id set, not by identity or order."""

    def test_order_insensitive(self):
        assert selections_equal((3, 1), (1, 3))

    def test_single_equals_one_element_array(self):
        assert selections_equal(5, (5,))

    def test_none_differs_from_id(self):
        assert not selections_equal(None, 1)

    def test_filters_equal_compares_dates(self):
        a = FilterState(project_selection=(1, 2), start_date="2024-03-01")
        b = FilterState(project_selection=(2, 1), start_date="2024-03-01")
        c = FilterState(project_selection=(2, 1), start_date="2024-03-04")
        assert filters_equal(a, b)
        assert not filters_equal(a, c)

    def test_date_only_change(self):
        old = FilterState(project_selection=1, start_date="2024-03-01")
        assert is_date_only_change(old, old.with_changes(start_date="2024-03-04"))
        assert not is_date_only_change(old, old.with_changes(project_selection=2, start_date="2024-03-04"))
        assert not is_date_only_change(old, old)


class TestScrub:
    """Ids missing from the catalog are removed, shape is preserved."""

    def test_removes_unknown_single_id(self, catalog):
        state = FilterState(project_selection=99, employee_selection=10)
        out = scrub(state, catalog)
        assert out.project_selection is None
        assert out.employee_selection == 10

    def test_array_is_not_collapsed_to_single(self, catalog):
        state = FilterState(employee_selection=(10, 99))
        assert scrub(state, catalog).employee_selection == (10,)

    def test_emptied_array_becomes_none(self, catalog):
        state = FilterState(project_selection=(98, 99))
        assert scrub(state, catalog).project_selection is None

    def test_dates_untouched(self, catalog):
        state = FilterState(project_selection=99, start_date="2024-03-01", end_date="bogus")
        out = scrub(state, catalog)
        assert out.start_date == "2024-03-01"
        assert out.end_date == "bogus"

    def test_unchanged_state_returns_same_object(self, catalog):
        state = FilterState(project_selection=(1, 2), employee_selection=11)
        assert scrub(state, catalog) is state

    @pytest.mark.parametrize(
        "state",
        [
            FilterState(),
            FilterState(project_selection=(1, 99, 2), employee_selection=(99,)),
            FilterState(project_selection=3, employee_selection=(12, 10, 77)),
            FilterState(project_selection=42, employee_selection=42),
        ],
    )
    def test_idempotent(self, catalog, state):
        once = scrub(state, catalog)
        assert scrub(once, catalog) == once

    def test_empty_catalog_clears_everything(self):
        state = FilterState(project_selection=(1, 2), employee_selection=10)
        out = scrub(state, ReferenceCatalog())
        assert out.project_selection is None
        assert out.employee_selection is None


class TestNormalizeFilters:
    """Raw dicts from requests or storage map onto FilterState."""

    def test_camel_case_keys(self):
        state = normalize_filters({"projectId": [1, 2], "employeeId": "10", "startDate": "2024-03-01"})
        assert state == FilterState(project_selection=(1, 2), employee_selection=10, start_date="2024-03-01")

    def test_blank_dates_become_none(self):
        state = normalize_filters({"start_date": "  ", "end_date": None})
        assert state.start_date is None
        assert state.end_date is None

    def test_with_changes_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            FilterState().with_changes(team="x")
