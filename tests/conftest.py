"""
Shared pytest fixtures: in-memory catalog and metrics sources.

No network fixtures are defined here; every source is a fake that records
the scopes it was asked for.
"""
import asyncio
from datetime import datetime

import pytest

from pmdash.catalog import ReferenceCatalog
from pmdash.identity import Identity
from pmdash.persistence import MemoryStore
from pmdash.sources import StatusDistribution, TaskTimeline, WeeklySample, WeeklySeries

# Wednesday; the work week is 2024-03-11 .. 2024-03-15.
NOW = datetime(2024, 3, 13, 10, 30)

PROJECTS = [
    {"id": 1, "name": "Apollo", "status": "active"},
    {"id": 2, "name": "Borealis", "status": "active"},
    {"id": 3, "name": "Cygnus", "status": "completed"},
]

EMPLOYEES = [
    {"id": 10, "username": "ana", "role": "employee"},
    {"id": 11, "username": "ben", "role": "employee"},
    {"id": 12, "username": "cara", "role": "team_lead"},
]

# Employees assigned per project.
PROJECT_MEMBERS = {1: [10, 11], 2: [12], 3: []}


class FakeCatalogSource:
    def __init__(self, projects=None, employees=None, members=None):
        self.projects = PROJECTS if projects is None else projects
        self.employees = EMPLOYEES if employees is None else employees
        self.members = PROJECT_MEMBERS if members is None else members
        self.employee_calls = []

    async def list_projects(self, identity):
        return list(self.projects)

    async def list_employees(self, identity, project_scope=None):
        self.employee_calls.append(project_scope)
        if not project_scope:
            return list(self.employees)
        ids = {i for p in project_scope for i in self.members.get(p, [])}
        return [e for e in self.employees if e["id"] in ids]


class GatedCatalogSource(FakeCatalogSource):
    """Catalog calls wait on events.

    Projects wait on ``("projects", identity.id)``; employees wait on the
    frozenset of requested project ids (empty for the unscoped list).
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gates = {}

    def gate(self, key):
        return self.gates.setdefault(key, asyncio.Event())

    async def list_projects(self, identity):
        await self.gate(("projects", identity.id)).wait()
        return await super().list_projects(identity)

    async def list_employees(self, identity, project_scope=None):
        await self.gate(frozenset(project_scope or ())).wait()
        return await super().list_employees(identity, project_scope)


class FakeMetricsSource:
    """Returns canned results; any part can be made to raise."""

    def __init__(self, series=None, status=None, timeline=None, fail=()):
        self.series = series if series is not None else WeeklySeries(
            samples=(
                WeeklySample(week="W10", planned_hours=30, actual_hours=25, available_hours=40, completed_count=2),
                WeeklySample(week="W11", planned_hours=35, actual_hours=35, available_hours=40, completed_count=3),
            )
        )
        self.status = status if status is not None else StatusDistribution(todo=2, in_progress=1, completed=4, blocked=1)
        self.timeline = timeline if timeline is not None else TaskTimeline.from_record(
            {"thisWeek": [{"id": 7, "title": "Design review", "assignee": "ana", "status": "todo", "estimated": 3}]}
        )
        self.fail = set(fail)
        self.scopes = []

    def _maybe_fail(self, part):
        if part in self.fail:
            raise ConnectionError(f"{part} unavailable")

    async def get_weekly_series(self, scope):
        self.scopes.append(scope)
        self._maybe_fail("weekly_series")
        return self.series

    async def get_status_distribution(self, scope):
        self._maybe_fail("status_distribution")
        return self.status

    async def get_task_timeline(self, scope):
        self._maybe_fail("task_timeline")
        return self.timeline


class GatedMetricsSource(FakeMetricsSource):
    """Each call waits on an event keyed by the requested employee ids."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gates = {}

    def gate(self, employee_ids):
        return self.gates.setdefault(frozenset(employee_ids), asyncio.Event())

    async def get_weekly_series(self, scope):
        self.scopes.append(scope)
        await self.gate(scope.employee_ids).wait()
        return WeeklySeries(
            samples=(WeeklySample(week="W11", planned_hours=float(min(scope.employee_ids)), available_hours=40),)
        )

    async def get_status_distribution(self, scope):
        await self.gate(scope.employee_ids).wait()
        return self.status

    async def get_task_timeline(self, scope):
        await self.gate(scope.employee_ids).wait()
        return self.timeline


@pytest.fixture
def catalog():
    return ReferenceCatalog.from_records(PROJECTS, EMPLOYEES)


@pytest.fixture
def manager():
    return Identity(id=12, role="manager")


@pytest.fixture
def employee():
    return Identity(id=10, role="employee")


@pytest.fixture
def admin():
    return Identity(id=1, role="super_admin")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def catalog_source():
    return FakeCatalogSource()


@pytest.fixture
def metrics_source():
    return FakeMetricsSource()
