from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Protocol, Sequence

from pmdash.filters import SelectionValue, selection_ids
from pmdash.identity import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Project:
    id: int
    name: str = ""
    status: str = "active"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Project":
        return cls(
            id=int(record["id"]),
            name=str(record.get("name") or ""),
            status=str(record.get("status") or "active"),
        )


@dataclass(frozen=True)
class Employee:
    id: int
    username: str = ""
    role: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Employee":
        return cls(
            id=int(record["id"]),
            username=str(record.get("username") or record.get("name") or ""),
            role=str(record.get("role") or ""),
        )


class CatalogSource(Protocol):
    async def list_projects(self, identity: Identity) -> Sequence[Mapping[str, Any]]:
        ...

    async def list_employees(
        self, identity: Identity, project_scope: Optional[Sequence[int]] = None
    ) -> Sequence[Mapping[str, Any]]:
        ...


def _index(records: Iterable[Any], record_type) -> Dict[int, Any]:
    out: Dict[int, Any] = {}
    for record in records or []:
        item = record if isinstance(record, record_type) else record_type.from_record(record)
        out[item.id] = item
    return out


@dataclass(frozen=True)
class ReferenceCatalog:
    """Read-only snapshot of the projects and employees a viewer may select.

    Both mappings arrive already scoped to the viewer by the backend. The
    employee mapping reflects the current project selection and is replaced
    whenever that selection changes.
    """

    projects: Mapping[int, Project] = field(default_factory=dict)
    employees: Mapping[int, Employee] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        projects: Iterable[Any] = (),
        employees: Iterable[Any] = (),
    ) -> "ReferenceCatalog":
        return cls(projects=_index(projects, Project), employees=_index(employees, Employee))

    @property
    def project_ids(self) -> FrozenSet[int]:
        return frozenset(self.projects)

    @property
    def employee_ids(self) -> FrozenSet[int]:
        return frozenset(self.employees)

    def with_employees(self, employees: Iterable[Any]) -> "ReferenceCatalog":
        return ReferenceCatalog(projects=self.projects, employees=_index(employees, Employee))


def project_scope(selection: SelectionValue) -> Optional[Sequence[int]]:
    ids = selection_ids(selection)
    return list(ids) if ids else None


async def load_employees(
    source: CatalogSource, identity: Identity, project_selection: SelectionValue = None
) -> Dict[int, Employee]:
    records = await source.list_employees(identity, project_scope(project_selection))
    return _index(records, Employee)


async def load_catalog(
    source: CatalogSource, identity: Identity, project_selection: SelectionValue = None
) -> ReferenceCatalog:
    """Fetch projects and employees for ``identity`` concurrently."""
    projects, employees = await asyncio.gather(
        source.list_projects(identity),
        source.list_employees(identity, project_scope(project_selection)),
    )
    catalog = ReferenceCatalog.from_records(projects, employees)
    logger.debug(
        "Loaded catalog for identity %s: %d projects, %d employees",
        identity.id,
        len(catalog.projects),
        len(catalog.employees),
    )
    return catalog
