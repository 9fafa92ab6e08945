from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

Selection = Optional[Union[int, List[int], str]]
Role = Literal["employee", "manager", "team_lead", "super_admin"]


class FiltersModel(BaseModel):
    project_id: Selection = None
    employee_id: Selection = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class IdentityModel(BaseModel):
    id: int
    role: Role


class ProjectModel(BaseModel):
    id: int
    name: str = ""
    status: str = "active"


class EmployeeModel(BaseModel):
    id: int
    username: str = ""
    role: str = ""


class CatalogModel(BaseModel):
    projects: List[ProjectModel] = Field(default_factory=list)
    employees: List[EmployeeModel] = Field(default_factory=list)


class ScrubRequest(BaseModel):
    filters: FiltersModel = Field(default_factory=FiltersModel)
    catalog: CatalogModel = Field(default_factory=CatalogModel)


class ResolveRequest(BaseModel):
    filters: FiltersModel = Field(default_factory=FiltersModel)
    identity: IdentityModel
    catalog: CatalogModel = Field(default_factory=CatalogModel)


class WeeklySampleModel(BaseModel):
    week: str
    planned_hours: float = 0.0
    actual_hours: Optional[float] = None
    available_hours: float = 0.0
    completed_count: int = 0
    productivity: Optional[float] = None
    utilization: Optional[float] = None


class MetricsRequest(BaseModel):
    series: List[WeeklySampleModel] = Field(default_factory=list)
    productivity: Optional[float] = None
    utilization: Optional[float] = None


class DashboardRequest(BaseModel):
    filters: FiltersModel = Field(default_factory=FiltersModel)
    identity: IdentityModel

