from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from pmdash.config import EngineConfig, config as default_config
from pmdash.identity import Identity
from pmdash.scope import ResolvedScope, scope_to_params
from pmdash.sources import (
    StatusDistribution,
    TaskTimeline,
    WeeklySeries,
    weekly_series_from_payload,
)

logger = logging.getLogger(__name__)


class HttpDashboardSource:
    """CatalogSource and MetricsSource backed by the dashboard REST API.

    Use as an async context manager so the underlying ``httpx.AsyncClient``
    is closed. Timeouts are enforced by the client.
    """

    def __init__(self, cfg: Optional[EngineConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = cfg or default_config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpDashboardSource":
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url.rstrip("/"),
                timeout=self.config.request_timeout,
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        if self._client is None:
            raise RuntimeError("HttpDashboardSource must be used inside 'async with'")
        response = await self._client.get(path, params=dict(params or {}))
        response.raise_for_status()
        return response.json()

    # CatalogSource

    async def list_projects(self, identity: Identity) -> List[Dict[str, Any]]:
        if identity.is_employee:
            return await self._get(f"/users/{identity.id}/projects")
        if identity.is_super_admin:
            return await self._get("/dashboard/projects")
        return await self._get("/dashboard/projects", {"userId": str(identity.id), "userRole": identity.role})

    async def list_employees(
        self, identity: Identity, project_scope: Optional[Sequence[int]] = None
    ) -> List[Dict[str, Any]]:
        params = {"userId": str(identity.id), "userRole": identity.role}
        if project_scope:
            params["projectId"] = ",".join(str(i) for i in project_scope)
        return await self._get("/dashboard/employees", params)

    # MetricsSource

    async def get_weekly_series(self, scope: ResolvedScope) -> WeeklySeries:
        payload = await self._get("/dashboard/data", scope_to_params(scope))
        return weekly_series_from_payload(payload or {})

    async def get_status_distribution(self, scope: ResolvedScope) -> StatusDistribution:
        # Task status covers every task in scope regardless of dates.
        payload = await self._get("/dashboard/task-status", scope_to_params(scope, include_dates=False))
        return StatusDistribution.from_record(payload)

    async def get_task_timeline(self, scope: ResolvedScope) -> TaskTimeline:
        params = scope_to_params(scope, include_dates=False)
        params.pop("userRole", None)
        if scope.identity is not None:
            params["role"] = scope.identity.role
        payload = await self._get("/dashboard/tasks-timeline", params)
        return TaskTimeline.from_record(payload)
