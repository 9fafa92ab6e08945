from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    CatalogModel,
    DashboardRequest,
    FiltersModel,
    IdentityModel,
    MetricsRequest,
    ResolveRequest,
    ScrubRequest,
)
from pmdash.catalog import ReferenceCatalog, load_catalog, load_employees
from pmdash.charts import dashboard_charts
from pmdash.config import config, configure_logging
from pmdash.errors import TotalFetchError
from pmdash.filters import FilterState, normalize_filters, scrub, selection_to_json
from pmdash.http_source import HttpDashboardSource
from pmdash.identity import Identity
from pmdash.metrics import compute_metrics, compute_task_stats, metrics_payload
from pmdash.orchestrator import FetchOrchestrator, Snapshot
from pmdash.persistence import FilterPersistence, MemoryStore
from pmdash.scope import resolve, scope_to_json
from pmdash.sources import WeeklySample, WeeklySeries

configure_logging(config.log_level)

app = FastAPI(title="Project Dashboard Engine API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = MemoryStore()
persistence = FilterPersistence(store)

# Replaced in tests with an in-memory source.
source_factory = HttpDashboardSource


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                frozenset: sorted,
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _filters_from_model(model: FiltersModel) -> FilterState:
    return normalize_filters(model.model_dump())


def _catalog_from_model(model: CatalogModel) -> ReferenceCatalog:
    raw = model.model_dump()
    return ReferenceCatalog.from_records(raw["projects"], raw["employees"])


def _identity_from_model(model: IdentityModel) -> Identity:
    return Identity(id=model.id, role=model.role)


def _filters_json(state: FilterState) -> dict:
    return {
        "project_id": selection_to_json(state.project_selection),
        "employee_id": selection_to_json(state.employee_selection),
        "start_date": state.start_date,
        "end_date": state.end_date,
    }


def _snapshot_json(snapshot: Snapshot) -> dict:
    return {
        "generation": snapshot.generation,
        "weekly_series": [asdict(s) for s in snapshot.weekly_series.samples],
        "status_distribution": snapshot.status_distribution.as_dict(),
        "tasks_this_week": [asdict(t) for t in snapshot.task_timeline.this_week],
        "tasks_next_week": [asdict(t) for t in snapshot.task_timeline.next_week],
        "notice": (
            {"error": str(snapshot.error), "failed_parts": snapshot.error.failed_parts}
            if snapshot.error is not None
            else None
        ),
    }


@app.get("/health")
def health():
    return _json({"status": "ok"})


@app.post("/filters/scrub")
def scrub_filters(request: ScrubRequest):
    try:
        state = _filters_from_model(request.filters)
        scrubbed = scrub(state, _catalog_from_model(request.catalog))
        return _json({"filters": _filters_json(scrubbed), "changed": scrubbed is not state})
    except Exception as exc:
        logger.exception("scrub_filters failed")
        return _error(exc)


@app.get("/filters/{identity_id}")
def load_filters(identity_id: int):
    try:
        state = persistence.load(identity_id)
        return _json({"filters": _filters_json(state) if state is not None else None})
    except Exception as exc:
        logger.exception("load_filters failed")
        return _error(exc)


@app.put("/filters/{identity_id}")
def save_filters(identity_id: int, filters: FiltersModel):
    try:
        state = _filters_from_model(filters)
        persistence.save(identity_id, state)
        return _json({"filters": _filters_json(state.without_dates())})
    except Exception as exc:
        logger.exception("save_filters failed")
        return _error(exc)


@app.post("/scope/resolve")
def resolve_scope(request: ResolveRequest):
    try:
        scope = resolve(
            _filters_from_model(request.filters),
            _identity_from_model(request.identity),
            _catalog_from_model(request.catalog),
            tz=config.tzinfo,
        )
        return _json(scope_to_json(scope))
    except Exception as exc:
        logger.exception("resolve_scope failed")
        return _error(exc)


@app.post("/metrics")
def metrics(request: MetricsRequest):
    try:
        series = WeeklySeries(
            samples=tuple(WeeklySample(**s.model_dump()) for s in request.series),
            productivity=request.productivity,
            utilization=request.utilization,
        )
        return _json(metrics_payload(compute_metrics(series)))
    except Exception as exc:
        logger.exception("metrics failed")
        return _error(exc)


@app.post("/dashboard")
async def dashboard(request: DashboardRequest):
    try:
        identity = _identity_from_model(request.identity)
        state = _filters_from_model(request.filters)
        async with source_factory(config) as source:
            catalog = await load_catalog(source, identity)
            state = scrub(state, catalog)
            if state.project_selection is not None:
                catalog = catalog.with_employees(
                    (await load_employees(source, identity, state.project_selection)).values()
                )
                state = scrub(state, catalog)
            scope = resolve(state, identity, catalog, tz=config.tzinfo)
            snapshot = await FetchOrchestrator(source).run(scope)
        payload = {
            "filters": _filters_json(state),
            "scope": scope_to_json(scope),
            "snapshot": _snapshot_json(snapshot),
            "charts": dashboard_charts(snapshot),
        }
        payload.update(
            metrics_payload(
                compute_metrics(snapshot.weekly_series),
                compute_task_stats(snapshot.status_distribution),
            )
        )
        return _json(payload)
    except TotalFetchError as exc:
        logger.exception("dashboard fetch failed")
        return _error(exc, status_code=502)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)
