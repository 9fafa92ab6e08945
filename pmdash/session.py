from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional

from pmdash.catalog import CatalogSource, ReferenceCatalog, load_catalog, load_employees
from pmdash.errors import PartialFetchError
from pmdash.filters import FilterState, filters_equal, is_date_only_change, scrub, selections_equal
from pmdash.identity import Identity
from pmdash.metrics import DerivedMetrics, TaskStats, compute_metrics, compute_task_stats
from pmdash.orchestrator import FetchOrchestrator, Snapshot
from pmdash.persistence import FilterPersistence, KeyValueStore
from pmdash.scope import ResolvedScope, resolve
from pmdash.sources import MetricsSource

logger = logging.getLogger(__name__)


class DashboardSession:
    """Filter state, catalog and last accepted snapshot for one viewer.

    All mutation happens on the caller's event loop in response to ``start``,
    ``commit``, ``refresh`` or ``switch_identity``. Calls may overlap: a
    catalog or employee result that arrives after a newer call has started
    is discarded, and so is a fetch superseded in the orchestrator.
    """

    def __init__(
        self,
        identity: Identity,
        catalog_source: CatalogSource,
        metrics_source: MetricsSource,
        store: KeyValueStore,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog_source = catalog_source
        self.persistence = FilterPersistence(store)
        self.orchestrator = FetchOrchestrator(metrics_source)
        self.tz = tz
        self.clock = clock
        # Count identity resets and employee reloads; catalog results
        # that come back under an older value are dropped.
        self._epoch = 0
        self._employee_request = 0
        self._reset(identity)

    def _reset(self, identity: Identity) -> None:
        self._epoch += 1
        self._identity = identity
        self._filters = FilterState()
        self._catalog = ReferenceCatalog()
        self._metrics = DerivedMetrics()
        self._task_stats = TaskStats()
        self.orchestrator.reset()

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def catalog(self) -> ReferenceCatalog:
        return self._catalog

    @property
    def snapshot(self) -> Snapshot:
        return self.orchestrator.snapshot

    @property
    def metrics(self) -> DerivedMetrics:
        return self._metrics

    @property
    def task_stats(self) -> TaskStats:
        return self._task_stats

    @property
    def notice(self) -> Optional[PartialFetchError]:
        """Recoverable error from the last accepted fetch, if any."""
        return self.snapshot.error

    def resolve_scope(self) -> ResolvedScope:
        now = self.clock() if self.clock is not None else None
        return resolve(self._filters, self._identity, self._catalog, tz=self.tz, now=now)

    async def start(self) -> Optional[Snapshot]:
        """Load the catalog, restore persisted selections and run the first fetch."""
        identity = self._identity
        epoch = self._epoch
        catalog = await load_catalog(self.catalog_source, identity)
        if epoch != self._epoch:
            logger.debug("Dropping catalog for identity %s; session was reset", identity.id)
            return None
        self._catalog = catalog
        restored = self.persistence.load(identity.id) or FilterState()
        self._filters = scrub(restored, self._catalog)
        if self._filters.project_selection is not None:
            if not await self._reload_employees():
                return None
            self._filters = scrub(self._filters, self._catalog)
        logger.info("Session started for identity %s with filters %s", identity.id, self._filters)
        return await self._run()

    async def commit(self, **changes) -> Optional[Snapshot]:
        """Apply a user filter edit.

        Persists the selections, reloads project-dependent employees when the
        project selection moved, and refetches unless only dates changed.
        Returns the new snapshot when a fetch ran and was accepted, and None
        when the edit was superseded by a newer edit or an identity switch.
        """
        old = self._filters
        new = old.with_changes(**changes)
        if filters_equal(old, new):
            return None
        self._filters = new

        if not selections_equal(old.project_selection, new.project_selection):
            if not await self._reload_employees():
                return None
            self._filters = scrub(self._filters, self._catalog)
        self.persistence.save(self._identity.id, self._filters)

        if is_date_only_change(old, self._filters):
            logger.debug("Date-only change for identity %s; waiting for refresh", self._identity.id)
            return None
        return await self._run()

    async def refresh(self) -> Optional[Snapshot]:
        return await self._run()

    async def switch_identity(self, identity: Identity) -> Optional[Snapshot]:
        """Drop everything owned by the previous identity and start over."""
        logger.info("Switching identity %s -> %s", self._identity.id, identity.id)
        self._reset(identity)
        return await self.start()

    async def _reload_employees(self) -> bool:
        """Refresh employees for the current project selection.

        Returns False when a newer reload or an identity reset has started in
        the meantime; the catalog is left untouched and the caller must stop.
        """
        identity = self._identity
        epoch = self._epoch
        self._employee_request += 1
        request = self._employee_request
        selection = self._filters.project_selection
        try:
            employees = await load_employees(self.catalog_source, identity, selection)
        except Exception:
            logger.exception("Reloading employees for identity %s failed; keeping previous list", identity.id)
            employees = None
        if epoch != self._epoch or request != self._employee_request:
            logger.debug("Dropping stale employee list for projects %s", selection)
            return False
        if employees is not None:
            self._catalog = self._catalog.with_employees(employees.values())
        return True

    async def _run(self) -> Optional[Snapshot]:
        snapshot = await self.orchestrator.run(self.resolve_scope())
        if snapshot is not None:
            self._metrics = compute_metrics(snapshot.weekly_series)
            self._task_stats = compute_task_stats(snapshot.status_distribution)
        return snapshot
