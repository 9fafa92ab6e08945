from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from pmdash.errors import PartialFetchError, TotalFetchError
from pmdash.scope import ResolvedScope
from pmdash.sources import (
    MetricsSource,
    StatusDistribution,
    TaskTimeline,
    WeeklySeries,
    as_weekly_series,
)

logger = logging.getLogger(__name__)

PARTS = ("weekly_series", "status_distribution", "task_timeline")


@dataclass(frozen=True)
class Snapshot:
    """Merged result of one fetch cycle."""

    generation: int = 0
    scope: Optional[ResolvedScope] = None
    weekly_series: WeeklySeries = field(default_factory=WeeklySeries)
    status_distribution: StatusDistribution = field(default_factory=StatusDistribution)
    task_timeline: TaskTimeline = field(default_factory=TaskTimeline)
    # Set when some parts failed and were replaced with empty collections.
    error: Optional[PartialFetchError] = None


def _coerce(name: str, value: object):
    if name == "weekly_series":
        return as_weekly_series(value)
    if name == "status_distribution":
        return value if isinstance(value, StatusDistribution) else StatusDistribution.from_record(value)  # type: ignore[arg-type]
    return value if isinstance(value, TaskTimeline) else TaskTimeline.from_record(value)  # type: ignore[arg-type]


class FetchOrchestrator:
    """Runs the queries a scope implies and fences their results by generation.

    Every ``run`` takes the next generation number. A result is accepted only
    if no newer run has started by the time it arrives; otherwise it is
    dropped and ``run`` returns None. In-flight transport calls are never
    aborted, only their effect is discarded.
    """

    def __init__(self, source: MetricsSource):
        self.source = source
        self._generation = 0
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        """Last accepted snapshot."""
        return self._snapshot

    def reset(self) -> None:
        """Forget the accepted snapshot and supersede anything in flight."""
        self._generation += 1
        self._snapshot = Snapshot(generation=self._generation)

    async def _fetch_all(self, scope: ResolvedScope) -> Dict[str, object]:
        results = await asyncio.gather(
            self.source.get_weekly_series(scope),
            self.source.get_status_distribution(scope),
            self.source.get_task_timeline(scope),
            return_exceptions=True,
        )
        return dict(zip(PARTS, results))

    async def run(self, scope: ResolvedScope) -> Optional[Snapshot]:
        self._generation += 1
        generation = self._generation

        if scope.zero_result:
            results: Dict[str, object] = {name: None for name in PARTS}
        else:
            results = await self._fetch_all(scope)

        if generation != self._generation:
            logger.debug("Dropping result of generation %d; generation %d is current", generation, self._generation)
            return None

        failures: Dict[str, BaseException] = {}
        parts: Dict[str, object] = {}
        for name in PARTS:
            value = results[name]
            if isinstance(value, BaseException):
                failures[name] = value
                value = None
            else:
                try:
                    value = _coerce(name, value)
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    failures[name] = exc
                    value = None
            parts[name] = _coerce(name, None) if value is None else value

        if len(failures) == len(PARTS):
            error = TotalFetchError(failures)
            logger.error("Generation %d failed: %s", generation, error)
            raise error

        partial = PartialFetchError(failures) if failures else None
        if partial is not None:
            logger.warning("Generation %d partially failed: %s", generation, partial)

        self._snapshot = Snapshot(generation=generation, scope=scope, error=partial, **parts)
        return self._snapshot
