from __future__ import annotations

from typing import Dict, List


class DashboardError(Exception):
    """Base class for every error raised by the dashboard engine."""


class ValidationError(DashboardError):
    """Malformed date or selection input. Recovered by falling back to defaults."""


class PersistenceError(DashboardError):
    """Stored filters could not be read back. Recovered as "no persisted state"."""


class FetchError(DashboardError):
    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = dict(failures)
        parts = ", ".join(f"{name}: {type(exc).__name__}" for name, exc in sorted(self.failures.items()))
        super().__init__(f"{self.summary} ({parts})")

    summary = "fetch failed"

    @property
    def failed_parts(self) -> List[str]:
        return sorted(self.failures)


class PartialFetchError(FetchError):
    """Some constituent fetches failed; their parts were replaced with empty collections."""

    summary = "some dashboard data could not be loaded"


class TotalFetchError(FetchError):
    """Every constituent fetch failed; the previous snapshot stays in place."""

    summary = "dashboard data could not be loaded"
