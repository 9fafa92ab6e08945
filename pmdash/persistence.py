from __future__ import annotations

import json
import logging
from typing import Dict, Optional, Protocol

from pmdash.errors import PersistenceError
from pmdash.filters import FilterState, normalize_selection, selection_to_json

logger = logging.getLogger(__name__)

KEY_PREFIX = "filters"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """Process-local KeyValueStore."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self):
        return sorted(self._data)


def storage_key(identity_id: object) -> str:
    if identity_id is None or str(identity_id).strip() == "":
        raise ValueError("Filters can only be stored under an identity")
    return f"{KEY_PREFIX}:{identity_id}"


def encode_filters(state: FilterState) -> str:
    # Dates are never persisted: every session starts on the current week.
    return json.dumps(
        {
            "project_selection": selection_to_json(state.project_selection),
            "employee_selection": selection_to_json(state.employee_selection),
        },
        sort_keys=True,
    )


def decode_filters(payload: str) -> FilterState:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Stored filters are not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise PersistenceError(f"Stored filters must be an object, got {type(data).__name__}")
    return FilterState(
        project_selection=normalize_selection(data.get("project_selection")),
        employee_selection=normalize_selection(data.get("employee_selection")),
    )


class FilterPersistence:
    """Per-identity storage of the project and employee selections."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, identity_id: object, state: FilterState) -> None:
        self.store.set(storage_key(identity_id), encode_filters(state))

    def load(self, identity_id: object) -> Optional[FilterState]:
        key = storage_key(identity_id)
        try:
            payload = self.store.get(key)
        except Exception:
            logger.exception("Reading %s failed; starting without persisted filters", key)
            return None
        if payload is None:
            return None
        try:
            return decode_filters(payload)
        except PersistenceError as exc:
            logger.warning("Ignoring corrupt persisted filters under %s: %s", key, exc)
            return None
