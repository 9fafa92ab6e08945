"""Core (UI-agnostic) project dashboard logic.

This package contains:
- reference catalog loading (projects / employees visible to a viewer)
- filter state normalization, scrubbing and per-identity persistence
- scope resolution (date, employee and project defaults per role)
- concurrent fetch orchestration with generation fencing
- derived metrics and chart helpers (Altair -> Vega-Lite spec dict)
"""
