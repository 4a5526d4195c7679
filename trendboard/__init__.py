"""Core (UI-agnostic) trend dashboard logic.

This package contains:
- trend loading (Supabase REST / local dumps -> pandas)
- record normalization and filter state
- grouping, KPI and source-cluster payloads (JSON-serializable)
- chart helpers (Altair -> Vega-Lite spec dict)
- export row selection (pandas -> xlsx)
"""
