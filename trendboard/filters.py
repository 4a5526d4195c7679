from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

ALL = "all"
GROUP_MODES = ("week", "day", "month")
EXPORT_SCOPES = ("all", "month", "week")


@dataclass(frozen=True)
class ScoreBands:
    high: float = 0.8
    mid: float = 0.6


@dataclass(frozen=True)
class TrendFilters:
    group_by: str = "week"
    selected_slot: str = ALL
    selected_category: str = ALL
    min_score: float = 0.0
    query: str = ""


@dataclass(frozen=True)
class ExportScope:
    scope: str = "all"
    month: Optional[str] = None
    week: Optional[int] = None


def _as_float(value: object, default: float) -> float:
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if math.isnan(out):
        return default
    return out


def _as_optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_filters(raw: Optional[dict]) -> TrendFilters:
    raw = raw or {}

    group_by = str(raw.get("group_by") or "week").strip().lower()
    if group_by not in GROUP_MODES:
        group_by = "week"

    selected_slot = str(raw.get("selected_slot") or ALL).strip() or ALL
    # A slot key from another grouping mode can never match.
    if selected_slot != ALL and not selected_slot.startswith(f"{group_by}:"):
        selected_slot = ALL

    selected_category = str(raw.get("selected_category") or ALL).strip() or ALL

    min_score = max(0.0, min(1.0, _as_float(raw.get("min_score", 0.0), 0.0)))
    query = str(raw.get("query") or "").strip()

    return TrendFilters(
        group_by=group_by,
        selected_slot=selected_slot,
        selected_category=selected_category,
        min_score=min_score,
        query=query,
    )


def normalize_export_scope(raw: Optional[dict]) -> ExportScope:
    raw = raw or {}
    scope = str(raw.get("scope") or "all").strip().lower()
    if scope not in EXPORT_SCOPES:
        scope = "all"

    month = str(raw.get("month") or "").strip() or None
    week = _as_optional_int(raw.get("week"))

    if scope == "month" and month is None:
        scope = "all"
    if scope == "week" and week is None:
        scope = "all"
    return ExportScope(
        scope=scope,
        month=month if scope == "month" else None,
        week=week if scope == "week" else None,
    )
