from __future__ import annotations

import io
import os
from typing import Any, Dict, List

import pandas as pd

from trendboard.data import slot_keys
from trendboard.filters import ExportScope
from trendboard.formatting import as_score, category_label, clamp01, clean_text

EXPORT_COLUMNS = ["Score", "Kategorie", "Thema", "Relevanz", "Zusammenfassung", "Quelle", "Seite"]
DEFAULT_SOURCE_LABEL = "Trend Radar"
PAGE_PLACEHOLDER = "–"
SHEET_NAME = "Trends"


def export_source_label() -> str:
    return (os.environ.get("TRENDS_EXPORT_SOURCE_LABEL") or "").strip() or DEFAULT_SOURCE_LABEL


def select_export_trends(trends: pd.DataFrame, scope: ExportScope) -> pd.DataFrame:
    """Records covered by the export scope, in snapshot order.

    Works on the full normalized snapshot; live display filters do not apply.
    """
    if trends.empty or scope.scope == "all":
        return trends
    if scope.scope == "month":
        return trends[slot_keys(trends, "month").eq(f"month:{scope.month}")]
    if scope.scope == "week":
        weeks = pd.to_numeric(trends["week_number"], errors="coerce")
        return trends[weeks.eq(scope.week).fillna(False).astype(bool)]
    return trends.iloc[0:0]


def export_rows(selected: pd.DataFrame, source_label: str | None = None) -> pd.DataFrame:
    source_label = source_label or export_source_label()
    rows: List[Dict[str, Any]] = []
    for _, r in selected.iterrows():
        score = as_score(r.get("relevance_score"))
        rows.append(
            {
                "Score": round(clamp01(score), 2) if score is not None else None,
                "Kategorie": category_label(r.get("category")),
                "Thema": clean_text(r.get("topic")),
                "Relevanz": clean_text(r.get("spotify_impact")),
                "Zusammenfassung": clean_text(r.get("summary")),
                "Quelle": source_label,
                "Seite": PAGE_PLACEHOLDER,
            }
        )
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_filename(scope: ExportScope) -> str:
    if scope.scope == "month" and scope.month:
        return f"trends_{scope.month}.xlsx"
    if scope.scope == "week" and scope.week is not None:
        return f"trends_KW{scope.week}.xlsx"
    return "trends_alle.xlsx"


def export_workbook(rows: pd.DataFrame, sheet_name: str = SHEET_NAME) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        rows.to_excel(writer, sheet_name=sheet_name, index=False)
    return buf.getvalue()


def export_scope_options(trends: pd.DataFrame) -> Dict[str, List[Any]]:
    if trends.empty:
        return {"months": [], "weeks": []}
    months = sorted(
        {k.split(":", 1)[1] for k in slot_keys(trends, "month") if not k.endswith(":unknown")},
        reverse=True,
    )
    weeks = pd.to_numeric(trends["week_number"], errors="coerce").dropna()
    return {"months": months, "weeks": sorted({int(w) for w in weeks if w > 0}, reverse=True)}
