from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Mapping

import pandas as pd

from trendboard.data import frame_records, slot_keys, slot_label, sort_slot_keys
from trendboard.filters import TrendFilters
from trendboard.formatting import category_label, category_tone, format_score, score_tone, trend_preview, trend_title


def group_trends(df: pd.DataFrame, group_by: str) -> List[Dict[str, Any]]:
    """Partition records into labelled time buckets, newest first, unknown last.

    Records keep their incoming order inside each bucket.
    """
    if df.empty:
        return []

    keys = slot_keys(df, group_by)
    by_key = {key: items for key, items in df.groupby(keys, sort=False)}

    groups: Dict[str, Dict[str, Any]] = {}
    for key in sort_slot_keys(by_key, group_by):
        label = slot_label(key, group_by)
        if label in groups:
            members = groups[label]["items"].index.union(by_key[key].index)
            groups[label]["items"] = df[df.index.isin(members)]
            continue
        groups[label] = {"key": key, "label": label, "items": by_key[key]}
    return list(groups.values())


def toggle_expanded(state: Mapping[str, bool], record_id: Any) -> Dict[str, bool]:
    key = str(record_id)
    updated = dict(state)
    updated[key] = not state.get(key, False)
    return updated


def trend_cards(items: pd.DataFrame, expanded: Mapping[str, bool] | None = None) -> List[Dict[str, Any]]:
    expanded = expanded or {}
    cards = []
    for record in frame_records(items):
        category = category_label(record.get("category"))
        cards.append(
            {
                **record,
                "title": trend_title(record.get("topic"), record.get("summary")),
                "preview": trend_preview(record.get("summary")),
                "category_label": category,
                "category_tone": category_tone(category),
                "score_display": format_score(record.get("relevance_score")),
                "score_tone": score_tone(record.get("relevance_score")),
                "expanded": bool(expanded.get(str(record.get("id")), False)),
            }
        )
    return cards


def compute_groups(
    filters: TrendFilters,
    ctx: Dict[str, Any],
    *,
    expanded: Mapping[str, bool] | None = None,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    groups = group_trends(filtered, filters.group_by)
    return {
        "filters": asdict(filters),
        "total": int(len(filtered)),
        "slot_options": ctx.get("slot_options", []),
        "categories": ctx.get("categories", []),
        "groups": [
            {
                "key": g["key"],
                "label": g["label"],
                "count": int(len(g["items"])),
                "items": trend_cards(g["items"], expanded),
            }
            for g in groups
        ],
        "error": ctx.get("error"),
    }
