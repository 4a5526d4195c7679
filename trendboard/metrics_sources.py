from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import pandas as pd

from trendboard.filters import ALL, TrendFilters
from trendboard.formatting import clean_text
from trendboard.metrics_groups import group_trends, trend_cards
from trendboard.metrics_overview import compute_kpis

UNKNOWN_SOURCE = "Unbekannte Quelle"
EXPANDED_MAX_MEMBERS = 3


def source_domain(url: object) -> Optional[str]:
    text = clean_text(url)
    if not text:
        return None
    try:
        host = urlparse(text).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def source_label(newsletter_source: object, url: object) -> str:
    return clean_text(newsletter_source) or source_domain(url) or UNKNOWN_SOURCE


def clustering_enabled(filters: TrendFilters) -> bool:
    # Splitting an already narrowed result set only fragments it.
    return not filters.query.strip() and filters.selected_category == ALL


def cluster_by_source(items: pd.DataFrame) -> List[Dict[str, Any]]:
    """Split one bucket by origin; biggest cluster first, ties in first-seen order."""
    if items.empty:
        return []
    labels = pd.Series(
        [source_label(n, u) for n, u in zip(items["newsletter_source"], items["url"])],
        index=items.index,
        dtype=object,
    )
    clusters = []
    for source, members in items.groupby(labels, sort=False):
        kpis = compute_kpis(members)
        clusters.append(
            {
                "source": str(source),
                "count": int(len(members)),
                "expanded": len(members) <= EXPANDED_MAX_MEMBERS,
                "bands": kpis["bands"],
                "top_category": kpis["top_category"],
                "avg_score": kpis["avg_score"],
                "items": members,
            }
        )
    return sorted(clusters, key=lambda c: c["count"], reverse=True)


def compute_sources(filters: TrendFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    enabled = clustering_enabled(filters)

    groups = []
    for group in group_trends(filtered, filters.group_by):
        entry: Dict[str, Any] = {
            "key": group["key"],
            "label": group["label"],
            "count": int(len(group["items"])),
            "clusters": None,
            "items": None,
        }
        if enabled:
            entry["clusters"] = [
                {**{k: v for k, v in c.items() if k != "items"}, "items": trend_cards(c["items"])}
                for c in cluster_by_source(group["items"])
            ]
        else:
            entry["items"] = trend_cards(group["items"])
        groups.append(entry)

    return {
        "filters": asdict(filters),
        "clustered": enabled,
        "groups": groups,
        "error": ctx.get("error"),
    }
