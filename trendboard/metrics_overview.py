from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from trendboard.charts import BAND_COLORS, SPOTIFY_GREEN, to_vega_spec
from trendboard.filters import ScoreBands, TrendFilters
from trendboard.formatting import NO_VALUE, category_label, format_avg_score

HISTOGRAM_SIZE = 6
BAND_NAMES = {"high": "High", "mid": "Mid", "low": "Low"}


def _scores(df: pd.DataFrame) -> pd.Series:
    if df.empty or "relevance_score" not in df.columns:
        return pd.Series(dtype="float64")
    return pd.to_numeric(df["relevance_score"], errors="coerce")


def score_bands(df: pd.DataFrame, bands: ScoreBands = ScoreBands()) -> Dict[str, int]:
    # Thresholds apply to the raw score; absent counts as 0 and lands in Low.
    scores = _scores(df).fillna(0)
    return {
        "high": int((scores >= bands.high).sum()),
        "mid": int(((scores >= bands.mid) & (scores < bands.high)).sum()),
        "low": int((scores < bands.mid).sum()),
    }


def average_score(df: pd.DataFrame) -> Optional[float]:
    present = _scores(df).dropna()
    if present.empty:
        return None
    return float(present.mean())


def category_counts(df: pd.DataFrame) -> pd.Series:
    """Records per category label, highest first; ties keep first-seen order."""
    if df.empty:
        return pd.Series(dtype="int64")
    cats = df["category"].map(category_label)
    counts = cats.groupby(cats, sort=False).size()
    return counts.sort_values(ascending=False, kind="stable")


def compute_kpis(df: pd.DataFrame, bands: ScoreBands = ScoreBands()) -> Dict[str, Any]:
    counts = category_counts(df)
    band_counts = score_bands(df, bands)
    avg = average_score(df)
    return {
        "count": int(len(df)),
        "avg_score": avg,
        "avg_score_display": format_avg_score(avg),
        "high_priority": band_counts["high"],
        "bands": band_counts,
        "top_category": str(counts.index[0]) if not counts.empty else NO_VALUE,
        "category_histogram": [
            {"name": str(name), "value": int(value)} for name, value in counts.head(HISTOGRAM_SIZE).items()
        ],
    }


def score_distribution(band_counts: Dict[str, int]) -> Dict[str, Any]:
    """Donut shares in percent; an empty set yields 0% per band."""
    total = sum(band_counts.get(k, 0) for k in BAND_NAMES)
    denominator = max(1, total)
    shares = {k: band_counts.get(k, 0) / denominator * 100 for k in BAND_NAMES}

    stops: List[Dict[str, Any]] = []
    start = 0.0
    for key in BAND_NAMES:
        end = start + shares[key]
        stops.append({"band": key, "start": start, "end": end})
        start = end
    if total > 0:
        stops[-1]["end"] = 100.0
    return {"total": total, "shares": shares, "stops": stops}


def _category_chart(histogram: List[Dict[str, Any]]) -> Dict[str, Any]:
    data = pd.DataFrame(histogram, columns=["name", "value"])
    chart = (
        alt.Chart(data)
        .mark_bar(cornerRadiusEnd=4, color=SPOTIFY_GREEN)
        .encode(
            x=alt.X("value:Q", title="Trends", axis=alt.Axis(format="d", tickMinStep=1)),
            y=alt.Y("name:N", title=None, sort="-x"),
            tooltip=[alt.Tooltip("name:N", title="Kategorie"), alt.Tooltip("value:Q", title="Trends")],
        )
    )
    return to_vega_spec(chart)


def _distribution_chart(band_counts: Dict[str, int], distribution: Dict[str, Any]) -> Dict[str, Any]:
    data = pd.DataFrame(
        [
            {"band": BAND_NAMES[k], "count": band_counts[k], "share": distribution["shares"][k] / 100}
            for k in BAND_NAMES
        ]
    )
    chart = (
        alt.Chart(data)
        .mark_arc(innerRadius=55)
        .encode(
            theta=alt.Theta("count:Q", stack=True),
            color=alt.Color(
                "band:N",
                title="Score",
                scale=alt.Scale(domain=list(BAND_COLORS), range=list(BAND_COLORS.values())),
            ),
            tooltip=[
                alt.Tooltip("band:N", title="Band"),
                alt.Tooltip("count:Q", title="Trends"),
                alt.Tooltip("share:Q", title="Anteil", format=".0%"),
            ],
        )
    )
    return to_vega_spec(chart)


def compute_overview(filters: TrendFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    kpis = compute_kpis(filtered)
    distribution = score_distribution(kpis["bands"])

    charts: Dict[str, Any] = {
        "category_bars": _category_chart(kpis["category_histogram"]),
        "score_donut": _distribution_chart(kpis["bands"], distribution),
    }

    return {
        "filters": asdict(filters),
        "current_week": ctx.get("current_week"),
        "previous_week": ctx.get("previous_week"),
        "kpis": kpis,
        "distribution": distribution,
        "charts": charts,
        "error": ctx.get("error"),
    }
