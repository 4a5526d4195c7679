from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
import requests

from trendboard.dates import current_and_previous_week, day_key, iso_week, month_key, parse_date_or_none
from trendboard.filters import ALL, TrendFilters, normalize_filters
from trendboard.formatting import clamp01, clean_text

logger = logging.getLogger(__name__)

TREND_COLUMNS = [
    "id",
    "topic",
    "category",
    "relevance_score",
    "summary",
    "spotify_impact",
    "url",
    "published_date",
    "week_number",
    "newsletter_source",
]
TEXT_SIGNAL_COLUMNS = ["topic", "summary", "spotify_impact", "url", "category", "published_date"]
SEARCH_COLUMNS = ["topic", "summary", "category"]

DEFAULT_SELECT = "id, topic, category, relevance_score, summary, spotify_impact, url, published_date, week_number"
DEFAULT_FETCH_LIMIT = 400
DEFAULT_TIMEOUT_S = 15.0
MAX_WEEK_NUMBER = 2**31 - 1

UNKNOWN_LABELS = {"week": "Ohne KW", "day": "Ohne Datum", "month": "Ohne Monat"}
GERMAN_MONTHS = (
    "Januar",
    "Februar",
    "März",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Dezember",
)


class TrendFetchError(RuntimeError):
    """Upstream trend source could not deliver a snapshot."""


@dataclass(frozen=True)
class SupabaseSettings:
    url: str = ""
    anon_key: str = ""
    table: str = "trends"
    select: str = DEFAULT_SELECT
    limit: int = DEFAULT_FETCH_LIMIT
    timeout_s: float = DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        limit = os.environ.get("TRENDS_FETCH_LIMIT", "")
        try:
            limit_value = int(limit) if limit.strip() else DEFAULT_FETCH_LIMIT
        except ValueError:
            limit_value = DEFAULT_FETCH_LIMIT
        return cls(
            url=os.environ.get("SUPABASE_URL", "").strip().rstrip("/"),
            anon_key=os.environ.get("SUPABASE_ANON_KEY", "").strip(),
            table=os.environ.get("SUPABASE_TRENDS_TABLE", "").strip() or "trends",
            select=os.environ.get("TRENDS_SELECT", "").strip() or DEFAULT_SELECT,
            limit=max(1, limit_value),
        )

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)


@dataclass(frozen=True)
class SourceConfig:
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)
    trends_file: Optional[Path] = None
    refresh_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "SourceConfig":
        trends_file = os.environ.get("TRENDS_FILE", "").strip()
        try:
            refresh = float(os.environ.get("TRENDS_REFRESH_SECONDS", "30") or 30)
        except ValueError:
            refresh = 30.0
        return cls(
            supabase=SupabaseSettings.from_env(),
            trends_file=Path(trends_file) if trends_file else None,
            refresh_seconds=max(0.0, refresh),
        )


# ---------- upstream source ----------

def fetch_trends(settings: SupabaseSettings, session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    """Read the newest trend rows through the Supabase REST endpoint."""
    if not settings.configured:
        raise TrendFetchError("Supabase env vars fehlen. Bitte setze SUPABASE_URL und SUPABASE_ANON_KEY.")

    http = session or requests.Session()
    try:
        resp = http.get(
            f"{settings.url}/rest/v1/{settings.table}",
            params={
                "select": settings.select.replace(" ", ""),
                "order": "published_date.desc,relevance_score.desc",
                "limit": str(settings.limit),
            },
            headers={
                "apikey": settings.anon_key,
                "Authorization": f"Bearer {settings.anon_key}",
                "Accept": "application/json",
            },
            timeout=settings.timeout_s,
        )
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as exc:
        raise TrendFetchError(f"Trends konnten nicht geladen werden: {exc}") from exc
    except ValueError as exc:
        raise TrendFetchError("Antwort von Supabase ist kein gültiges JSON.") from exc

    if not isinstance(data, list):
        raise TrendFetchError("Antwort von Supabase ist keine Liste.")
    logger.debug("fetched %d trend rows from %s", len(data), settings.table)
    return data


def load_trends_file(path: Path) -> List[Dict[str, Any]]:
    """Load a trend dump (JSON, CSV or XLSX), ordered like the upstream query."""
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            df = pd.read_json(path, orient="records", dtype=False, convert_dates=False)
        elif suffix == ".csv":
            df = pd.read_csv(path)
        elif suffix in {".xlsx", ".xls"}:
            df = pd.read_excel(path)
        else:
            raise TrendFetchError(f"Unbekanntes Dateiformat: {path.name}")
    except (OSError, ValueError) as exc:
        raise TrendFetchError(f"Trend-Datei {path.name} konnte nicht gelesen werden: {exc}") from exc
    return frame_records(sort_trends(trends_frame(df)))


def load_raw_trends(config: SourceConfig) -> List[Dict[str, Any]]:
    if config.trends_file is not None:
        return load_trends_file(config.trends_file)
    return fetch_trends(config.supabase)


# ---------- normalization ----------

def trends_frame(raw: Iterable[Any] | pd.DataFrame | None) -> pd.DataFrame:
    if isinstance(raw, pd.DataFrame):
        df = raw.copy()
    else:
        rows = [dict(r) for r in (raw or []) if isinstance(r, Mapping)]
        df = pd.DataFrame(rows)
    for col in TREND_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    out = df.astype(object).where(df.notna(), None)
    return out.to_dict(orient="records")


def _has_text(series: pd.Series) -> pd.Series:
    return series.map(clean_text).ne("")


def _week_numbers(df: pd.DataFrame) -> pd.Series:
    weeks = pd.to_numeric(df["week_number"], errors="coerce").astype("float64")
    weeks = weeks.where(np.isfinite(weeks) & (weeks == np.floor(weeks)) & (weeks.abs() <= MAX_WEEK_NUMBER))

    parsed = [parse_date_or_none(v) for v in df["published_date"]]
    derived = pd.Series(
        [float(iso_week(ts)) if ts is not None else np.nan for ts in parsed],
        index=df.index,
        dtype="float64",
    )
    return weeks.fillna(derived).astype("Int64")


def normalize_trends(raw: Iterable[Any] | pd.DataFrame | None) -> pd.DataFrame:
    """Derive missing week numbers and drop records without any usable field.

    Returns a new frame in input order; the input is never modified.
    """
    df = trends_frame(raw)
    if df.empty:
        return df.reset_index(drop=True)

    df["relevance_score"] = pd.to_numeric(df["relevance_score"], errors="coerce").astype("float64")
    df["week_number"] = _week_numbers(df)

    signal = df["relevance_score"].notna() | (df["week_number"].fillna(0) > 0).astype(bool)
    for col in TEXT_SIGNAL_COLUMNS:
        signal |= _has_text(df[col])
    df = df[signal]

    dropped = len(signal) - len(df)
    if dropped:
        logger.debug("normalize_trends dropped %d empty records", dropped)
    return df.reset_index(drop=True)


def sort_trends(df: pd.DataFrame) -> pd.DataFrame:
    """Newest first, then highest score; absent values first like PostgREST `desc`."""
    if df.empty:
        return df
    keyed = df.assign(
        _published=[parse_date_or_none(v) for v in df["published_date"]],
        _score=pd.to_numeric(df["relevance_score"], errors="coerce"),
    )
    keyed["_published"] = pd.to_datetime(keyed["_published"])
    keyed = keyed.sort_values(["_published", "_score"], ascending=False, na_position="first")
    return keyed.drop(columns=["_published", "_score"])


# ---------- time buckets ----------

def _as_int(value: Any) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def slot_key(week_number: Any, published_date: Any, group_by: str) -> str:
    if group_by == "week":
        week = _as_int(week_number)
        return f"week:{week}" if week is not None and week > 0 else "week:unknown"
    ts = parse_date_or_none(published_date)
    if group_by == "day":
        return f"day:{day_key(ts)}" if ts is not None else "day:unknown"
    return f"month:{month_key(ts)}" if ts is not None else "month:unknown"


def slot_keys(df: pd.DataFrame, group_by: str) -> pd.Series:
    return pd.Series(
        [slot_key(w, d, group_by) for w, d in zip(df["week_number"], df["published_date"])],
        index=df.index,
        dtype=object,
    )


def is_unknown_slot(key: str) -> bool:
    return key.endswith(":unknown")


def slot_label(key: str, group_by: str) -> str:
    if is_unknown_slot(key):
        return UNKNOWN_LABELS.get(group_by, UNKNOWN_LABELS["month"])

    raw = key.split(":", 1)[1] if ":" in key else ""
    if group_by == "week":
        return f"KW {raw}"
    if group_by == "day":
        ts = parse_date_or_none(raw)
        return f"{ts.day}.{ts.month}.{ts.year}" if ts is not None else raw

    parts = raw.split("-")
    try:
        year, month = int(parts[0]), int(parts[1])
        return f"{GERMAN_MONTHS[month - 1]} {year}"
    except (IndexError, ValueError):
        return raw


def sort_slot_keys(keys: Iterable[str], group_by: str) -> List[str]:
    """Newest bucket first, unknown bucket last."""
    keys = list(keys)
    known = [k for k in keys if not is_unknown_slot(k)]
    unknown = [k for k in keys if is_unknown_slot(k)]

    def sort_value(key: str) -> Tuple[int, str]:
        raw = key.split(":", 1)[1] if ":" in key else ""
        if group_by == "week":
            return (_as_int(raw) or 0, "")
        return (0, raw)

    return sorted(known, key=sort_value, reverse=True) + unknown


def slot_options(df: pd.DataFrame, group_by: str) -> List[Dict[str, str]]:
    keys = list(dict.fromkeys(slot_keys(df, group_by))) if not df.empty else []
    return [{"key": key, "label": slot_label(key, group_by)} for key in sort_slot_keys(keys, group_by)]


def category_options(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    cats = {c for c in df["category"].map(clean_text) if c}
    return sorted(cats, key=str.casefold)


# ---------- filtering ----------

def filter_trends(df: pd.DataFrame, filters: TrendFilters) -> pd.DataFrame:
    """Score floor, category, time bucket and free-text search, combined with AND."""
    if df.empty:
        return df

    min_score = clamp01(filters.min_score)
    mask = pd.to_numeric(df["relevance_score"], errors="coerce").fillna(0) >= min_score

    if filters.selected_category != ALL:
        mask &= df["category"].map(clean_text).eq(filters.selected_category.strip())

    if filters.selected_slot != ALL:
        mask &= slot_keys(df, filters.group_by).eq(filters.selected_slot)

    query = filters.query.strip().lower()
    if query:
        hit = pd.Series(False, index=df.index)
        for col in SEARCH_COLUMNS:
            hit |= df[col].map(clean_text).str.lower().str.contains(query, regex=False)
        mask &= hit

    return df[mask]


# ---------- context ----------

def prepare_context(filters: dict | TrendFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    trends: pd.DataFrame = data_ctx.get("trends", pd.DataFrame(columns=TREND_COLUMNS))
    filt = filters if isinstance(filters, TrendFilters) else normalize_filters(filters)

    filtered = filter_trends(trends, filt)
    current_week, previous_week = current_and_previous_week()

    return {
        "filters": filt,
        "trends": trends,
        "filtered": filtered,
        "categories": category_options(trends),
        "slot_options": slot_options(trends, filt.group_by),
        "current_week": current_week,
        "previous_week": previous_week,
        "version": data_ctx.get("version", 0),
        "loaded_at": data_ctx.get("loaded_at"),
        "error": data_ctx.get("error"),
    }
