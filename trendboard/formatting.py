"""Display helpers shared by the API payloads and the Streamlit page."""

from __future__ import annotations

import math
from typing import Optional

import pandas as pd

UNCATEGORIZED = "Unkategorisiert"
NO_VALUE = "—"
UNTITLED = "Trend ohne Titel"


def clean_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def as_score(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(out):
        return None
    return out


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def category_label(value: object) -> str:
    return clean_text(value) or UNCATEGORIZED


def format_score(value: object) -> str:
    score = as_score(value)
    if score is None:
        return ""
    return f"{clamp01(score):.2f}"


def format_avg_score(value: Optional[float]) -> str:
    if value is None:
        return NO_VALUE
    return f"{clamp01(value):.2f}"


def score_tone(value: object) -> str:
    score = as_score(value)
    if score is None:
        return "none"
    s = clamp01(score)
    if s >= 0.8:
        return "high"
    if s >= 0.6:
        return "good"
    if s >= 0.4:
        return "medium"
    return "low"


def category_tone(category: str) -> str:
    key = category.lower()
    if "spotify" in key:
        return "spotify"
    if "wettbewerb" in key or "competition" in key:
        return "competition"
    if "marketing" in key or "markt" in key:
        return "marketing"
    if "audio" in key or "podcast" in key:
        return "audio"
    return "neutral"


def compact_text(text: str, length: int) -> str:
    cleaned = text.strip()
    if len(cleaned) <= length:
        return cleaned
    return f"{cleaned[:length].rstrip()}…"


def trend_title(topic: object, summary: object) -> str:
    title = clean_text(topic)
    if title:
        return title
    body = clean_text(summary)
    return compact_text(body, 75) if body else UNTITLED


def trend_preview(summary: object) -> str:
    body = clean_text(summary)
    return compact_text(body, 120) if body else ""
