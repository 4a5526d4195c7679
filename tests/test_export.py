"""Tests for export row selection and workbook output."""

import io

import pandas as pd

from tests.conftest import make_trend
from trendboard.data import normalize_trends
from trendboard.export import (
    DEFAULT_SOURCE_LABEL,
    EXPORT_COLUMNS,
    PAGE_PLACEHOLDER,
    export_filename,
    export_rows,
    export_scope_options,
    export_workbook,
    select_export_trends,
)
from trendboard.filters import ExportScope


def test_week_scope_selects_matching_records_in_order():
    trends = normalize_trends(
        [
            make_trend("w4", topic="a", week_number=4),
            make_trend("w5a", topic="b", week_number=5),
            make_trend("w6", topic="c", week_number=6),
            make_trend("w5b", topic="d", week_number=5),
        ]
    )
    selected = select_export_trends(trends, ExportScope(scope="week", week=5))
    assert selected["id"].tolist() == ["w5a", "w5b"]


def test_week_scope_uses_derived_week(sample_trends):
    selected = select_export_trends(sample_trends, ExportScope(scope="week", week=7))
    assert selected["id"].tolist() == [1, 2]


def test_month_and_all_scopes(sample_trends):
    assert select_export_trends(sample_trends, ExportScope(scope="month", month="2026-02"))["id"].tolist() == [1, 2, 3]
    assert select_export_trends(sample_trends, ExportScope(scope="month", month="2025-12")).empty
    assert len(select_export_trends(sample_trends, ExportScope())) == len(sample_trends)


def test_export_rows_shape(sample_trends, monkeypatch):
    monkeypatch.delenv("TRENDS_EXPORT_SOURCE_LABEL", raising=False)
    trends = pd.concat(
        [sample_trends, normalize_trends([make_trend(9, topic="too high", relevance_score=1.7)])],
        ignore_index=True,
    )
    rows = export_rows(trends)
    assert list(rows.columns) == EXPORT_COLUMNS
    assert rows["Quelle"].unique().tolist() == [DEFAULT_SOURCE_LABEL]
    assert rows["Seite"].unique().tolist() == [PAGE_PLACEHOLDER]
    assert rows.loc[0, "Score"] == 0.92
    assert rows.loc[0, "Kategorie"] == "Spotify"
    assert rows.loc[3, "Kategorie"] == "Spotify"
    assert rows.loc[4, "Kategorie"] == "Unkategorisiert"
    assert pd.isna(rows.loc[4, "Score"])
    assert rows.loc[5, "Score"] == 1.0


def test_export_rows_custom_source_label(sample_trends, monkeypatch):
    monkeypatch.setenv("TRENDS_EXPORT_SOURCE_LABEL", "Newsletter")
    assert export_rows(sample_trends)["Quelle"].unique().tolist() == ["Newsletter"]


def test_export_workbook_round_trips_columns(sample_trends):
    content = export_workbook(export_rows(sample_trends))
    assert content[:2] == b"PK"
    back = pd.read_excel(io.BytesIO(content))
    assert list(back.columns) == EXPORT_COLUMNS
    assert len(back) == len(sample_trends)


def test_export_filename():
    assert export_filename(ExportScope()) == "trends_alle.xlsx"
    assert export_filename(ExportScope(scope="week", week=5)) == "trends_KW5.xlsx"
    assert export_filename(ExportScope(scope="month", month="2026-02")) == "trends_2026-02.xlsx"


def test_export_scope_options(sample_trends):
    assert export_scope_options(sample_trends) == {"months": ["2026-02", "2026-01"], "weeks": [7, 6, 4]}
    assert export_scope_options(sample_trends.iloc[0:0]) == {"months": [], "weeks": []}
