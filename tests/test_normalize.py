"""Tests for record normalization."""

import copy

import pandas as pd

from tests.conftest import make_trend
from trendboard.data import normalize_trends, trends_frame


def test_missing_week_is_derived_from_published_date():
    df = normalize_trends([make_trend(1, topic="x", published_date="2026-02-10")])
    assert df.loc[0, "week_number"] == 7


def test_existing_week_number_is_kept():
    df = normalize_trends([make_trend(1, topic="x", published_date="2026-02-10", week_number=3)])
    assert df.loc[0, "week_number"] == 3


def test_unparsable_date_leaves_week_absent():
    df = normalize_trends([make_trend(1, topic="x", published_date="irgendwann")])
    assert len(df) == 1
    assert pd.isna(df.loc[0, "week_number"])


def test_records_without_any_signal_are_dropped():
    records = [
        make_trend(1),
        make_trend(2, topic="   ", summary="", url=None),
        make_trend(3, relevance_score=0.0),
        make_trend(4, week_number=12),
        make_trend(5, url="https://example.com"),
        make_trend(6, week_number=0),
        None,
        "not a record",
    ]
    df = normalize_trends(records)
    assert df["id"].tolist() == [3, 4, 5]


def test_malformed_fields_degrade_to_absent():
    df = normalize_trends([make_trend(1, topic="x", relevance_score="hoch", week_number="KW5")])
    assert len(df) == 1
    assert pd.isna(df.loc[0, "relevance_score"])
    assert pd.isna(df.loc[0, "week_number"])


def test_repeated_ids_are_all_kept():
    records = [
        make_trend(1, topic="first"),
        make_trend(2, topic="other"),
        make_trend("1", topic="again"),
    ]
    df = normalize_trends(records)
    assert df["topic"].tolist() == ["first", "other", "again"]


def test_out_of_range_week_number_falls_back_to_date():
    records = [
        make_trend(1, topic="x", week_number=1e20, published_date="2026-02-10"),
        make_trend(2, topic="y", week_number=-1e20),
        make_trend(3, topic="z", week_number=5),
    ]
    df = normalize_trends(records)
    assert len(df) == 3
    assert df.loc[0, "week_number"] == 7
    assert pd.isna(df.loc[1, "week_number"])
    assert df.loc[2, "week_number"] == 5


def test_order_is_preserved(sample_records):
    df = normalize_trends(sample_records)
    assert df["id"].tolist() == [1, 2, 3, 4, 5]


def test_input_is_not_mutated(sample_records):
    before = copy.deepcopy(sample_records)
    normalize_trends(sample_records)
    assert sample_records == before

    frame = trends_frame(sample_records)
    snapshot = frame.copy()
    normalize_trends(frame)
    pd.testing.assert_frame_equal(frame, snapshot)


def test_normalize_is_idempotent(sample_records):
    once = normalize_trends(sample_records)
    twice = normalize_trends(once)
    pd.testing.assert_frame_equal(once, twice)


def test_empty_input_gives_empty_frame_with_columns():
    df = normalize_trends([])
    assert df.empty
    assert {"id", "week_number", "relevance_score"}.issubset(df.columns)
    assert normalize_trends(None).empty
