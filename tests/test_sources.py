"""Tests for source clustering."""

import pytest

from tests.conftest import make_trend
from trendboard.data import normalize_trends
from trendboard.filters import TrendFilters
from trendboard.metrics_sources import (
    UNKNOWN_SOURCE,
    cluster_by_source,
    clustering_enabled,
    compute_sources,
    source_domain,
    source_label,
)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.example.com/path?q=1", "example.com"),
        ("http://News.Example.org", "news.example.org"),
        ("https://wwwexample.com", "wwwexample.com"),
        ("example.com/no-scheme", None),
        ("http://[broken", None),
        ("", None),
        (None, None),
    ],
)
def test_source_domain(url, expected):
    assert source_domain(url) == expected


def test_newsletter_source_wins_over_url():
    assert source_label("Morning Brew", "https://www.example.com") == "Morning Brew"
    assert source_label("  ", "https://www.example.com") == "example.com"
    assert source_label(None, "nonsense") == UNKNOWN_SOURCE


def test_clusters_sorted_by_size_with_defaults():
    items = normalize_trends(
        [
            make_trend(1, topic="a", url="https://solo.io/x", relevance_score=0.5),
            make_trend(2, topic="b", url="https://www.big.com/1", relevance_score=0.9, category="Spotify"),
            make_trend(3, topic="c", url="https://big.com/2", relevance_score=0.7, category="Spotify"),
            make_trend(4, topic="d", url="https://big.com/3", category="Markt"),
            make_trend(5, topic="e", url="https://big.com/4", relevance_score=0.1),
            make_trend(6, topic="f"),
        ]
    )
    clusters = cluster_by_source(items)
    assert [c["source"] for c in clusters] == ["big.com", "solo.io", UNKNOWN_SOURCE]
    big = clusters[0]
    assert big["count"] == 4
    assert big["expanded"] is False
    assert big["items"]["id"].tolist() == [2, 3, 4, 5]
    assert big["bands"] == {"high": 1, "mid": 1, "low": 2}
    assert big["top_category"] == "Spotify"
    assert big["avg_score"] == pytest.approx((0.9 + 0.7 + 0.1) / 3)
    assert clusters[1]["expanded"] is True
    assert clusters[2]["avg_score"] is None


def test_clustering_only_without_narrowing_filters():
    assert clustering_enabled(TrendFilters())
    assert clustering_enabled(TrendFilters(min_score=0.5, selected_slot="week:7"))
    assert not clustering_enabled(TrendFilters(query="spotify"))
    assert not clustering_enabled(TrendFilters(selected_category="Spotify"))


def test_compute_sources_payload(sample_trends):
    payload = compute_sources(TrendFilters(), {"filtered": sample_trends})
    assert payload["clustered"] is True
    week7 = payload["groups"][0]
    assert week7["label"] == "KW 7"
    assert [c["source"] for c in week7["clusters"]] == ["example.com", "news.example.org"]
    assert week7["clusters"][0]["items"][0]["title"] == "Podcast ads grow"

    narrowed = compute_sources(TrendFilters(query="podcast"), {"filtered": sample_trends.iloc[[0]]})
    assert narrowed["clustered"] is False
    assert narrowed["groups"][0]["clusters"] is None
    assert [c["id"] for c in narrowed["groups"][0]["items"]] == [1]
