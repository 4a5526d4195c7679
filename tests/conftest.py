import pytest

from trendboard.data import normalize_trends


def make_trend(id, **fields):
    record = {
        "id": id,
        "topic": None,
        "category": None,
        "relevance_score": None,
        "summary": None,
        "spotify_impact": None,
        "url": None,
        "published_date": None,
        "week_number": None,
    }
    record.update(fields)
    return record


@pytest.fixture
def sample_records():
    return [
        make_trend(1, topic="Podcast ads grow", category="Spotify", relevance_score=0.92,
                   summary="Ad revenue in podcasts keeps climbing.", url="https://www.example.com/a",
                   published_date="2026-02-10"),
        make_trend(2, topic="Competitor launches audiobooks", category="Wettbewerb", relevance_score=0.71,
                   url="https://news.example.org/b", published_date="2026-02-09"),
        make_trend(3, topic="Brand campaign", category="Marketing", relevance_score=0.4,
                   url="https://www.example.com/c", published_date="2026-02-03"),
        make_trend(4, topic="Undated note", category=" Spotify ", relevance_score=0.85),
        make_trend(5, topic="January recap", category=None, relevance_score=None,
                   published_date="2026-01-20", week_number=4),
    ]


@pytest.fixture
def sample_trends(sample_records):
    return normalize_trends(sample_records)
