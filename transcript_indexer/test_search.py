"""
Tests for search.py: date-range grammar, filters and sorting
"""

from datetime import datetime, timedelta

import pytest

from transcript_indexer.search import filter_results, parse_date_range, parse_timestamp

NOW = datetime(2025, 6, 15, 14, 30).astimezone()


def row(content, project="/home/dev/app", timestamp=None, score=0.5):
    return {
        'content': content,
        'project': project,
        'session_id': f"session-{content}",
        'timestamp': timestamp or NOW.isoformat(),
        'score': score,
    }


def test_today_and_yesterday():
    start, end = parse_date_range("today", now=NOW)
    assert (start.day, start.hour, start.minute) == (15, 0, 0)
    assert (end.day, end.hour, end.minute, end.second) == (15, 23, 59, 59)

    start, end = parse_date_range("Yesterday", now=NOW)
    assert start.day == 14 and end.day == 14


@pytest.mark.parametrize("token, days_back", [
    ("last week", 7),
    ("last_week", 7),
    ("week", 7),
    ("last 3 days", 3),
    ("LAST 10 DAYS", 10),
    ("last 1 day", 1),
])
def test_relative_ranges(token, days_back):
    start, end = parse_date_range(token, now=NOW)
    assert start == (NOW - timedelta(days=days_back)).replace(hour=0, minute=0, second=0, microsecond=0)
    assert end.date() == NOW.date()


def test_last_month_clamps_day():
    now = datetime(2025, 3, 31, 9, 0).astimezone()
    start, _ = parse_date_range("last month", now=now)
    assert (start.month, start.day) == (2, 28)

    start, _ = parse_date_range("month", now=datetime(2025, 1, 10).astimezone())
    assert (start.year, start.month, start.day) == (2024, 12, 10)


@pytest.mark.parametrize("token", ["fortnight", "last 0 days", "last -2 days", "since tuesday", ""])
def test_unrecognized_tokens(token):
    assert parse_date_range(token, now=NOW) is None


def test_parse_timestamp():
    assert parse_timestamp("2025-06-01T10:00:00.000Z") is not None
    assert parse_timestamp("2025-06-01T10:00:00") is not None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(1717236000) is None
    assert parse_timestamp(None) is None


def test_project_filter_is_substring():
    rows = [row("a", project="/home/dev/webapp"), row("b", project="/home/dev/api"), row("c", project="webapp-old")]

    results = filter_results(rows, limit=10, project="webapp")

    assert [r.content for r in results] == ["a", "c"]


def test_today_filter_keeps_only_recent():
    rows = [
        row("old", timestamp=(NOW - timedelta(days=10)).isoformat()),
        row("new", timestamp=NOW.isoformat()),
    ]

    results = filter_results(rows, limit=5, date_range="today", now=NOW)

    assert [r.content for r in results] == ["new"]


def test_unrecognized_date_range_is_no_filter():
    rows = [row("old", timestamp=(NOW - timedelta(days=400)).isoformat()), row("new")]

    results = filter_results(rows, limit=5, date_range="sometime", now=NOW)

    assert [r.content for r in results] == ["old", "new"]


def test_recency_sort_overrides_similarity():
    rows = [
        row("best-but-oldest", timestamp="2025-01-01T00:00:00Z", score=0.95),
        row("newest", timestamp="2025-06-10T00:00:00Z", score=0.40),
        row("middle", timestamp="2025-03-01T00:00:00Z", score=0.60),
    ]

    by_relevance = filter_results(rows, limit=3)
    by_recency = filter_results(rows, limit=3, sort_by="recency")

    assert [r.content for r in by_relevance] == ["best-but-oldest", "newest", "middle"]
    assert [r.content for r in by_recency] == ["newest", "middle", "best-but-oldest"]


def test_limit_truncates_after_filtering():
    rows = [row(str(i), project="/x" if i % 2 else "/y") for i in range(10)]

    results = filter_results(rows, limit=3, project="/x")

    assert [r.content for r in results] == ["1", "3", "5"]
    assert results[0].session_id == "session-1"


def test_unknown_sort_mode():
    with pytest.raises(ValueError):
        filter_results([row("a")], limit=1, sort_by="alphabetical")
