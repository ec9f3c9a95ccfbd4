"""
Traffic analytics: anonymisation, truncation, funnel and public counters.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from models import ConversionEventType
from services.analytics_service import (
    AnalyticsService,
    hash_ip,
    classify_source,
    satisfaction_rate,
    MAX_TIME_SPENT_SECONDS,
)
from helpers import cursor_returning


def test_hash_ip_is_stable_and_short():
    assert hash_ip("203.0.113.7") == hash_ip("203.0.113.7")
    assert hash_ip("203.0.113.7") != hash_ip("203.0.113.8")
    assert len(hash_ip("203.0.113.7")) == 16
    assert hash_ip(None) is None


def test_hash_ip_depends_on_salt(monkeypatch):
    monkeypatch.setenv("IP_HASH_SALT", "one")
    first = hash_ip("203.0.113.7")
    monkeypatch.setenv("IP_HASH_SALT", "two")
    assert hash_ip("203.0.113.7") != first


@pytest.mark.parametrize("view,expected", [
    ({"traffic_source": "newsletter"}, "newsletter"),
    ({"utm_source": "twitter"}, "twitter"),
    ({"referrer": "https://www.google.com/search?q=x"}, "google.com"),
    ({"referrer": "not a url"}, "direct"),
    ({}, "direct"),
])
def test_classify_source(view, expected):
    assert classify_source(view) == expected


@pytest.mark.parametrize("used,pending,expected", [
    (0, 0, 98),
    (5, 10, 50),
    (12, 10, 100),
])
def test_satisfaction_rate(used, pending, expected):
    assert satisfaction_rate(used, pending) == expected


@pytest.mark.asyncio
async def test_admin_paths_are_not_tracked():
    db = MagicMock()
    db.page_views.insert_one = AsyncMock()
    with patch("services.analytics_service.database.get_db", return_value=db):
        assert await AnalyticsService().track_page_view("/admin/orders", session_id="s") is None
    db.page_views.insert_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_page_view_truncates_and_hashes():
    db = MagicMock()
    db.page_views.insert_one = AsyncMock()
    db.conversion_events.insert_one = AsyncMock()

    with patch("services.analytics_service.database.get_db", return_value=db):
        session_id = await AnalyticsService().track_page_view(
            "/" + "p" * 600,
            session_id="s" * 150,
            client_ip="198.51.100.1",
            utm={"utm_source": "x" * 200},
        )

    doc = db.page_views.insert_one.await_args.args[0]
    assert len(doc["page_path"]) == 500
    assert len(session_id) == 100
    assert len(doc["utm_source"]) == 100
    assert doc["ip_hash"] == hash_ip("198.51.100.1")
    assert "198.51.100.1" not in str(doc)
    event = db.conversion_events.insert_one.await_args.args[0]
    assert event["event_type"] == ConversionEventType.PAGE_VIEW.value


@pytest.mark.asyncio
async def test_page_view_assigns_session_when_missing():
    db = MagicMock()
    db.page_views.insert_one = AsyncMock()
    db.conversion_events.insert_one = AsyncMock()
    with patch("services.analytics_service.database.get_db", return_value=db):
        session_id = await AnalyticsService().track_page_view("/")
    assert session_id


@pytest.mark.asyncio
async def test_conversion_failure_is_swallowed():
    db = MagicMock()
    db.conversion_events.insert_one = AsyncMock(side_effect=RuntimeError("db down"))
    with patch("services.analytics_service.database.get_db", return_value=db):
        ok = await AnalyticsService().track_conversion("s-1", ConversionEventType.PAYMENT_START, "/payment")
    assert ok is False


@pytest.mark.asyncio
async def test_conversion_without_session_is_skipped():
    assert await AnalyticsService().track_conversion(None, ConversionEventType.PAGE_VIEW) is False


@pytest.mark.asyncio
async def test_time_spent_is_capped():
    db = MagicMock()
    db.page_time_tracking.insert_one = AsyncMock()
    with patch("services.analytics_service.database.get_db", return_value=db):
        await AnalyticsService().track_time_spent("s-1", "/", 10 ** 7)
    assert db.page_time_tracking.insert_one.await_args.args[0]["time_spent_seconds"] == MAX_TIME_SPENT_SECONDS


@pytest.mark.asyncio
async def test_negative_time_spent_rejected():
    with pytest.raises(ValueError):
        await AnalyticsService().track_time_spent("s-1", "/", -1)


@pytest.mark.asyncio
async def test_funnel_rates_relative_to_visitors():
    counts = {
        "page_view": ["a", "b", "c", "d"],
        "generator_start": ["a", "b"],
        "payment_start": ["a"],
        "payment_complete": [],
    }
    db = MagicMock()

    async def distinct(field, query):
        return counts[query["event_type"]]

    db.conversion_events.distinct = AsyncMock(side_effect=distinct)
    with patch("services.analytics_service.database.get_db", return_value=db):
        funnel = await AnalyticsService().get_conversion_funnel("30d")

    assert [s["count"] for s in funnel] == [4, 2, 1, 0]
    assert [s["conversion_rate"] for s in funnel] == [100.0, 50.0, 25.0, 0.0]


@pytest.mark.asyncio
async def test_traffic_overview_aggregates():
    views = [
        {"page_path": "/", "session_id": "a", "created_at": "2026-10-01T10:00:00+00:00"},
        {"page_path": "/generator", "session_id": "a", "created_at": "2026-10-01T10:01:00+00:00"},
        {"page_path": "/", "session_id": "b", "created_at": "2026-10-02T09:00:00+00:00"},
    ]
    db = MagicMock()
    db.page_views.find = MagicMock(return_value=cursor_returning(views))
    with patch("services.analytics_service.database.get_db", return_value=db):
        overview = await AnalyticsService().get_traffic_overview("bogus")

    assert overview["time_range"] == "7d"
    assert overview["total_views"] == 3
    assert overview["unique_sessions"] == 2
    assert overview["avg_views_per_session"] == 1.5
    assert overview["popular_pages"][0] == {"page_path": "/", "views": 2}
    assert [d["date"] for d in overview["daily_stats"]] == ["2026-10-01", "2026-10-02"]


@pytest.mark.asyncio
async def test_app_stats():
    db = MagicMock()
    db.generations.aggregate = MagicMock(return_value=cursor_returning([{"_id": None, "total": 120}]))
    db.generation_sessions.count_documents = AsyncMock(return_value=12)
    db.payment_tokens.count_documents = AsyncMock(return_value=3)
    db.pending_results.count_documents = AsyncMock(return_value=4)

    with patch("services.analytics_service.database.get_db", return_value=db):
        stats = await AnalyticsService().get_app_stats()

    assert stats == {
        "total_phrases": 120,
        "unique_users": 12,
        "satisfaction_rate": 75,
        "languages_count": 6,
        "tones_count": 6,
    }
