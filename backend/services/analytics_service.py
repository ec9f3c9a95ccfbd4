"""Traffic Analytics Service

Collects anonymous page views, conversion events and time-on-page, and
computes the admin traffic reports.

Privacy:
- Client IPs are never stored; only a salted SHA-256 prefix (ip_hash)
- /admin paths are not tracked
"""
import hashlib
import logging
import os
import uuid
from collections import Counter, defaultdict
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from database import database
from models import ConversionEventType, Tone
from services.prompt_builder import LANGUAGE_NAMES

logger = logging.getLogger(__name__)

MAX_PATH_LENGTH = 500
MAX_SOURCE_LENGTH = 100
MAX_TIME_SPENT_SECONDS = 86400
DEFAULT_SATISFACTION_RATE = 98

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90}

FUNNEL_STEPS = [
    ("Visitors", ConversionEventType.PAGE_VIEW),
    ("Generator", ConversionEventType.GENERATOR_START),
    ("Payment started", ConversionEventType.PAYMENT_START),
    ("Payment completed", ConversionEventType.PAYMENT_COMPLETE),
]


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return str(value)[:length]


def hash_ip(ip: Optional[str]) -> Optional[str]:
    if not ip:
        return None
    salt = os.getenv("IP_HASH_SALT", "clicklone-salt")
    return hashlib.sha256(f"{ip}{salt}".encode()).hexdigest()[:16]


def get_range_start(time_range: str) -> str:
    """ISO start of a 7d/30d/90d window (unknown values mean 7d)."""
    days = TIME_RANGES.get(time_range, 7)
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def classify_source(view: Dict[str, Any]) -> str:
    source = view.get("traffic_source") or view.get("utm_source")
    if source:
        return source
    referrer = view.get("referrer")
    if referrer:
        host = urlparse(referrer).netloc
        if host:
            return host[4:] if host.startswith("www.") else host
    return "direct"


class AnalyticsService:

    # =========================================================================
    # Tracking
    # =========================================================================

    async def track_page_view(
        self,
        page_path: str,
        referrer: Optional[str] = None,
        session_id: Optional[str] = None,
        traffic_source: Optional[str] = None,
        utm: Optional[Dict[str, Optional[str]]] = None,
        user_agent: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> Optional[str]:
        """Record a page view. Returns the session id, or None when the path is not tracked."""
        if not page_path:
            raise ValueError("page_path is required")
        if page_path.startswith("/admin"):
            return None

        session_id = _truncate(session_id, MAX_SOURCE_LENGTH) or str(uuid.uuid4())
        doc = {
            "page_path": _truncate(page_path, MAX_PATH_LENGTH),
            "referrer": _truncate(referrer, MAX_PATH_LENGTH),
            "user_agent": _truncate(user_agent, MAX_PATH_LENGTH),
            "ip_hash": hash_ip(client_ip),
            "session_id": session_id,
            "traffic_source": _truncate(traffic_source, MAX_SOURCE_LENGTH),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        for key, value in (utm or {}).items():
            doc[key] = _truncate(value, MAX_SOURCE_LENGTH)

        db = database.get_db()
        await db.page_views.insert_one(doc)
        await self.track_conversion(session_id, ConversionEventType.PAGE_VIEW, page_path)
        return session_id

    async def track_conversion(
        self,
        session_id: Optional[str],
        event_type: ConversionEventType,
        page_path: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Record a funnel event. Failures are logged, never raised."""
        if not session_id:
            return False
        try:
            db = database.get_db()
            await db.conversion_events.insert_one({
                "session_id": _truncate(session_id, MAX_SOURCE_LENGTH),
                "event_type": ConversionEventType(event_type).value,
                "page_path": _truncate(page_path, MAX_PATH_LENGTH),
                "metadata": metadata or {},
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            return True
        except Exception as e:
            logger.error(f"Failed to track conversion {event_type}: {e}")
            return False

    async def track_time_spent(
        self,
        session_id: str,
        page_path: str,
        time_spent_seconds: float,
        is_bounce: bool = False,
    ):
        if time_spent_seconds < 0:
            raise ValueError("time_spent_seconds must be >= 0")
        db = database.get_db()
        await db.page_time_tracking.insert_one({
            "session_id": _truncate(session_id, MAX_SOURCE_LENGTH),
            "page_path": _truncate(page_path, MAX_PATH_LENGTH),
            "time_spent_seconds": min(int(time_spent_seconds), MAX_TIME_SPENT_SECONDS),
            "is_bounce": bool(is_bounce),
            "created_at": datetime.now(timezone.utc).isoformat(),
        })

    async def record_generation(self, session_id: Optional[str], tone: Tone, language: str, phrase_count: int, gated: bool):
        try:
            db = database.get_db()
            await db.generations.insert_one({
                "session_id": session_id,
                "tone": tone.value,
                "language": language,
                "phrase_count": phrase_count,
                "gated": gated,
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
        except Exception as e:
            logger.error(f"Failed to record generation: {e}")

    # =========================================================================
    # Reports
    # =========================================================================

    async def get_app_stats(self) -> Dict[str, Any]:
        """Public counters shown on the home page."""
        db = database.get_db()
        pipeline = [{"$group": {"_id": None, "total": {"$sum": "$phrase_count"}}}]
        totals = await db.generations.aggregate(pipeline).to_list(length=1)
        total_phrases = totals[0]["total"] if totals else 0
        unique_users = await db.generation_sessions.count_documents({})
        used_tokens = await db.payment_tokens.count_documents({"is_used": True})
        pending_results = await db.pending_results.count_documents({})

        return {
            "total_phrases": total_phrases,
            "unique_users": unique_users,
            "satisfaction_rate": satisfaction_rate(used_tokens, pending_results),
            "languages_count": len(LANGUAGE_NAMES),
            "tones_count": len(Tone),
        }

    async def get_traffic_overview(self, time_range: str = "7d") -> Dict[str, Any]:
        db = database.get_db()
        start = get_range_start(time_range)
        views = await db.page_views.find(
            {"created_at": {"$gte": start}},
            {"_id": 0}
        ).sort("created_at", -1).to_list(length=50000)

        total_views = len(views)
        sessions = {v.get("session_id") for v in views if v.get("session_id")}
        unique_sessions = len(sessions)
        avg_views = round(total_views / unique_sessions, 1) if unique_sessions else 0

        page_counts = Counter(v.get("page_path") for v in views)
        popular_pages = [
            {"page_path": path, "views": count}
            for path, count in page_counts.most_common(10)
        ]

        daily_views = defaultdict(int)
        daily_sessions = defaultdict(set)
        for v in views:
            day = (v.get("created_at") or "")[:10]
            daily_views[day] += 1
            if v.get("session_id"):
                daily_sessions[day].add(v["session_id"])
        daily_stats = [
            {"date": day, "views": daily_views[day], "unique_sessions": len(daily_sessions[day])}
            for day in sorted(daily_views)
        ]

        return {
            "time_range": time_range if time_range in TIME_RANGES else "7d",
            "total_views": total_views,
            "unique_sessions": unique_sessions,
            "avg_views_per_session": avg_views,
            "popular_pages": popular_pages,
            "daily_stats": daily_stats,
            "recent_views": views[:20],
        }

    async def get_conversion_funnel(self, time_range: str = "7d") -> List[Dict[str, Any]]:
        db = database.get_db()
        start = get_range_start(time_range)
        steps = []
        first = 0
        for index, (label, event_type) in enumerate(FUNNEL_STEPS):
            sessions = await db.conversion_events.distinct(
                "session_id",
                {"event_type": event_type.value, "created_at": {"$gte": start}},
            )
            count = len(sessions)
            if index == 0:
                first = count
            steps.append({
                "step": label,
                "event_type": event_type.value,
                "count": count,
                "conversion_rate": round(count / first * 100, 1) if first else 0,
            })
        return steps

    async def get_traffic_sources(self, time_range: str = "7d") -> List[Dict[str, Any]]:
        db = database.get_db()
        views = await db.page_views.find(
            {"created_at": {"$gte": get_range_start(time_range)}},
            {"_id": 0, "traffic_source": 1, "utm_source": 1, "referrer": 1}
        ).to_list(length=50000)
        counts = Counter(classify_source(v) for v in views)
        total = sum(counts.values())
        return [
            {"source": source, "views": count, "percentage": round(count / total * 100, 1)}
            for source, count in counts.most_common()
        ]

    async def get_engagement(self, time_range: str = "7d") -> Dict[str, Any]:
        db = database.get_db()
        rows = await db.page_time_tracking.find(
            {"created_at": {"$gte": get_range_start(time_range)}},
            {"_id": 0}
        ).to_list(length=50000)
        if not rows:
            return {"avg_time_seconds": 0, "bounce_rate": 0, "pages": []}

        per_page = defaultdict(list)
        for row in rows:
            per_page[row.get("page_path")].append(row.get("time_spent_seconds", 0))
        bounces = sum(1 for row in rows if row.get("is_bounce"))
        total_time = sum(row.get("time_spent_seconds", 0) for row in rows)

        return {
            "avg_time_seconds": round(total_time / len(rows), 1),
            "bounce_rate": round(bounces / len(rows) * 100, 1),
            "pages": sorted(
                [
                    {"page_path": path, "avg_time_seconds": round(sum(t) / len(t), 1), "samples": len(t)}
                    for path, t in per_page.items()
                ],
                key=lambda p: p["samples"],
                reverse=True,
            ),
        }


def satisfaction_rate(used_tokens: int, pending_results: int) -> int:
    if not pending_results:
        return DEFAULT_SATISFACTION_RATE
    return min(100, round(used_tokens / pending_results * 100))


analytics_service = AnalyticsService()
