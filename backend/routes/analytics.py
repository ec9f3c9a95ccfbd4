"""
Traffic Analytics API Routes

Admin reports over the anonymous tracking data:
- Traffic overview (views, sessions, popular pages, daily series)
- Conversion funnel (visitors -> generator -> payment started -> payment completed)
- Traffic sources
- Engagement (time on page, bounce rate)
"""
from fastapi import APIRouter, Depends, Query
from middleware import admin_route_guard
from services.analytics_service import analytics_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/analytics", tags=["admin-analytics"])


@router.get("/traffic")
async def get_traffic(
    time_range: str = Query("7d", pattern="^(7d|30d|90d)$", description="7d, 30d or 90d"),
    current_user: dict = Depends(admin_route_guard)
):
    return await analytics_service.get_traffic_overview(time_range)


@router.get("/funnel")
async def get_funnel(
    time_range: str = Query("7d", pattern="^(7d|30d|90d)$", description="7d, 30d or 90d"),
    current_user: dict = Depends(admin_route_guard)
):
    return {"time_range": time_range, "steps": await analytics_service.get_conversion_funnel(time_range)}


@router.get("/sources")
async def get_sources(
    time_range: str = Query("7d", pattern="^(7d|30d|90d)$", description="7d, 30d or 90d"),
    current_user: dict = Depends(admin_route_guard)
):
    return {"time_range": time_range, "sources": await analytics_service.get_traffic_sources(time_range)}


@router.get("/engagement")
async def get_engagement(
    time_range: str = Query("7d", pattern="^(7d|30d|90d)$", description="7d, 30d or 90d"),
    current_user: dict = Depends(admin_route_guard)
):
    return {"time_range": time_range, **await analytics_service.get_engagement(time_range)}
