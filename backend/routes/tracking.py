"""Tracking Routes - anonymous analytics beacons from the public site."""
from fastapi import APIRouter, HTTPException, Request, status
import logging

from middleware import get_client_ip
from models import PageViewRequest, ConversionEventRequest, TimeSpentRequest
from services.analytics_service import analytics_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["tracking"])

UTM_FIELDS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


@router.post("/page-view")
async def track_page_view(request: Request, body: PageViewRequest):
    try:
        session_id = await analytics_service.track_page_view(
            page_path=body.page_path,
            referrer=body.referrer,
            session_id=body.session_id or request.headers.get("X-Session-Id"),
            traffic_source=body.traffic_source,
            utm={field: getattr(body, field) for field in UTM_FIELDS if getattr(body, field)},
            user_agent=request.headers.get("User-Agent"),
            client_ip=get_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Page view tracking failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Tracking failed")

    return {"success": True, "tracked": session_id is not None, "session_id": session_id}


@router.post("/conversion")
async def track_conversion(body: ConversionEventRequest):
    tracked = await analytics_service.track_conversion(
        body.session_id, body.event_type, body.page_path, body.metadata
    )
    if not tracked:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Tracking failed")
    return {"success": True}


@router.post("/time-spent")
async def track_time_spent(body: TimeSpentRequest):
    try:
        await analytics_service.track_time_spent(
            body.session_id, body.page_path, body.time_spent_seconds, body.is_bounce
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True}
