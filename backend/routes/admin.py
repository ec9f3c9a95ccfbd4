"""Admin Routes - dashboard overview, system settings and audit trail."""
from fastapi import APIRouter, HTTPException, Request, Query, status
from typing import Optional
import logging

from middleware import admin_route_guard, get_client_ip
from models import AuditAction, SettingUpdateRequest
from services import order_service, settings_service
from utils.audit import create_audit_log, get_recent_audit_logs

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/dashboard")
async def get_dashboard(request: Request):
    """Users, completed orders, revenue and the latest orders."""
    await admin_route_guard(request)
    try:
        return await order_service.get_dashboard_stats()
    except Exception as e:
        logger.error(f"Dashboard stats error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard"
        )


@router.get("/settings")
async def list_settings(request: Request):
    await admin_route_guard(request)
    settings = await settings_service.get_all_system_settings()
    return {"settings": settings, "defaults": settings_service.DEFAULT_SETTINGS}


@router.put("/settings/{key}")
async def update_setting(request: Request, key: str, body: SettingUpdateRequest):
    user = await admin_route_guard(request)

    if key not in settings_service.VALIDATORS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown setting: {key}")

    before = await settings_service.get_system_setting(key)
    updated = await settings_service.update_system_setting(key, body.value, body.description)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid value for {key}"
        )

    await create_audit_log(
        action=AuditAction.SETTING_UPDATED,
        actor_role=user.get("role"),
        actor_id=user.get("user_id"),
        resource_type="setting",
        resource_id=key,
        before_state={"value": before},
        after_state={"value": body.value},
        ip_address=get_client_ip(request),
    )
    return {"success": True, "key": key, "value": body.value}


@router.post("/settings/cache/clear")
async def clear_settings_cache(request: Request):
    user = await admin_route_guard(request)
    settings_service.clear_settings_cache()
    await create_audit_log(
        action=AuditAction.SETTINGS_CACHE_CLEARED,
        actor_role=user.get("role"),
        actor_id=user.get("user_id"),
    )
    return {"success": True}


@router.post("/jobs/{job_id}/run")
async def run_job_now(request: Request, job_id: str):
    """Run a scheduled job immediately."""
    from job_runner import JOB_RUNNERS

    await admin_route_guard(request)
    runner = JOB_RUNNERS.get(job_id)
    if not runner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job: {job_id}")
    try:
        return await runner()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Job failed: {e}"
        )


@router.get("/audit-logs")
async def list_audit_logs(
    request: Request,
    action: Optional[AuditAction] = None,
    limit: int = Query(50, ge=1, le=500),
):
    await admin_route_guard(request)
    logs = await get_recent_audit_logs(limit=limit, action=action)
    return {"logs": logs, "total": len(logs)}
