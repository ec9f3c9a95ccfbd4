"""Admin SEO Routes - per-page metadata management."""
from fastapi import APIRouter, HTTPException, Request, status
from typing import Any, Dict
import logging

from middleware import admin_route_guard
from models import AuditAction
from services.seo_service import seo_service, validate_seo_settings, SEOValidationError
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/seo", tags=["admin-seo"])


@router.get("")
async def list_seo_settings(request: Request):
    await admin_route_guard(request)
    return {"settings": await seo_service.list_seo_settings()}


@router.post("/validate")
async def validate_settings(request: Request, body: Dict[str, Any]):
    await admin_route_guard(request)
    errors = validate_seo_settings(body)
    return {"valid": not errors, "errors": errors}


@router.put("")
async def upsert_seo_settings(request: Request, body: Dict[str, Any]):
    user = await admin_route_guard(request)
    try:
        saved = await seo_service.upsert_seo_settings(body)
    except SEOValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors)

    await create_audit_log(
        action=AuditAction.SEO_SETTINGS_UPDATED,
        actor_role=user.get("role"),
        actor_id=user.get("user_id"),
        resource_type="seo_settings",
        resource_id=saved["page_path"],
    )
    return saved


@router.delete("/{seo_id}")
async def delete_seo_settings(request: Request, seo_id: str):
    user = await admin_route_guard(request)
    if not await seo_service.delete_seo_settings(seo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SEO settings not found")

    await create_audit_log(
        action=AuditAction.SEO_SETTINGS_DELETED,
        actor_role=user.get("role"),
        actor_id=user.get("user_id"),
        resource_type="seo_settings",
        resource_id=seo_id,
    )
    return {"success": True}
