"""Admin Users Routes - dashboard accounts."""
from fastapi import APIRouter, HTTPException, Request, Query, status
from typing import Optional
import logging

from middleware import admin_route_guard, get_client_ip
from models import AuditAction, RoleUpdateRequest
from services import user_service
from services.user_service import UserNotFoundError, SelfModificationError
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])


@router.get("")
async def list_users(
    request: Request,
    search: Optional[str] = Query(None, description="Email contains"),
    role: Optional[str] = Query(None, description="all, ROLE_ADMIN, ROLE_USER"),
):
    await admin_route_guard(request)
    try:
        return await user_service.list_users(search, role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid role: {role}")


@router.get("/{user_id}")
async def get_user(request: Request, user_id: str):
    await admin_route_guard(request)
    try:
        return await user_service.get_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.patch("/{user_id}")
async def update_user_role(request: Request, user_id: str, body: RoleUpdateRequest):
    admin = await admin_route_guard(request)
    try:
        before = await user_service.get_user(user_id)
        updated = await user_service.update_user_role(user_id, body.role, actor_id=admin.get("user_id"))
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except SelfModificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await create_audit_log(
        action=AuditAction.USER_ROLE_CHANGED,
        actor_role=admin.get("role"),
        actor_id=admin.get("user_id"),
        resource_type="user",
        resource_id=user_id,
        before_state={"role": before.get("role")},
        after_state={"role": updated["role"]},
        ip_address=get_client_ip(request),
    )
    return updated


@router.delete("/{user_id}")
async def delete_user(request: Request, user_id: str):
    admin = await admin_route_guard(request)
    try:
        deleted = await user_service.delete_user(user_id, actor_id=admin.get("user_id"))
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except SelfModificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await create_audit_log(
        action=AuditAction.USER_DELETED,
        actor_role=admin.get("role"),
        actor_id=admin.get("user_id"),
        resource_type="user",
        resource_id=user_id,
        metadata={"email": deleted.get("email")},
        ip_address=get_client_ip(request),
    )
    return {"success": True, "user_id": user_id}
