"""Audit trail for admin changes and payment events (audit_logs collection).

Writes never raise: a failed audit insert is logged and the caller carries on.
"""
from database import database
from models import AuditLog, AuditAction
from typing import Optional, Dict, Any, List
import logging

logger = logging.getLogger(__name__)


def changed_fields(before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """{field: {"from": old, "to": new}} for every field that differs."""
    if not before or not after:
        return {}
    keys = sorted(set(before) | set(after))
    return {
        key: {"from": before.get(key), "to": after.get(key)}
        for key in keys
        if before.get(key) != after.get(key)
    }


async def create_audit_log(
    action: AuditAction,
    actor_role: Optional[str] = None,
    actor_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    before_state: Optional[Dict[str, Any]] = None,
    after_state: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> str:
    """Record one audit entry and return its audit_id ("" when the write failed).

    actor_role is a UserRole value, or "SYSTEM" for webhooks, jobs and bootstrap.
    resource_type is one of setting, seo, user, order, pending_result.
    """
    details = dict(metadata or {})
    diff = changed_fields(before_state, after_state)
    if diff:
        details["diff"] = diff

    entry = AuditLog(
        action=action,
        actor_role=actor_role,
        actor_id=actor_id,
        resource_type=resource_type,
        resource_id=resource_id,
        before_state=before_state,
        after_state=after_state,
        metadata=details or None,
        ip_address=ip_address,
    )
    try:
        await database.get_db().audit_logs.insert_one(entry.model_dump(mode="json"))
    except Exception as e:
        logger.error(f"Audit write failed for {action.value}: {e}")
        return ""

    logger.info(f"Audit: {action.value} {resource_type or ''} {resource_id or ''}".rstrip())
    return entry.audit_id


async def get_recent_audit_logs(limit: int = 50, action: Optional[AuditAction] = None) -> List[Dict[str, Any]]:
    query = {"action": action.value} if action else {}
    try:
        cursor = database.get_db().audit_logs.find(query, {"_id": 0}).sort("timestamp", -1).limit(limit)
        return await cursor.to_list(length=limit)
    except Exception as e:
        logger.error(f"Failed to read audit logs: {e}")
        return []
