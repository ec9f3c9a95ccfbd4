"""
Idempotent admin bootstrap: create or promote the dashboard admin from env.
- ADMIN_EMAIL (default admin@clicklone.com) and ADMIN_PASSWORD.
- Existing user with that email: promoted to ROLE_ADMIN, password untouched.
- No user and no password: skipped.
Never logs or returns plaintext passwords.
"""
import os
import logging
import uuid
from datetime import datetime, timezone
from database import database
from models import UserRole, UserStatus, AuditAction
from utils.audit import create_audit_log
from auth import hash_password, validate_password_strength

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@clicklone.com"


async def run_bootstrap_admin(email: str = None, password: str = None) -> dict:
    """
    Returns dict with keys: action (str), user_id (str|None), message (str).
    """
    email = (email or os.environ.get("ADMIN_EMAIL") or DEFAULT_ADMIN_EMAIL).strip().lower()
    password = (password if password is not None else os.environ.get("ADMIN_PASSWORD", "")).strip()

    db = database.get_db()
    now = datetime.now(timezone.utc).isoformat()

    existing = await db.users.find_one({"email": email}, {"_id": 0, "user_id": 1, "role": 1})
    if existing:
        if existing.get("role") == UserRole.ROLE_ADMIN.value:
            logger.info("Bootstrap admin: already exists (email=%s)", email)
            return {"action": "already_exists", "user_id": existing["user_id"], "message": "Admin already exists"}
        await db.users.update_one(
            {"user_id": existing["user_id"]},
            {"$set": {"role": UserRole.ROLE_ADMIN.value, "status": UserStatus.ACTIVE.value, "updated_at": now}},
        )
        await create_audit_log(
            action=AuditAction.USER_ROLE_CHANGED,
            actor_role="SYSTEM",
            resource_type="user",
            resource_id=existing["user_id"],
            before_state={"role": existing.get("role")},
            after_state={"role": UserRole.ROLE_ADMIN.value},
            metadata={"method": "bootstrap_env"},
        )
        logger.info("Bootstrap admin: promoted existing user (email=%s)", email)
        return {"action": "promoted", "user_id": existing["user_id"], "message": "Existing user promoted to admin"}

    if not password:
        return {"action": "skipped", "user_id": None, "message": "ADMIN_PASSWORD not set"}

    valid, reason = validate_password_strength(password)
    if not valid:
        logger.error("Bootstrap admin: weak password rejected (%s)", reason)
        return {"action": "rejected", "user_id": None, "message": reason}

    user_id = str(uuid.uuid4())
    await db.users.insert_one({
        "user_id": user_id,
        "email": email,
        "password_hash": hash_password(password),
        "role": UserRole.ROLE_ADMIN.value,
        "status": UserStatus.ACTIVE.value,
        "created_at": now,
        "updated_at": now,
        "last_login": None,
    })
    await create_audit_log(
        action=AuditAction.ADMIN_CREATED,
        actor_role="SYSTEM",
        resource_type="user",
        resource_id=user_id,
        metadata={"email": email, "method": "bootstrap_env"},
    )
    logger.info("Bootstrap admin: created (email=%s)", email)
    return {"action": "created", "user_id": user_id, "message": "Admin created"}
