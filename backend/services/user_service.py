"""Dashboard users: listing, role changes and deletion."""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from database import database
from models import UserRole

logger = logging.getLogger(__name__)

_PUBLIC_PROJECTION = {"_id": 0, "password_hash": 0}


class UserNotFoundError(Exception):
    pass


class SelfModificationError(Exception):
    """Admins cannot demote or delete their own account."""
    pass


def compute_user_stats(users: List[Dict[str, Any]]) -> Dict[str, int]:
    return {
        "total": len(users),
        "admins": sum(1 for u in users if u.get("role") == UserRole.ROLE_ADMIN.value),
        "users": sum(1 for u in users if u.get("role") != UserRole.ROLE_ADMIN.value),
    }


async def list_users(search: Optional[str] = None, role: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
    db = database.get_db()
    query: Dict[str, Any] = {}
    if search:
        query["email"] = {"$regex": re.escape(search.strip()), "$options": "i"}
    if role and role != "all":
        query["role"] = UserRole(role).value

    users = await db.users.find(query, _PUBLIC_PROJECTION).sort("created_at", -1).to_list(length=limit)
    everyone = await db.users.find({}, {"_id": 0, "role": 1}).to_list(length=100000)
    return {"users": users, "total": len(users), "stats": compute_user_stats(everyone)}


async def get_user(user_id: str) -> Dict[str, Any]:
    db = database.get_db()
    user = await db.users.find_one({"user_id": user_id}, _PUBLIC_PROJECTION)
    if not user:
        raise UserNotFoundError(user_id)
    return user


async def update_user_role(user_id: str, role: UserRole, actor_id: Optional[str] = None) -> Dict[str, Any]:
    user = await get_user(user_id)
    if actor_id and actor_id == user_id and role != UserRole.ROLE_ADMIN:
        raise SelfModificationError("You cannot remove your own admin role")

    db = database.get_db()
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"role": role.value, "updated_at": datetime.now(timezone.utc).isoformat()}},
    )
    logger.info(f"User {user_id} role changed {user.get('role')} -> {role.value}")
    return {**user, "role": role.value}


async def delete_user(user_id: str, actor_id: Optional[str] = None) -> Dict[str, Any]:
    if actor_id and actor_id == user_id:
        raise SelfModificationError("You cannot delete your own account")
    user = await get_user(user_id)
    db = database.get_db()
    await db.users.delete_one({"user_id": user_id})
    logger.info(f"User {user_id} deleted")
    return user
