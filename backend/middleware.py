"""Request helpers: bearer-token guards for the dashboard, browser session id and client IP."""
from fastapi import Request, HTTPException, status
from typing import Optional
import logging
from auth import decode_access_token, check_rbac
from models import UserRole

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"
MAX_SESSION_ID_LENGTH = 100


def _bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> Optional[dict]:
    """JWT claims of the caller, or None for anonymous or invalid tokens."""
    token = _bearer_token(request)
    return decode_access_token(token) if token else None


async def require_auth(request: Request) -> dict:
    user = await get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return user


async def require_role(request: Request, required_role: UserRole) -> dict:
    user = await require_auth(request)
    if not check_rbac(user.get("role"), required_role):
        logger.warning(
            "Access denied path=%s user_id=%s role=%s required=%s",
            request.url.path, user.get("user_id"), user.get("role"), required_role.value,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )
    return user


async def admin_route_guard(request: Request) -> dict:
    """Every /api/admin route: 401 without a token, 403 for non-admins."""
    return await require_role(request, UserRole.ROLE_ADMIN)


def get_browser_session_id(request: Request) -> Optional[str]:
    """Opaque per-browser id sent by the UI; blank or oversized values count as missing."""
    session_id = (request.headers.get(SESSION_HEADER) or "").strip()
    if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
        return None
    return session_id


def get_client_ip(request: Request) -> Optional[str]:
    """First address from X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
