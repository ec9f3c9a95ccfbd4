from fastapi import APIRouter, HTTPException, Request, status
from database import database
from models import LoginRequest, TokenResponse, UserRole, UserStatus, AuditAction
from auth import verify_password, create_access_token
from middleware import require_auth, get_client_ip
from utils.audit import create_audit_log
from utils.rate_limiter import rate_limiter
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_MINUTES = 15


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, credentials: LoginRequest):
    """Dashboard login (admins only)."""
    email = credentials.email.lower()
    ip = get_client_ip(request)

    allowed, message = await rate_limiter.check_rate_limit(
        f"login:{email}", LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_MINUTES
    )
    if not allowed:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=message)

    db = database.get_db()
    try:
        user = await db.users.find_one({"email": email}, {"_id": 0})

        if not user or not user.get("password_hash") or not verify_password(credentials.password, user["password_hash"]):
            await create_audit_log(
                action=AuditAction.ADMIN_LOGIN_FAILED,
                metadata={"email": email, "reason": "invalid_credentials"},
                ip_address=ip,
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        if user.get("status") != UserStatus.ACTIVE.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account disabled"
            )

        if user.get("role") != UserRole.ROLE_ADMIN.value:
            await create_audit_log(
                action=AuditAction.ADMIN_LOGIN_FAILED,
                actor_id=user["user_id"],
                metadata={"email": email, "reason": "not_admin"},
                ip_address=ip,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required"
            )

        await db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"last_login": datetime.now(timezone.utc).isoformat()}}
        )

        token = create_access_token({
            "user_id": user["user_id"],
            "email": user["email"],
            "role": user["role"],
        })

        await create_audit_log(
            action=AuditAction.ADMIN_LOGIN_SUCCESS,
            actor_role=user["role"],
            actor_id=user["user_id"],
            ip_address=ip,
        )
        rate_limiter.reset(f"login:{email}")

        return TokenResponse(
            access_token=token,
            user={"user_id": user["user_id"], "email": user["email"], "role": user["role"]},
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )


@router.get("/me")
async def get_me(request: Request):
    """Current user from the bearer token."""
    user = await require_auth(request)
    return {"user_id": user.get("user_id"), "email": user.get("email"), "role": user.get("role")}
