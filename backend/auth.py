"""Dashboard credentials: bcrypt password hashes and HS256 bearer tokens."""
from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
import os
from models import UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_SECRET = os.getenv("JWT_SECRET", "clicklone-dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_TTL = timedelta(hours=int(os.getenv("JWT_EXPIRATION_HOURS", "24")))

ROLE_LEVELS = {
    UserRole.ROLE_USER.value: 0,
    UserRole.ROLE_ADMIN.value: 1,
}

MIN_PASSWORD_LENGTH = 8
PASSWORD_RULES = [
    (str.isupper, "Password must contain at least one uppercase letter"),
    (str.islower, "Password must contain at least one lowercase letter"),
    (str.isdigit, "Password must contain at least one number"),
]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(claims: Dict, ttl: Optional[timedelta] = None) -> str:
    """Sign claims (user_id, email, role) with an exp claim."""
    payload = {**claims, "exp": datetime.now(timezone.utc) + (ttl or TOKEN_TTL)}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid, unexpired token; None otherwise."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def validate_password_strength(password: str) -> tuple[bool, str]:
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    for has_char, message in PASSWORD_RULES:
        if not any(has_char(c) for c in password):
            return False, message
    return True, "Password is valid"


def check_rbac(user_role: Optional[str], required_role: UserRole) -> bool:
    """Unknown roles rank below every real role."""
    return ROLE_LEVELS.get(user_role, -1) >= ROLE_LEVELS[required_role.value]
