"""
Admin accounts: bootstrap from env, role checks, user management and login rate limiting.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from auth import check_rbac, create_access_token, decode_access_token, validate_password_strength
from models import UserRole
from services import user_service
from services.admin_bootstrap import run_bootstrap_admin
from services.user_service import SelfModificationError, UserNotFoundError, compute_user_stats
from utils.rate_limiter import RateLimiter
from helpers import update_result


def test_rbac_hierarchy():
    assert check_rbac("ROLE_ADMIN", UserRole.ROLE_ADMIN) is True
    assert check_rbac("ROLE_ADMIN", UserRole.ROLE_USER) is True
    assert check_rbac("ROLE_USER", UserRole.ROLE_ADMIN) is False
    assert check_rbac(None, UserRole.ROLE_USER) is False


def test_token_round_trip_and_tampering():
    token = create_access_token({"user_id": "u-1", "role": "ROLE_ADMIN"})
    assert decode_access_token(token)["user_id"] == "u-1"
    assert decode_access_token(token + "x") is None


@pytest.mark.parametrize("password,ok", [
    ("Short1", False),
    ("alllowercase1", False),
    ("ALLUPPERCASE1", False),
    ("NoDigitsHere", False),
    ("Str0ngPassword", True),
])
def test_password_strength(password, ok):
    assert validate_password_strength(password)[0] is ok


@pytest.mark.asyncio
async def test_rate_limiter_window():
    limiter = RateLimiter()
    for _ in range(3):
        assert (await limiter.check_rate_limit("k", 3, 1))[0] is True
    allowed, message = await limiter.check_rate_limit("k", 3, 1)
    assert allowed is False
    assert "Rate limit exceeded" in message
    limiter.reset("k")
    assert (await limiter.check_rate_limit("k", 3, 1))[0] is True


@pytest.mark.asyncio
async def test_rate_limiter_sweeps_idle_keys():
    limiter = RateLimiter()
    for session in ("sess-a", "sess-b"):
        await limiter.check_rate_limit(f"generate:{session}", 10, 10)
    later = datetime.now(timezone.utc) + timedelta(minutes=11)
    limiter.attempts["generate:sess-c"] = [later - timedelta(minutes=1)]

    assert limiter.sweep(later) == 2
    assert list(limiter.attempts) == ["generate:sess-c"]


@pytest.mark.asyncio
async def test_rate_limiter_sweeps_during_checks():
    limiter = RateLimiter()
    await limiter.check_rate_limit("generate:old", 10, 10)
    limiter.attempts["generate:old"] = [datetime.now(timezone.utc) - timedelta(minutes=30)]
    limiter.last_sweep = datetime.now(timezone.utc) - timedelta(minutes=6)

    await limiter.check_rate_limit("generate:new", 10, 10)

    assert "generate:old" not in limiter.attempts
    assert "generate:new" in limiter.attempts


@pytest.mark.asyncio
async def test_bootstrap_skips_without_password(monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value=None)
    with patch("services.admin_bootstrap.database.get_db", return_value=db):
        result = await run_bootstrap_admin(email="boss@clicklone.com")
    assert result["action"] == "skipped"


@pytest.mark.asyncio
async def test_bootstrap_rejects_weak_password():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value=None)
    db.users.insert_one = AsyncMock()
    with patch("services.admin_bootstrap.database.get_db", return_value=db):
        result = await run_bootstrap_admin(email="boss@clicklone.com", password="weak")
    assert result["action"] == "rejected"
    db.users.insert_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_bootstrap_creates_admin():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value=None)
    db.users.insert_one = AsyncMock()
    with patch("services.admin_bootstrap.database.get_db", return_value=db), \
         patch("services.admin_bootstrap.hash_password", return_value="hashed"), \
         patch("services.admin_bootstrap.create_audit_log", new_callable=AsyncMock):
        result = await run_bootstrap_admin(email=" Boss@Clicklone.com ", password="Str0ngPassword")

    assert result["action"] == "created"
    doc = db.users.insert_one.await_args.args[0]
    assert doc["email"] == "boss@clicklone.com"
    assert doc["role"] == "ROLE_ADMIN"
    assert doc["password_hash"] == "hashed"
    assert "Str0ngPassword" not in str(result)


@pytest.mark.asyncio
async def test_bootstrap_promotes_existing_user():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value={"user_id": "u-1", "role": "ROLE_USER"})
    db.users.update_one = AsyncMock(return_value=update_result())
    with patch("services.admin_bootstrap.database.get_db", return_value=db), \
         patch("services.admin_bootstrap.create_audit_log", new_callable=AsyncMock):
        result = await run_bootstrap_admin(email="user@example.com", password="")

    assert result == {"action": "promoted", "user_id": "u-1", "message": "Existing user promoted to admin"}
    assert db.users.update_one.await_args.args[1]["$set"]["role"] == "ROLE_ADMIN"


@pytest.mark.asyncio
async def test_bootstrap_is_idempotent():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value={"user_id": "u-1", "role": "ROLE_ADMIN"})
    db.users.update_one = AsyncMock()
    with patch("services.admin_bootstrap.database.get_db", return_value=db):
        result = await run_bootstrap_admin(email="admin@clicklone.com", password="Str0ngPassword")
    assert result["action"] == "already_exists"
    db.users.update_one.assert_not_awaited()


def test_user_stats():
    stats = compute_user_stats([{"role": "ROLE_ADMIN"}, {"role": "ROLE_USER"}, {"role": "ROLE_USER"}])
    assert stats == {"total": 3, "admins": 1, "users": 2}


@pytest.mark.asyncio
async def test_admin_cannot_demote_self():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value={"user_id": "admin-1", "role": "ROLE_ADMIN"})
    with patch("services.user_service.database.get_db", return_value=db):
        with pytest.raises(SelfModificationError):
            await user_service.update_user_role("admin-1", UserRole.ROLE_USER, actor_id="admin-1")


@pytest.mark.asyncio
async def test_admin_cannot_delete_self():
    with pytest.raises(SelfModificationError):
        await user_service.delete_user("admin-1", actor_id="admin-1")


@pytest.mark.asyncio
async def test_unknown_user():
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value=None)
    with patch("services.user_service.database.get_db", return_value=db):
        with pytest.raises(UserNotFoundError):
            await user_service.get_user("missing")


def test_login_rate_limited(client):
    db = MagicMock()
    db.users.find_one = AsyncMock(return_value=None)
    with patch("routes.auth.database.get_db", return_value=db), \
         patch("routes.auth.create_audit_log", new_callable=AsyncMock):
        codes = [
            client.post("/api/auth/login", json={"email": "x@example.com", "password": "nope"}).status_code
            for _ in range(6)
        ]
    assert codes == [401] * 5 + [429]
