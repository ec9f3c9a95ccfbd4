"""Pending results and payment tokens.

When payment is required the generated phrases are parked in pending_results
under a random result_id, and a payment token is issued for that result.
Both expire 24 hours after creation (TTL index on expires_at plus the hourly
cleanup job). A token is consumed at most once.
"""
import logging
import uuid
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Optional

from database import database
from models import GeneratedPhrase, GenerationRequest

logger = logging.getLogger(__name__)

PENDING_RESULT_TTL = timedelta(hours=24)
PAYMENT_TOKEN_TTL = timedelta(hours=24)


class PendingResultNotFoundError(Exception):
    """Raised when a result id is unknown or expired."""
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def save_pending_result(
    phrases: List[GeneratedPhrase],
    request: Optional[GenerationRequest] = None,
    session_id: Optional[str] = None,
) -> str:
    if not phrases:
        raise ValueError("Cannot save an empty result")

    db = database.get_db()
    now = _now()
    result_id = str(uuid.uuid4())
    doc = {
        "result_id": result_id,
        "content": {
            "phrases": [p.model_dump(mode="json") for p in phrases],
            "request": request.model_dump(mode="json") if request else None,
        },
        "session_id": session_id,
        "is_unlocked": False,
        "unlocked_at": None,
        "checkout_session_id": None,
        "created_at": now,
        "expires_at": now + PENDING_RESULT_TTL,
    }
    await db.pending_results.insert_one(doc)
    logger.info(f"Pending result saved: {result_id} ({len(phrases)} phrases)")
    return result_id


async def get_pending_result(result_id: str) -> Optional[Dict[str, Any]]:
    """Return the unexpired pending result document, or None."""
    if not result_id:
        return None
    db = database.get_db()
    return await db.pending_results.find_one(
        {"result_id": result_id, "expires_at": {"$gt": _now()}},
        {"_id": 0}
    )


def phrases_from_result(doc: Dict[str, Any]) -> List[GeneratedPhrase]:
    content = doc.get("content") or {}
    return [GeneratedPhrase(**p) for p in content.get("phrases", [])]


async def mark_result_unlocked(result_id: str, checkout_session_id: Optional[str] = None) -> bool:
    db = database.get_db()
    result = await db.pending_results.update_one(
        {"result_id": result_id},
        {"$set": {
            "is_unlocked": True,
            "unlocked_at": _now(),
            "checkout_session_id": checkout_session_id,
        }}
    )
    return result.matched_count > 0


async def create_payment_token(result_id: str, amount: int, currency: str) -> str:
    db = database.get_db()
    now = _now()
    token = str(uuid.uuid4())
    await db.payment_tokens.insert_one({
        "token": token,
        "result_id": result_id,
        "amount": amount,
        "currency": currency,
        "is_used": False,
        "used_at": None,
        "created_at": now,
        "expires_at": now + PAYMENT_TOKEN_TTL,
    })
    logger.info(f"Payment token issued for result {result_id}")
    return token


async def is_payment_token_valid(token: Optional[str]) -> bool:
    if not token:
        return False
    try:
        db = database.get_db()
        doc = await db.payment_tokens.find_one(
            {"token": token, "is_used": False, "expires_at": {"$gt": _now()}},
            {"_id": 0, "token": 1}
        )
    except Exception as e:
        logger.error(f"Failed to validate payment token: {e}")
        return False
    return doc is not None


async def mark_payment_token_used(token: str) -> bool:
    """Flip is_used on an unused token. True only for the call that consumed it."""
    db = database.get_db()
    result = await db.payment_tokens.update_one(
        {"token": token, "is_used": False},
        {"$set": {"is_used": True, "used_at": _now()}}
    )
    if result.modified_count:
        logger.info("Payment token consumed")
        return True
    return False


async def release_payment_token(token: str) -> bool:
    """Undo mark_payment_token_used for a prepaid generation that failed."""
    db = database.get_db()
    result = await db.payment_tokens.update_one(
        {"token": token, "is_used": True},
        {"$set": {"is_used": False, "used_at": None}}
    )
    return result.modified_count == 1


async def get_payment_token_by_result_id(result_id: str) -> Optional[Dict[str, Any]]:
    db = database.get_db()
    return await db.payment_tokens.find_one(
        {"result_id": result_id},
        {"_id": 0},
        sort=[("created_at", -1)],
    )


async def delete_expired(now: Optional[datetime] = None) -> Dict[str, int]:
    """Remove expired pending results and tokens. Returns deleted counts."""
    db = database.get_db()
    cutoff = now or _now()
    results = await db.pending_results.delete_many({"expires_at": {"$lte": cutoff}})
    tokens = await db.payment_tokens.delete_many({"expires_at": {"$lte": cutoff}})
    return {"pending_results": results.deleted_count, "payment_tokens": tokens.deleted_count}
