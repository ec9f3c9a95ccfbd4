"""Free-trial counter per browser session (generation_sessions collection).

A trial is reserved before generation with a single conditional update, so
concurrent requests on the last trial cannot both get one. A failed
generation hands its reservation back.
"""
import logging
from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError

from database import database

logger = logging.getLogger(__name__)


async def get_trial_count(session_id: str) -> int:
    if not session_id:
        return 0
    try:
        db = database.get_db()
        doc = await db.generation_sessions.find_one(
            {"session_id": session_id},
            {"_id": 0, "trial_count": 1}
        )
    except Exception as e:
        logger.error(f"Failed to read trial count for {session_id}: {e}")
        return 0
    if not doc:
        return 0
    return int(doc.get("trial_count") or 0)


async def reserve_trial(session_id: str, trial_limit: int) -> bool:
    """Take one trial if the session is still below trial_limit.

    Sessions without a document are created by the upsert. When the document
    exists but is at the limit, the upsert collides with the unique
    session_id index and the reservation is refused.
    """
    if not session_id or trial_limit <= 0:
        return False
    now = datetime.now(timezone.utc).isoformat()
    try:
        db = database.get_db()
        await db.generation_sessions.update_one(
            {"session_id": session_id, "trial_count": {"$lt": trial_limit}},
            {
                "$inc": {"trial_count": 1},
                "$set": {"last_generation": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
    except DuplicateKeyError:
        logger.info(f"Trial limit reached for session {session_id}")
        return False
    except Exception as e:
        logger.error(f"Failed to reserve trial for {session_id}: {e}")
        return False
    return True


async def release_trial(session_id: str) -> bool:
    if not session_id:
        return False
    try:
        db = database.get_db()
        result = await db.generation_sessions.update_one(
            {"session_id": session_id, "trial_count": {"$gt": 0}},
            {"$inc": {"trial_count": -1}},
        )
    except Exception as e:
        logger.error(f"Failed to release trial for {session_id}: {e}")
        return False
    return result.modified_count == 1
