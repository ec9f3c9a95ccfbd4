"""Per-browser flow state persisted in app_states."""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from database import database
from models import AppState
from services import app_state

logger = logging.getLogger(__name__)


class FlowService:

    async def get_state(self, session_id: str) -> AppState:
        if not session_id:
            return app_state.initial_state()
        db = database.get_db()
        doc = await db.app_states.find_one({"session_id": session_id}, {"_id": 0})
        if not doc or not doc.get("state"):
            return app_state.initial_state()
        try:
            return AppState(**doc["state"])
        except ValueError as e:
            logger.warning(f"Discarding unreadable flow state for {session_id}: {e}")
            return app_state.initial_state()

    async def save_state(self, session_id: str, state: AppState):
        if not session_id:
            return
        db = database.get_db()
        await db.app_states.update_one(
            {"session_id": session_id},
            {"$set": {
                "session_id": session_id,
                "state": state.model_dump(mode="json"),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }},
            upsert=True,
        )

    async def dispatch(self, session_id: str, act: Mapping[str, Any]) -> AppState:
        current = await self.get_state(session_id)
        new_state = app_state.reduce(current, act)
        if new_state.current_step != current.current_step:
            logger.info(
                "Flow %s: %s -> %s (%s)",
                session_id, current.current_step.value, new_state.current_step.value, act.get("type"),
            )
        await self.save_state(session_id, new_state)
        return new_state

    async def reset(self, session_id: str) -> AppState:
        return await self.dispatch(session_id, app_state.action(app_state.NAVIGATE_TO_HOME))


flow_service = FlowService()
