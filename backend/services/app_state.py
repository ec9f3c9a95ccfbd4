"""Application flow state machine.

home -> generator -> (payment) -> results / success

reduce() is pure: it never touches the database and returns a new AppState.
Actions are plain dicts {"type": ..., "payload": ...}.
"""
from typing import Any, Dict, Mapping, Optional

from models import AppState, AppStep, GeneratedPhrase, GenerationRequest

NAVIGATE_TO_GENERATOR = "NAVIGATE_TO_GENERATOR"
START_GENERATION = "START_GENERATION"
COMPLETE_GENERATION = "COMPLETE_GENERATION"
GENERATION_ERROR = "GENERATION_ERROR"
REQUIRE_PAYMENT = "REQUIRE_PAYMENT"
NAVIGATE_TO_PAYMENT = "NAVIGATE_TO_PAYMENT"
CHECKOUT_CANCELED = "CHECKOUT_CANCELED"
COMPLETE_PAYMENT = "COMPLETE_PAYMENT"
SHOW_RESULTS = "SHOW_RESULTS"
NAVIGATE_TO_HOME = "NAVIGATE_TO_HOME"

ERROR_PAYMENT_CANCELED = "payment.canceled"


def action(action_type: str, payload: Any = None) -> Dict[str, Any]:
    return {"type": action_type, "payload": payload}


def initial_state() -> AppState:
    return AppState()


def _phrases(payload) -> list:
    return [p if isinstance(p, GeneratedPhrase) else GeneratedPhrase(**p) for p in (payload or [])]


def reduce(state: AppState, act: Mapping[str, Any]) -> AppState:
    kind = act.get("type")
    payload = act.get("payload")

    if kind == NAVIGATE_TO_GENERATOR:
        return state.model_copy(update={"current_step": AppStep.GENERATOR, "error": None})

    if kind == START_GENERATION:
        request = payload if isinstance(payload, GenerationRequest) else GenerationRequest(**payload)
        return state.model_copy(update={
            "generation_request": request,
            "is_generating": True,
            "error": None,
        })

    if kind == COMPLETE_GENERATION:
        return state.model_copy(update={
            "current_step": AppStep.RESULTS,
            "generated_phrases": _phrases(payload),
            "is_generating": False,
            "error": None,
        })

    if kind == GENERATION_ERROR:
        return state.model_copy(update={"is_generating": False, "error": str(payload)})

    if kind == REQUIRE_PAYMENT:
        payload = payload or {}
        return state.model_copy(update={
            "current_step": AppStep.PAYMENT,
            "pending_result_id": payload.get("result_id"),
            "generated_phrases": [],
            "is_generating": False,
            "is_payment_complete": False,
            "error": None,
        })

    if kind == NAVIGATE_TO_PAYMENT:
        return state.model_copy(update={"current_step": AppStep.PAYMENT, "error": None})

    if kind == CHECKOUT_CANCELED:
        update = {"current_step": AppStep.PAYMENT, "error": ERROR_PAYMENT_CANCELED}
        if payload and payload.get("result_id"):
            update["pending_result_id"] = payload["result_id"]
        return state.model_copy(update=update)

    if kind == COMPLETE_PAYMENT:
        return state.model_copy(update={
            "current_step": AppStep.SUCCESS,
            "generated_phrases": _phrases(payload),
            "is_payment_complete": True,
            "is_generating": False,
            "error": None,
        })

    if kind == SHOW_RESULTS:
        if not state.generated_phrases:
            return state
        return state.model_copy(update={"current_step": AppStep.RESULTS})

    if kind == NAVIGATE_TO_HOME:
        return initial_state()

    return state


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def action_from_url_params(params: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    """Map checkout return query parameters to the resuming action, without phrases.

    success=true needs the payment to be verified first, so it maps to
    NAVIGATE_TO_PAYMENT; the caller dispatches COMPLETE_PAYMENT once the
    phrases are restored.
    """
    result_id = params.get("result_id")
    if _flag(params.get("canceled")):
        return action(CHECKOUT_CANCELED, {"result_id": result_id})
    if _flag(params.get("success")):
        return action(NAVIGATE_TO_PAYMENT)
    return None
