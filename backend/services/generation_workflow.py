"""Generation workflow: gate check, LLM generation, then show or hold for payment.

    status = check_payment_status(session, token)
    reserve: consume prepaid token / reserve trial (a lost race falls back to payment)
    phrases = generate(request)
    ALLOW_AND_SHOW            -> COMPLETE_GENERATION
    ALLOW_AND_INCREMENT_TRIAL -> COMPLETE_GENERATION
    REQUIRE_PAYMENT           -> save pending result + token, REQUIRE_PAYMENT

Generation errors hand the reservation back and are re-raised once
GENERATION_ERROR is recorded on the flow state.
"""
import logging
from typing import Any, Dict, Optional

from models import ConversionEventType, GateDecision, GenerationRequest
from services import app_state, payment_gate, pending_result_service, settings_service, trial_service
from services.analytics_service import analytics_service
from services.flow_service import flow_service
from services.phrase_generator import phrase_generator, PhraseGenerationError
from services.prompt_builder import resolve_language
from utils.rate_limiter import rate_limiter

logger = logging.getLogger(__name__)

GENERATION_RATE_LIMIT = 10
GENERATION_RATE_WINDOW_MINUTES = 10


class GenerationBlockedError(Exception):
    """The gate refused the generation (e.g. the status check failed)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RateLimitExceededError(Exception):
    pass


async def run_generation(
    request: GenerationRequest,
    session_id: str,
    payment_token: Optional[str] = None,
    rate_limit_key: Optional[str] = None,
) -> Dict[str, Any]:
    allowed, message = await rate_limiter.check_rate_limit(
        f"generate:{rate_limit_key or session_id}",
        GENERATION_RATE_LIMIT,
        GENERATION_RATE_WINDOW_MINUTES,
    )
    if not allowed:
        raise RateLimitExceededError(message)

    request = request.model_copy(update={"language": resolve_language(request.language)})

    status = await payment_gate.check_payment_status(session_id, payment_token)
    token_consumed = False
    if status.can_generate and status.decision == GateDecision.ALLOW_AND_SHOW and payment_token:
        # Prepaid tokens are single use; a token lost to a concurrent request no longer counts
        token_consumed = await pending_result_service.mark_payment_token_used(payment_token)
        if not token_consumed:
            logger.info(f"Payment token already used, rechecking gate for session {session_id}")
            status = await payment_gate.check_payment_status(session_id, None)

    if not status.can_generate:
        await flow_service.dispatch(session_id, app_state.action(app_state.GENERATION_ERROR, status.reason))
        raise GenerationBlockedError(status.reason)

    decision = status.decision
    reason = status.reason
    trial_reserved = False
    if decision == GateDecision.ALLOW_AND_INCREMENT_TRIAL:
        trial_reserved = await trial_service.reserve_trial(session_id, status.trial_limit)
        if not trial_reserved:
            decision = GateDecision.REQUIRE_PAYMENT
            reason = payment_gate.REASON_PAYMENT_REQUIRED

    await flow_service.dispatch(session_id, app_state.action(app_state.START_GENERATION, request))
    await analytics_service.track_conversion(
        session_id,
        ConversionEventType.GENERATOR_START,
        "/generator",
        {"tone": request.tone.value, "language": request.language},
    )

    try:
        phrases = await phrase_generator.generate(request)
    except PhraseGenerationError as e:
        if trial_reserved:
            await trial_service.release_trial(session_id)
        if token_consumed:
            await pending_result_service.release_payment_token(payment_token)
        await flow_service.dispatch(session_id, app_state.action(app_state.GENERATION_ERROR, str(e)))
        raise

    gated = decision == GateDecision.REQUIRE_PAYMENT
    await analytics_service.record_generation(session_id, request.tone, request.language, len(phrases), gated)

    if not gated:
        state = await flow_service.dispatch(
            session_id, app_state.action(app_state.COMPLETE_GENERATION, phrases)
        )
        logger.info(f"Generation shown for session {session_id} ({decision.value})")
        return {
            "decision": decision.value,
            "requires_payment": False,
            "phrases": phrases,
            "result_id": None,
            "trial_count": (status.trial_count + 1) if trial_reserved else None,
            "trial_limit": status.trial_limit,
            "state": state,
        }

    policy = await settings_service.get_payment_settings()
    result_id = await pending_result_service.save_pending_result(phrases, request, session_id)
    await pending_result_service.create_payment_token(result_id, policy.payment_amount, policy.payment_currency)
    state = await flow_service.dispatch(
        session_id,
        app_state.action(app_state.REQUIRE_PAYMENT, {"result_id": result_id, "reason": reason}),
    )
    logger.info(f"Generation held for payment: session {session_id}, result {result_id}")
    return {
        "decision": decision.value,
        "requires_payment": True,
        "phrases": [],
        "result_id": result_id,
        "reason": reason,
        "amount": policy.payment_amount,
        "currency": policy.payment_currency,
        "state": state,
    }
