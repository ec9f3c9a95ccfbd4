"""Payment gate: decide whether a generation is shown, counted as a trial, or held for payment."""
import asyncio
import logging
from typing import Optional

from models import GateDecision, GenerationStatus, PaymentSettings
from services import settings_service, trial_service, pending_result_service

logger = logging.getLogger(__name__)

REASON_PAYMENT_REQUIRED = "payment.required"
REASON_CHECK_FAILED = "error.payment_check_failed"


def decide_gate(policy: PaymentSettings, trial_count: int, has_valid_payment: bool) -> GateDecision:
    if has_valid_payment or not policy.payment_required:
        return GateDecision.ALLOW_AND_SHOW
    if policy.free_trials_allowed and trial_count < policy.trial_limit:
        return GateDecision.ALLOW_AND_INCREMENT_TRIAL
    return GateDecision.REQUIRE_PAYMENT


async def check_payment_status(session_id: Optional[str], payment_token: Optional[str] = None) -> GenerationStatus:
    try:
        policy, trial_count, has_valid_payment = await asyncio.gather(
            settings_service.get_payment_settings(),
            trial_service.get_trial_count(session_id),
            pending_result_service.is_payment_token_valid(payment_token),
        )
        decision = decide_gate(policy, trial_count, has_valid_payment)
    except Exception as e:
        logger.error(f"Payment status check failed for session {session_id}: {e}")
        return GenerationStatus(
            can_generate=False,
            requires_payment=True,
            reason=REASON_CHECK_FAILED,
            session_id=session_id,
        )

    if decision == GateDecision.ALLOW_AND_SHOW:
        return GenerationStatus(
            can_generate=True,
            requires_payment=False,
            show_results=True,
            decision=decision,
            session_id=session_id,
        )

    if decision == GateDecision.ALLOW_AND_INCREMENT_TRIAL:
        return GenerationStatus(
            can_generate=True,
            requires_payment=False,
            show_results=True,
            decision=decision,
            session_id=session_id,
            trial_count=trial_count,
            trial_limit=policy.trial_limit,
        )

    return GenerationStatus(
        can_generate=True,
        requires_payment=True,
        show_results=False,
        decision=decision,
        reason=REASON_PAYMENT_REQUIRED,
        session_id=session_id,
        trial_count=trial_count,
        trial_limit=policy.trial_limit if policy.free_trials_allowed else None,
    )
