"""Generator Routes - public funnel API.

GET  /api/payment/status          - gate status for this browser
POST /api/generate                - generate taglines (shown, trial, or held for payment)
GET  /api/flow/state              - current flow state
POST /api/flow/navigate           - explicit navigation (home, generator, payment, results)
GET  /api/flow/resume             - resume after the checkout redirect (query params from Stripe)
POST /api/checkout                - start hosted checkout for a pending result
GET  /api/results/{result_id}     - phrases of a paid result (page refresh)

The browser identifies itself with an opaque X-Session-Id header.
"""
from fastapi import APIRouter, HTTPException, Request, Header, status
from typing import Optional
import logging

from middleware import get_browser_session_id, get_client_ip
from models import AppStep, CheckoutRequest, GenerationRequest, NavigateRequest
from services import app_state, payment_gate, pending_result_service
from services.flow_service import flow_service
from services.generation_workflow import (
    run_generation, GenerationBlockedError, RateLimitExceededError,
)
from services.phrase_generator import (
    PhraseGenerationError, GenerationQualityError, LLMConfigurationError, LLMQuotaError, LLMConnectionError,
)
from services.pending_result_service import PendingResultNotFoundError
from services.stripe_service import stripe_service, PaymentNotCompletedError, PaymentTokenUsedError
from utils.public_app_url import resolve_origin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["generator"])


def _require_session(request: Request) -> str:
    session_id = get_browser_session_id(request)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Session-Id header is required"
        )
    return session_id


@router.get("/payment/status")
async def get_payment_status(
    request: Request,
    payment_token: Optional[str] = Header(None, alias="X-Payment-Token"),
):
    session_id = get_browser_session_id(request)
    return await payment_gate.check_payment_status(session_id, payment_token)


@router.post("/generate")
async def generate(
    request: Request,
    body: GenerationRequest,
    payment_token: Optional[str] = Header(None, alias="X-Payment-Token"),
):
    """Generate ten taglines for a concept."""
    session_id = _require_session(request)
    try:
        result = await run_generation(
            body,
            session_id,
            payment_token=payment_token,
            rate_limit_key=session_id or get_client_ip(request),
        )
    except RateLimitExceededError as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e))
    except GenerationBlockedError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.reason)
    except GenerationQualityError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except LLMConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except LLMQuotaError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except LLMConnectionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except PhraseGenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return result


@router.get("/flow/state")
async def get_flow_state(request: Request):
    session_id = _require_session(request)
    return await flow_service.get_state(session_id)


@router.post("/flow/navigate")
async def navigate(request: Request, body: NavigateRequest):
    session_id = _require_session(request)

    if body.step == AppStep.HOME:
        return await flow_service.reset(session_id)
    if body.step == AppStep.GENERATOR:
        return await flow_service.dispatch(session_id, app_state.action(app_state.NAVIGATE_TO_GENERATOR))

    current = await flow_service.get_state(session_id)
    if body.step == AppStep.PAYMENT:
        if not current.pending_result_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No result awaiting payment")
        return await flow_service.dispatch(session_id, app_state.action(app_state.NAVIGATE_TO_PAYMENT))
    if body.step == AppStep.RESULTS:
        if not current.generated_phrases:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No results to show")
        return await flow_service.dispatch(session_id, app_state.action(app_state.SHOW_RESULTS))

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Cannot navigate to {body.step.value}")


@router.get("/flow/resume")
async def resume_flow(request: Request):
    """Resume after Stripe redirects back with ?success=true or ?canceled=true."""
    session_id = _require_session(request)
    params = dict(request.query_params)

    try:
        outcome = await stripe_service.handle_checkout_return(params, session_id)
    except PendingResultNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found or expired")
    except PaymentNotCompletedError:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Payment not completed")
    except PaymentTokenUsedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if outcome["outcome"] == "canceled":
        state = await flow_service.dispatch(session_id, app_state.action_from_url_params(params))
    elif outcome["outcome"] == "success":
        state = await flow_service.dispatch(
            session_id, app_state.action(app_state.COMPLETE_PAYMENT, outcome["phrases"])
        )
    else:
        state = await flow_service.get_state(session_id)

    return {"outcome": outcome["outcome"], "result_id": outcome.get("result_id"), "state": state}


@router.post("/checkout")
async def create_checkout(request: Request, body: CheckoutRequest):
    session_id = get_browser_session_id(request)
    origin = resolve_origin(request.headers.get("Origin"))
    try:
        return await stripe_service.create_checkout_session(body.result_id, origin, session_id)
    except PendingResultNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found or expired")
    except PaymentTokenUsedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        logger.error(f"Checkout creation failed for result {body.result_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/results/{result_id}")
async def get_result(request: Request, result_id: str):
    """Phrases of an unlocked result, for the browser session that generated it."""
    session_id = _require_session(request)
    pending = await pending_result_service.get_pending_result(result_id)
    if not pending or pending.get("session_id") != session_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found or expired")
    if not pending.get("is_unlocked"):
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Payment required")
    return {
        "result_id": result_id,
        "phrases": pending_result_service.phrases_from_result(pending),
    }
