"""Webhook Routes - Stripe webhooks.

POST /api/webhook/stripe - Stripe checkout events (signature verified when STRIPE_WEBHOOK_SECRET is set)
"""
from fastapi import APIRouter, HTTPException, Request, Header, status
from services.stripe_webhook_service import stripe_webhook_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])


@router.post("/api/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature")
):
    """
    Stripe webhook endpoint.

    Returns 400 only for unverifiable payloads; every verified event gets a
    200 (failures are recorded in stripe_events and the audit log).
    """
    payload = await request.body()
    success, message, details = await stripe_webhook_service.process_webhook(payload, stripe_signature)

    if not success:
        logger.warning(f"Rejected Stripe webhook: {message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    return {"received": True, "message": message}
