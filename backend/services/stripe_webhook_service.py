"""Stripe checkout webhooks.

checkout.session.completed / async_payment_succeeded -> payment completed, result unlocked
checkout.session.expired / async_payment_failed      -> pending order canceled

Each event id is claimed in stripe_events before it is handled, so redelivered
events are acknowledged without being applied twice.
"""
import json
import stripe
import os
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from database import database
from models import AuditAction
from services import order_service
from services.stripe_service import stripe_service
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

COMPLETED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
CANCELED_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")
PAID_STATUSES = ("paid", "no_payment_required")

STATUS_PROCESSING = "PROCESSING"
STATUS_PROCESSED = "PROCESSED"
STATUS_FAILED = "FAILED"


def get_webhook_secret() -> str:
    """STRIPE_WEBHOOK_SECRET, else the _LIVE/_TEST variant matching the API key mode."""
    secret = (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()
    if secret:
        return secret
    api_key = (os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_API_KEY") or "").strip()
    mode = {"sk_live_": "LIVE", "sk_test_": "TEST"}.get(api_key[:8])
    if not mode:
        return ""
    return (os.getenv(f"STRIPE_WEBHOOK_SECRET_{mode}") or "").strip()


class StripeWebhookService:

    def _parse_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        secret = get_webhook_secret()
        if not secret:
            logger.warning("No Stripe webhook secret configured; accepting unsigned payload")
            return json.loads(payload)
        return stripe.Webhook.construct_event(payload, signature, secret)

    async def _claim_event(self, db, event_id: str, event_type: str) -> bool:
        """Mark the event as in progress. False when it was already processed."""
        existing = await db.stripe_events.find_one({"event_id": event_id})
        if existing and existing.get("status") == STATUS_PROCESSED:
            return False

        record = {
            "event_id": event_id,
            "type": event_type,
            "status": STATUS_PROCESSING,
            "received_at": datetime.now(timezone.utc),
            "processed_at": None,
            "error": None,
        }
        if existing:
            # Earlier attempt failed; retry it
            await db.stripe_events.update_one({"event_id": event_id}, {"$set": record})
            return True
        try:
            await db.stripe_events.insert_one(record)
        except DuplicateKeyError:
            return False
        return True

    async def process_webhook(
        self,
        payload: bytes,
        signature: Optional[str]
    ) -> Tuple[bool, str, Optional[Dict]]:
        """
        Verify, deduplicate and apply one webhook delivery.

        Returns:
            (accepted, message, details). accepted is False only for payloads
            that cannot be verified or parsed; handler failures are recorded
            and still acknowledged so Stripe stops retrying.
        """
        try:
            event = self._parse_event(payload, signature)
        except stripe.error.SignatureVerificationError as e:
            logger.error("Stripe webhook signature rejected: %s", e)
            return False, "Invalid signature", {"error": str(e)}
        except ValueError as e:
            logger.error(f"Stripe webhook payload unreadable: {e}")
            return False, "Invalid payload", {"error": str(e)}

        event_id = event.get("id")
        event_type = event.get("type")
        logger.info("Stripe webhook received id=%s type=%s", event_id, event_type)

        db = database.get_db()
        if not await self._claim_event(db, event_id, event_type):
            logger.info(f"Stripe event {event_id} already handled")
            return True, "Already processed", {"event_id": event_id}

        try:
            result = await self._dispatch(event_type, (event.get("data") or {}).get("object") or {})
        except Exception as e:
            logger.error("Stripe event %s (%s) failed: %s", event_id, event_type, e)
            await db.stripe_events.update_one(
                {"event_id": event_id},
                {"$set": {"status": STATUS_FAILED, "processed_at": datetime.now(timezone.utc), "error": str(e)}}
            )
            await create_audit_log(
                action=AuditAction.STRIPE_EVENT_FAILED,
                actor_role="SYSTEM",
                metadata={"event_id": event_id, "event_type": event_type, "error": str(e)},
            )
            return True, "Event logged with error", {"error": str(e), "event_id": event_id}

        await db.stripe_events.update_one(
            {"event_id": event_id},
            {"$set": {
                "status": STATUS_PROCESSED,
                "processed_at": datetime.now(timezone.utc),
                "related_result_id": result.get("result_id"),
            }}
        )
        return True, "Processed", result

    async def _dispatch(self, event_type: str, session: Dict[str, Any]) -> Dict[str, Any]:
        if event_type in COMPLETED_EVENTS:
            return await self._on_checkout_paid(session)
        if event_type in CANCELED_EVENTS:
            reason = "expired" if event_type.endswith("expired") else "payment_failed"
            return await self._on_checkout_canceled(session, reason)
        logger.info(f"Ignoring Stripe event type {event_type}")
        return {"handled": False}

    async def _on_checkout_paid(self, session: Dict[str, Any]) -> Dict[str, Any]:
        metadata = session.get("metadata") or {}
        result_id = metadata.get("result_id") or session.get("client_reference_id")
        checkout_session_id = session.get("id")

        if session.get("payment_status") not in PAID_STATUSES:
            logger.info(f"Checkout {checkout_session_id} completed without payment yet")
            return {"handled": True, "result_id": result_id, "paid": False}
        if not result_id:
            raise ValueError(f"Checkout session {checkout_session_id} carries no result_id")

        customer = session.get("customer_details") or {}
        await stripe_service.complete_payment(
            result_id=result_id,
            checkout_session_id=checkout_session_id,
            payment_token=metadata.get("payment_token"),
            payment_intent_id=session.get("payment_intent"),
            customer_email=customer.get("email") or session.get("customer_email"),
            amount_total=session.get("amount_total"),
            browser_session_id=metadata.get("browser_session_id") or None,
        )
        return {"handled": True, "result_id": result_id, "paid": True}

    async def _on_checkout_canceled(self, session: Dict[str, Any], reason: str) -> Dict[str, Any]:
        result_id = (session.get("metadata") or {}).get("result_id")
        checkout_session_id = session.get("id")
        canceled = await order_service.mark_order_canceled(checkout_session_id, reason)
        if canceled:
            await create_audit_log(
                action=AuditAction.CHECKOUT_CANCELED,
                actor_role="SYSTEM",
                resource_type="order",
                resource_id=checkout_session_id,
                metadata={"reason": reason, "result_id": result_id},
            )
        return {"handled": True, "result_id": result_id, "canceled": canceled}


stripe_webhook_service = StripeWebhookService()
