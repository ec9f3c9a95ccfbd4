"""Stripe Service - one-time checkout for a pending result, and the redirect return.

Flow:
1. create_checkout_session(): pending result + its payment token -> hosted
   checkout (mode=payment). A pending order is recorded.
2. Stripe redirects the browser to {origin}/?success=true&result_id=..&session_id=..
   or {origin}/?canceled=true&result_id=..
3. handle_checkout_return() verifies the payment, consumes the token once and
   hands back the stored phrases.

The webhook (stripe_webhook_service) may complete the order before the
browser comes back; both paths are idempotent.
"""
import stripe
import os
import logging
from typing import Optional, Dict, Any, Mapping
from datetime import datetime, timezone

from database import database
from models import AuditAction, ConversionEventType, GeneratedPhrase, OrderStatus
from services import order_service, pending_result_service, settings_service
from services.analytics_service import analytics_service
from services.pending_result_service import PendingResultNotFoundError
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

# Initialize Stripe (no placeholder default; missing key fails at checkout with clear error)
stripe.api_key = (os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_API_KEY") or "").strip()

PRODUCT_NAME = "Hookline"
PRODUCT_DESCRIPTION = "Pack of 10 AI-written marketing taglines"

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}


class PaymentNotCompletedError(Exception):
    """Checkout session exists but Stripe does not report it as paid."""
    pass


class PaymentTokenUsedError(Exception):
    """The result's payment token was consumed by a different checkout."""
    pass


def format_price(amount_minor: int, currency: str) -> str:
    currency = (currency or "").upper()
    major = f"{amount_minor / 100:.2f}"
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{major}"
    return f"{major} {currency}"


class StripeService:
    """Stripe checkout operations."""

    async def create_checkout_session(
        self,
        result_id: str,
        origin_url: str,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted checkout session for one pending result.

        Args:
            result_id: Pending result to unlock
            origin_url: Base URL for success/cancel redirects
            session_id: Browser session id (analytics and flow resume)

        Returns:
            Dict with checkout_url and session_id (the Stripe checkout session id)
        """
        if not (stripe.api_key or "").strip():
            raise ValueError("STRIPE_SECRET_KEY or STRIPE_API_KEY is not set. Configure env and restart.")

        base = (origin_url or "").strip().rstrip("/")
        if not base.startswith("http://") and not base.startswith("https://"):
            raise ValueError("Invalid redirect base URL: origin must be http or https.")

        pending = await pending_result_service.get_pending_result(result_id)
        if not pending:
            raise PendingResultNotFoundError(f"Pending result {result_id} not found or expired")

        token_doc = await pending_result_service.get_payment_token_by_result_id(result_id)
        if not token_doc:
            raise PendingResultNotFoundError(f"No payment token for result {result_id}")
        if token_doc.get("is_used"):
            raise PaymentTokenUsedError("This result has already been paid for")

        amount = token_doc.get("amount")
        currency = token_doc.get("currency")
        if not amount or not currency:
            policy = await settings_service.get_payment_settings()
            amount, currency = policy.payment_amount, policy.payment_currency

        price_id = (os.getenv("STRIPE_PRICE_ID") or "").strip()
        if price_id:
            line_item = {"price": price_id, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": currency.lower(),
                    "unit_amount": amount,
                    "product_data": {
                        "name": PRODUCT_NAME,
                        "description": PRODUCT_DESCRIPTION,
                    },
                },
                "quantity": 1,
            }

        success_url = f"{base}/?success=true&result_id={result_id}&session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = f"{base}/?canceled=true&result_id={result_id}"

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[line_item],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=result_id,
                metadata={
                    "result_id": result_id,
                    "payment_token": token_doc["token"],
                    "browser_session_id": session_id or "",
                    "product": PRODUCT_NAME,
                },
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe checkout error for result {result_id}: {e}")
            raise ValueError(f"Failed to create checkout session: {str(e)}")

        db = database.get_db()
        await db.checkout_sessions.insert_one({
            "session_id": session.id,
            "result_id": result_id,
            "payment_token": token_doc["token"],
            "browser_session_id": session_id,
            "status": "pending",
            "checkout_url": session.url,
            "amount_total": session.amount_total or amount,
            "currency": session.currency or currency.lower(),
            "created_at": datetime.now(timezone.utc),
        })
        await order_service.create_pending_order(
            checkout_session_id=session.id,
            result_id=result_id,
            amount_total=session.amount_total or amount,
            currency=session.currency or currency,
            session_id=session_id,
        )
        await analytics_service.track_conversion(
            session_id, ConversionEventType.PAYMENT_START, "/payment", {"result_id": result_id}
        )
        await create_audit_log(
            action=AuditAction.CHECKOUT_STARTED,
            actor_role="SYSTEM",
            resource_type="pending_result",
            resource_id=result_id,
            metadata={"checkout_session_id": session.id, "amount": amount, "currency": currency},
        )

        logger.info(f"Checkout session created for result {result_id}: {session.id}")
        return {"checkout_url": session.url, "session_id": session.id}

    async def _is_paid(self, checkout_session_id: str, result_id: str) -> tuple[bool, Optional[Any]]:
        """Paid if the webhook already completed the order, else ask Stripe.

        Either way the checkout session must have been opened for result_id.
        """
        order = await order_service.get_order_by_checkout_session(checkout_session_id)
        if order and order.get("status") == OrderStatus.COMPLETED.value:
            if order.get("result_id") != result_id:
                raise PaymentTokenUsedError("Checkout session does not belong to this result")
            return True, None
        try:
            session = stripe.checkout.Session.retrieve(checkout_session_id)
        except stripe.error.StripeError as e:
            logger.error(f"Failed to retrieve checkout session {checkout_session_id}: {e}")
            raise ValueError(f"Could not verify payment: {str(e)}")
        session_result = (getattr(session, "metadata", None) or {}).get("result_id") or session.client_reference_id
        if session_result != result_id:
            raise PaymentTokenUsedError("Checkout session does not belong to this result")
        return session.payment_status == "paid", session

    async def complete_payment(
        self,
        result_id: str,
        checkout_session_id: str,
        payment_token: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        amount_total: Optional[int] = None,
        browser_session_id: Optional[str] = None,
    ) -> bool:
        """Consume the token, complete the order and unlock the result. Safe to repeat."""
        if not payment_token:
            token_doc = await pending_result_service.get_payment_token_by_result_id(result_id)
            payment_token = token_doc["token"] if token_doc else None

        consumed = False
        if payment_token:
            consumed = await pending_result_service.mark_payment_token_used(payment_token)

        completed = await order_service.mark_order_completed(
            checkout_session_id,
            payment_intent_id=payment_intent_id,
            customer_email=customer_email,
            amount_total=amount_total,
        )
        await pending_result_service.mark_result_unlocked(result_id, checkout_session_id)

        db = database.get_db()
        await db.checkout_sessions.update_one(
            {"session_id": checkout_session_id},
            {"$set": {"status": "completed", "completed_at": datetime.now(timezone.utc)}},
        )

        if consumed:
            await create_audit_log(
                action=AuditAction.PAYMENT_TOKEN_CONSUMED,
                actor_role="SYSTEM",
                resource_type="pending_result",
                resource_id=result_id,
                metadata={"checkout_session_id": checkout_session_id},
            )
        if completed:
            await analytics_service.track_conversion(
                browser_session_id, ConversionEventType.PAYMENT_COMPLETE, "/success", {"result_id": result_id}
            )
            await create_audit_log(
                action=AuditAction.PAYMENT_COMPLETED,
                actor_role="SYSTEM",
                resource_type="order",
                resource_id=checkout_session_id,
                metadata={"result_id": result_id},
            )
            logger.info(f"Payment completed for result {result_id} ({checkout_session_id})")
        return consumed or completed

    async def handle_checkout_return(
        self,
        params: Mapping[str, str],
        browser_session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Inspect redirect query parameters.

        Returns:
            {"outcome": "none"} when no checkout parameters are present,
            {"outcome": "canceled", "result_id": ...} on cancel,
            {"outcome": "success", "result_id": ..., "phrases": [...]} on verified payment.

        Raises:
            PendingResultNotFoundError: unknown or expired result
            PaymentNotCompletedError: Stripe does not report the session as paid
            PaymentTokenUsedError: checkout session opened for another result, or result unlocked by another session
        """
        result_id = params.get("result_id")
        if (params.get("canceled") or "").lower() == "true":
            logger.info(f"Checkout canceled for result {result_id}")
            return {"outcome": "canceled", "result_id": result_id}

        if (params.get("success") or "").lower() != "true":
            return {"outcome": "none"}

        checkout_session_id = params.get("session_id")
        if not result_id or not checkout_session_id:
            raise ValueError("result_id and session_id are required on checkout success")

        pending = await pending_result_service.get_pending_result(result_id)
        if not pending:
            raise PendingResultNotFoundError(f"Pending result {result_id} not found or expired")

        phrases = pending_result_service.phrases_from_result(pending)

        if pending.get("is_unlocked"):
            if pending.get("checkout_session_id") not in (None, checkout_session_id):
                raise PaymentTokenUsedError("Result was unlocked by another checkout session")
            return {"outcome": "success", "result_id": result_id, "phrases": phrases}

        paid, session = await self._is_paid(checkout_session_id, result_id)
        if not paid:
            raise PaymentNotCompletedError(f"Checkout session {checkout_session_id} is not paid")

        await self.complete_payment(
            result_id=result_id,
            checkout_session_id=checkout_session_id,
            payment_intent_id=getattr(session, "payment_intent", None) if session is not None else None,
            amount_total=getattr(session, "amount_total", None) if session is not None else None,
            browser_session_id=browser_session_id,
        )
        return {"outcome": "success", "result_id": result_id, "phrases": phrases}

    async def get_unlocked_phrases(self, result_id: str) -> Optional[list[GeneratedPhrase]]:
        pending = await pending_result_service.get_pending_result(result_id)
        if not pending or not pending.get("is_unlocked"):
            return None
        return pending_result_service.phrases_from_result(pending)


stripe_service = StripeService()
