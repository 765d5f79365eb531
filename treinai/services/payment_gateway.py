"""
treinai/services/payment_gateway.py

Purpose: Thin wrapper over the Stripe SDK

- Customers and checkout sessions (subscription and one-off payment)
- Subscription price changes and cancellation
- Webhook signature verification

The SDK is synchronous; calls run in the threadpool.
"""

import json
from typing import Any, Dict, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from treinai.core.config import settings
from treinai.core.exceptions import BadRequestError, ExternalServiceError
from treinai.core.logging import get_logger

logger = get_logger(__name__)


class PaymentGateway:
    """
    Stripe calls used by the billing flows.

    Returns plain dicts so callers never depend on SDK object types.
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    async def _call(self, fn, *args, **kwargs):
        if not self.api_key:
            raise ExternalServiceError("Payments are not configured", code="PAYMENTS_UNAVAILABLE")
        try:
            return await run_in_threadpool(fn, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(
                "Stripe call failed",
                extra={"operation": getattr(fn, "__qualname__", str(fn)), "error": str(e)}
            )
            raise ExternalServiceError(
                "Payment provider error",
                code="PAYMENT_PROVIDER_ERROR",
                details={"provider_message": getattr(e, "user_message", None)}
            )

    async def create_customer(self, email: str, name: str, user_id: str) -> str:
        customer = await self._call(
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"user_id": user_id},
        )
        return customer["id"]

    async def create_checkout_session(
        self,
        customer_id: str,
        mode: str,
        line_items: List[Dict[str, Any]],
        metadata: Dict[str, str],
    ) -> Dict[str, str]:
        """
        Creates a hosted checkout session.

        Metadata is copied to the subscription (or payment intent) so later
        events can be traced back to the flow that started them.
        """
        params: Dict[str, Any] = {
            "customer": customer_id,
            "mode": mode,
            "line_items": line_items,
            "metadata": metadata,
            "success_url": f"{settings.FRONTEND_URL.rstrip('/')}/billing/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{settings.FRONTEND_URL.rstrip('/')}/billing/cancel",
        }
        if mode == "subscription":
            params["subscription_data"] = {"metadata": metadata}
        else:
            params["payment_intent_data"] = {"metadata": metadata}

        session = await self._call(stripe.checkout.Session.create, **params)
        return {"id": session["id"], "url": session["url"]}

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        session = await self._call(stripe.checkout.Session.retrieve, session_id)
        details = session.get("customer_details") or {}
        return {
            "id": session["id"],
            "status": session.get("status"),
            "payment_status": session.get("payment_status"),
            "mode": session.get("mode"),
            "amount_total": session.get("amount_total"),
            "customer_email": details.get("email"),
            "metadata": dict(session.get("metadata") or {}),
        }

    async def change_subscription_price(self, subscription_id: str, price_id: str) -> None:
        """Swaps the subscription's single item to a new price, prorating the difference."""
        subscription = await self._call(stripe.Subscription.retrieve, subscription_id)
        item_id = subscription["items"]["data"][0]["id"]
        await self._call(
            stripe.Subscription.modify,
            subscription_id,
            items=[{"id": item_id, "price": price_id}],
            proration_behavior="create_prorations",
        )

    async def cancel_subscription(self, subscription_id: str) -> None:
        await self._call(stripe.Subscription.cancel, subscription_id)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verifies a webhook payload and returns the event as a plain dict.

        Raises:
            BadRequestError: missing or invalid signature
        """
        if not signature or not self.webhook_secret:
            raise BadRequestError("Missing webhook signature", code="INVALID_SIGNATURE")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Webhook signature verification failed", extra={"error": str(e)})
            raise BadRequestError("Invalid webhook signature", code="INVALID_SIGNATURE")
        return json.loads(payload)


# Singleton instance
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get or create the payment gateway singleton"""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway()
    return _gateway
