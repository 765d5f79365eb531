"""
treinai/services/billing_service.py

Purpose: Subscription and payment state

- Checkout for plans, impression credits and venue listings
- Plan changes (cancel to free, prorated upgrade/downgrade)
- Webhook event processing with per-event idempotency

Provider calls go through PaymentGateway; this module owns the database
side of every billing flow.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from pymongo.errors import DuplicateKeyError

from treinai.core.config import settings
from treinai.core.exceptions import (
    BadRequestError,
    ExternalServiceError,
    PermissionDeniedError,
    ValidationError,
)
from treinai.core.logging import get_logger, LogContext
from treinai.core.security import verify_password
from treinai.db.mongo import get_processed_events_collection, get_users_collection
from treinai.db.serialize import to_object_id
from treinai.services import local_service
from treinai.services.payment_gateway import PaymentGateway
from utils.constants import APP_METADATA_TAG, CheckoutFlow, CURRENCY, PAID_PLANS, PlanStatus, PlanType
from utils.time_utils import from_unix, utc_now

logger = get_logger(__name__)

MIN_IMPRESSIONS_CENTS = 100


def impressions_for(amount_cents: int) -> int:
    """Impressions bought with an amount in cents."""
    return amount_cents * settings.IMPRESSIONS_PER_BRL // 100


def _metadata(user: Dict[str, Any], flow: CheckoutFlow, **extra: Any) -> Dict[str, str]:
    data = {"user_id": str(user["_id"]), "flow": flow.value, "app": APP_METADATA_TAG}
    data.update({key: str(value) for key, value in extra.items()})
    return data


def _price_or_fail(plan: str) -> str:
    price_id = settings.price_for_plan(plan)
    if not price_id:
        raise ExternalServiceError(f"No price configured for plan {plan}", code="PRICE_NOT_CONFIGURED")
    return price_id


async def ensure_customer(user: Dict[str, Any], gateway: PaymentGateway) -> str:
    """Returns the user's provider customer id, creating the customer on first use."""
    customer_id = (user.get("plan_info") or {}).get("customer_id")
    if customer_id:
        return customer_id

    customer_id = await gateway.create_customer(user["email"], user.get("username", ""), str(user["_id"]))
    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"plan_info.customer_id": customer_id}}
    )
    user.setdefault("plan_info", {})["customer_id"] = customer_id
    return customer_id


async def create_plan_checkout(user: Dict[str, Any], plan: str, gateway: PaymentGateway) -> Dict[str, str]:
    if plan not in PAID_PLANS:
        raise BadRequestError("Invalid plan", code="INVALID_PLAN", details={"allowed": list(PAID_PLANS)})

    price_id = _price_or_fail(plan)
    customer_id = await ensure_customer(user, gateway)
    session = await gateway.create_checkout_session(
        customer_id,
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        metadata=_metadata(user, CheckoutFlow.PLAN, plan_type=plan),
    )

    logger.info("Plan checkout created", extra={"user_id": str(user["_id"]), "plan": plan})
    return {"url": session["url"], "id": session["id"]}


async def session_status(session_id: str, gateway: PaymentGateway) -> Dict[str, Any]:
    return await gateway.retrieve_session(session_id)


async def create_impressions_checkout(user: Dict[str, Any], amount_cents: int, gateway: PaymentGateway) -> Dict[str, Any]:
    """One-off payment that credits ad impressions once completed."""
    if amount_cents < MIN_IMPRESSIONS_CENTS:
        raise ValidationError(
            "Minimum purchase is R$1,00",
            details={"min_amount_cents": MIN_IMPRESSIONS_CENTS}
        )

    impressions = impressions_for(amount_cents)
    customer_id = await ensure_customer(user, gateway)
    session = await gateway.create_checkout_session(
        customer_id,
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": CURRENCY,
                "unit_amount": amount_cents,
                "product_data": {"name": f"{impressions} ad impressions"},
            },
            "quantity": 1,
        }],
        metadata=_metadata(user, CheckoutFlow.IMPRESSIONS, impressions=impressions),
    )

    logger.info("Impressions checkout created", extra={"user_id": str(user["_id"]), "impressions": impressions})
    return {"url": session["url"], "id": session["id"], "impressions": impressions}


async def create_local_checkout(user: Dict[str, Any], pending_id: str, gateway: PaymentGateway) -> Dict[str, str]:
    """Subscription checkout that publishes a pending venue once paid."""
    if not settings.STRIPE_PRICE_LOCAL:
        raise ExternalServiceError("No price configured for venues", code="PRICE_NOT_CONFIGURED")

    customer_id = await ensure_customer(user, gateway)
    session = await gateway.create_checkout_session(
        customer_id,
        mode="subscription",
        line_items=[{"price": settings.STRIPE_PRICE_LOCAL, "quantity": 1}],
        metadata=_metadata(user, CheckoutFlow.PUBLISH_LOCAL, pending_id=pending_id),
    )
    await local_service.attach_checkout(pending_id, session["id"])
    return {"url": session["url"], "id": session["id"], "pending_id": pending_id}


async def change_plan(user: Dict[str, Any], plan: str, password: str, gateway: PaymentGateway) -> Dict[str, Any]:
    """
    Confirmed plan change.

    Moving to free cancels the current subscription. Between paid plans the
    existing subscription is re-priced with proration; without one, a
    checkout session is returned instead.

    Raises:
        PermissionDeniedError: wrong password
        BadRequestError: unknown plan or the plan is already current
    """
    if not verify_password(password or "", user.get("password", "")):
        raise PermissionDeniedError("Incorrect password", code="WRONG_PASSWORD")

    if plan not in {p.value for p in PlanType}:
        raise BadRequestError("Invalid plan", code="INVALID_PLAN", details={"allowed": [p.value for p in PlanType]})

    plan_info = user.get("plan_info") or {}
    if plan_info.get("plan_type") == plan:
        raise BadRequestError(f"You are already on the {plan} plan", code="UNCHANGED")

    subscription_id = plan_info.get("subscription_id")
    users = get_users_collection()

    with LogContext(user_id=str(user["_id"])):
        if plan == PlanType.FREE.value:
            if subscription_id:
                await gateway.cancel_subscription(subscription_id)
            await users.update_one({"_id": user["_id"]}, {"$set": _free_plan_fields()})
            logger.info("Plan changed to free")
            return {"plan_type": plan, "status": PlanStatus.ACTIVE.value}

        price_id = _price_or_fail(plan)
        if subscription_id and plan_info.get("status") == PlanStatus.ACTIVE.value:
            await gateway.change_subscription_price(subscription_id, price_id)
            await users.update_one(
                {"_id": user["_id"]},
                {"$set": {"plan_info.plan_type": plan, "plan_info.last_event_at": utc_now()}}
            )
            logger.info("Subscription re-priced", extra={"plan": plan})
            return {"plan_type": plan, "status": PlanStatus.ACTIVE.value}

    checkout = await create_plan_checkout(user, plan, gateway)
    return {"plan_type": plan, "checkout_url": checkout["url"], "session_id": checkout["id"]}


def _free_plan_fields() -> Dict[str, Any]:
    return {
        "plan_info.plan_type": PlanType.FREE.value,
        "plan_info.status": PlanStatus.ACTIVE.value,
        "plan_info.subscription_id": None,
        "plan_info.expiration_date": None,
        "plan_info.next_payment_value": None,
        "plan_info.next_payment_date": None,
        "plan_info.last_event_at": utc_now(),
    }


# ============================================================
# WEBHOOK
# ============================================================

def _invoice_subscription(invoice: Dict[str, Any]) -> Optional[str]:
    """Subscription id of an invoice across API versions."""
    if invoice.get("subscription"):
        return invoice["subscription"]
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def _invoice_period_end(invoice: Dict[str, Any]):
    lines = (invoice.get("lines") or {}).get("data") or []
    if lines:
        period = lines[0].get("period") or {}
        if period.get("end"):
            return from_unix(period["end"])
    return from_unix(invoice.get("period_end"))


async def _find_plan_owner(subscription_id: Optional[str], customer_id: Optional[str]) -> Optional[Dict[str, Any]]:
    users = get_users_collection()
    if subscription_id:
        user = await users.find_one({"plan_info.subscription_id": subscription_id})
        if user:
            return user
    if customer_id:
        return await users.find_one({"plan_info.customer_id": customer_id})
    return None


async def _on_checkout_completed(session: Dict[str, Any]) -> None:
    metadata = session.get("metadata") or {}
    if metadata.get("app") and metadata["app"] != APP_METADATA_TAG:
        logger.info("Ignoring checkout from another app", extra={"session_id": session.get("id")})
        return

    flow = metadata.get("flow") or CheckoutFlow.PLAN.value
    paid = session.get("payment_status") == "paid"
    user_oid = to_object_id(metadata.get("user_id"))

    if flow == CheckoutFlow.IMPRESSIONS.value:
        if not paid or user_oid is None:
            return
        credits = int(metadata.get("impressions") or impressions_for(session.get("amount_total") or 0))
        await get_users_collection().update_one({"_id": user_oid}, {"$inc": {"impression_balance": credits}})
        logger.info("Impressions credited", extra={"user_id": str(user_oid), "impressions": credits})
        return

    subscription_id = session.get("subscription")

    if flow == CheckoutFlow.PUBLISH_LOCAL.value:
        pending_id = metadata.get("pending_id")
        if pending_id and subscription_id:
            await local_service.attach_subscription(pending_id, subscription_id)
            if paid:
                await local_service.activate_for_subscription(subscription_id)
        return

    if user_oid is None:
        logger.warning("Plan checkout without user id", extra={"session_id": session.get("id")})
        return

    updates = {
        "plan_info.subscription_id": subscription_id,
        "plan_info.customer_id": session.get("customer"),
        "plan_info.plan_type": metadata.get("plan_type") or PlanType.PRO.value,
        "plan_info.last_event_at": utc_now(),
    }
    if paid:
        updates["plan_info.status"] = PlanStatus.ACTIVE.value
    await get_users_collection().update_one({"_id": user_oid}, {"$set": updates})
    logger.info("Plan checkout completed", extra={"user_id": str(user_oid), "plan": updates["plan_info.plan_type"]})


async def _on_invoice_paid(invoice: Dict[str, Any]) -> None:
    subscription_id = _invoice_subscription(invoice)

    if await local_service.is_venue_subscription(subscription_id):
        await local_service.activate_for_subscription(subscription_id)
        return

    user = await _find_plan_owner(subscription_id, invoice.get("customer"))
    if not user:
        logger.warning("Paid invoice without a matching user", extra={"invoice_id": invoice.get("id")})
        return

    plan_info = user.get("plan_info") or {}
    if invoice.get("id") and plan_info.get("last_invoice_id") == invoice["id"]:
        logger.info("Invoice already applied", extra={"invoice_id": invoice["id"]})
        return

    period_end = _invoice_period_end(invoice)
    updates = {
        "plan_info.status": PlanStatus.ACTIVE.value,
        "plan_info.last_invoice_id": invoice.get("id"),
        "plan_info.next_payment_value": (invoice.get("amount_paid") or 0) / 100,
        "plan_info.next_payment_date": period_end,
        "plan_info.expiration_date": period_end,
        "plan_info.last_event_at": utc_now(),
    }
    if subscription_id:
        updates["plan_info.subscription_id"] = subscription_id
    await get_users_collection().update_one({"_id": user["_id"]}, {"$set": updates})
    logger.info("Plan activated", extra={"user_id": str(user["_id"])})


async def _on_payment_failed(invoice: Dict[str, Any]) -> None:
    subscription_id = _invoice_subscription(invoice)
    if subscription_id and await local_service.deactivate_for_subscription(subscription_id):
        return

    user = await _find_plan_owner(subscription_id, invoice.get("customer"))
    if not user:
        return
    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"plan_info.status": PlanStatus.INACTIVE.value, "plan_info.last_event_at": utc_now()}}
    )
    logger.warning("Plan payment failed", extra={"user_id": str(user["_id"])})


async def _on_checkout_expired(session: Dict[str, Any]) -> None:
    metadata = session.get("metadata") or {}
    if metadata.get("flow") == CheckoutFlow.PUBLISH_LOCAL.value:
        await local_service.discard_pending(metadata.get("pending_id"), session.get("id"))


async def _on_subscription_deleted(subscription: Dict[str, Any]) -> None:
    subscription_id = subscription.get("id")
    if await local_service.deactivate_for_subscription(subscription_id):
        return

    result = await get_users_collection().update_one(
        {"plan_info.subscription_id": subscription_id},
        {"$set": _free_plan_fields()}
    )
    if result.matched_count:
        logger.info("Subscription ended, user moved to free", extra={"subscription_id": subscription_id})


EVENT_HANDLERS: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": _on_checkout_completed,
    "checkout.session.expired": _on_checkout_expired,
    "invoice.paid": _on_invoice_paid,
    "invoice.payment_succeeded": _on_invoice_paid,
    "invoice.payment_failed": _on_payment_failed,
    "customer.subscription.deleted": _on_subscription_deleted,
}


async def handle_webhook(payload: bytes, signature: Optional[str], gateway: PaymentGateway) -> Dict[str, Any]:
    """
    Verifies and applies a provider event exactly once.

    The event id is recorded before handling; a failing handler removes the
    record so the provider's retry is processed again.

    Returns:
        {"received": True} or {"received": True, "duplicate": True}
    """
    event = gateway.construct_event(payload, signature)
    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id:
        raise BadRequestError("Event without id", code="INVALID_EVENT")

    events = get_processed_events_collection()
    with LogContext(event_id=event_id):
        try:
            await events.insert_one({"event_id": event_id, "event_type": event_type, "created_at": utc_now()})
        except DuplicateKeyError:
            logger.info("Duplicate event ignored", extra={"event_type": event_type})
            return {"received": True, "duplicate": True}

        handler = EVENT_HANDLERS.get(event_type)
        if handler is None:
            logger.debug("Unhandled event type", extra={"event_type": event_type})
            return {"received": True}

        try:
            await handler((event.get("data") or {}).get("object") or {})
        except Exception:
            await events.delete_one({"event_id": event_id})
            raise

        logger.info("Event processed", extra={"event_type": event_type})
    return {"received": True}
