"""
treinai/api/billing.py

Purpose: Checkout, plan changes, impression purchases and the provider webhook
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from treinai.api.deps import get_current_user, get_gateway
from treinai.core.rate_limit import limiter
from treinai.schemas.account import CheckoutRequest, ImpressionsRequest, PlanChangeRequest
from treinai.services import billing_service
from treinai.services.payment_gateway import PaymentGateway

router = APIRouter(prefix="/billing")


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return await billing_service.create_plan_checkout(user, body.plan, gateway)


@router.get("/session/{session_id}")
async def session_status(
    session_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return await billing_service.session_status(session_id, gateway)


@router.post("/plan")
async def change_plan(
    body: PlanChangeRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return await billing_service.change_plan(user, body.plan, body.password, gateway)


@router.post("/impressions")
async def buy_impressions(
    body: ImpressionsRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return await billing_service.create_impressions_checkout(user, body.amount_cents, gateway)


@router.post("/webhook")
@limiter.exempt
async def webhook(request: Request, gateway: PaymentGateway = Depends(get_gateway)):
    """
    Provider webhook. The raw body is needed for signature verification.
    """
    payload = await request.body()
    return await billing_service.handle_webhook(payload, request.headers.get("stripe-signature"), gateway)
