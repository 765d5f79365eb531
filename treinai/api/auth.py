"""
treinai/api/auth.py

Purpose: Signup, login and the authenticated dashboard entry point
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from treinai.api.deps import get_current_user
from treinai.core.config import settings
from treinai.core.rate_limit import client_key, limiter
from treinai.db.serialize import public_user
from treinai.schemas.account import LoginRequest, SignupRequest
from treinai.services import user_service

router = APIRouter(prefix="/auth")


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def signup(request: Request, body: SignupRequest):
    return await user_service.create_user(body.username, body.email, body.password, body.plan)


@router.post("/login")
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(request: Request, body: LoginRequest):
    return await user_service.authenticate(body.email, body.password)


@router.get("/me")
async def dashboard(request: Request, user: Dict[str, Any] = Depends(get_current_user)):
    """
    Returns the current user and records the visit (IP and device).
    """
    updated = await user_service.record_dashboard_visit(user, client_key(request), request.headers.get("user-agent"))
    return {"user": public_user(updated)}
