"""
treinai/api/profile.py

Purpose: Profile, preferences and onboarding routes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from treinai.api.deps import form_location, get_ai, get_current_user
from treinai.core.config import settings
from treinai.core.rate_limit import limiter
from treinai.schemas.account import OnboardingRequest, ThemeRequest
from treinai.services import professional_service, profile_service
from treinai.services.ai_service import AIService
from treinai.services.upload_service import delete_upload, save_upload

router = APIRouter(prefix="/profile")


@router.patch("/theme")
async def change_theme(body: ThemeRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return await profile_service.change_theme(user, body.theme)


@router.post("/onboarding")
@limiter.limit(settings.RATE_LIMIT_AI)
async def onboarding(
    request: Request,
    body: OnboardingRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    return await profile_service.complete_onboarding(user, body.answers, ai)


@router.patch("")
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def update_profile(
    request: Request,
    weight: Optional[float] = Form(None),
    height: Optional[float] = Form(None),
    age: Optional[int] = Form(None),
    gender: Optional[str] = Form(None),
    experience_level: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Multipart profile edit. Weight and height keep one reading per day.
    """
    location = form_location(lat, lng)
    changes = {
        "weight": weight,
        "height": height,
        "age": age,
        "gender": gender,
        "experience_level": experience_level,
        "country": country,
        "state": state,
        "city": city,
    }

    avatar_url = None
    if avatar is not None and avatar.filename:
        avatar_url = await save_upload(avatar)

    try:
        updated = await profile_service.update_profile(user, changes, location=location, avatar_url=avatar_url)
    except Exception:
        delete_upload(avatar_url)
        raise

    if avatar_url and user.get("avatar") != avatar_url:
        delete_upload(user.get("avatar"))
    return {"user": updated}


@router.get("/students/{student_id}")
async def student_profile(student_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return {"student": await professional_service.student_view(user, student_id)}
