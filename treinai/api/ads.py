"""
treinai/api/ads.py

Purpose: Advertisement routes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from treinai.api.deps import get_current_user
from treinai.core.config import settings
from treinai.core.rate_limit import limiter
from treinai.schemas.response import MessageResponse
from treinai.services import ad_service
from treinai.services.upload_service import delete_upload, save_upload

router = APIRouter(prefix="/ads")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def create_ad(
    request: Request,
    title: str = Form(...),
    ad_type: str = Form(...),
    description: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    media: UploadFile = File(...),
    user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Image ads accept files up to 1MB, video ads up to 50MB.
    """
    await ad_service.ensure_can_create(user)
    allowed_types, max_bytes = ad_service.media_rules(ad_type)
    media_url = await save_upload(media, allowed_types=allowed_types, max_bytes=max_bytes)

    data = {
        "title": title,
        "ad_type": ad_type,
        "description": description,
        "link": link,
        "country": country,
        "state": state,
        "city": city,
    }
    try:
        ad = await ad_service.create_ad(user, data, media_url)
    except Exception:
        delete_upload(media_url)
        raise
    return {"ad": ad}


@router.get("")
async def list_ads(
    user_id: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = ad_service.SERVE_LIMIT,
):
    return await ad_service.list_ads(user_id, country, state, city, limit)


@router.post("/{ad_id}/impression")
async def record_impression(ad_id: str):
    return await ad_service.record_impression(ad_id)


@router.post("/{ad_id}/click")
async def record_click(ad_id: str):
    return await ad_service.record_click(ad_id)


@router.delete("/{ad_id}", response_model=MessageResponse)
async def delete_ad(ad_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    await ad_service.delete_ad(user, ad_id)
    return MessageResponse(msg="Ad deleted")
