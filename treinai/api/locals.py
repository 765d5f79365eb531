"""
treinai/api/locals.py

Purpose: Venue directory and paid publication routes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from treinai.api.deps import form_location, get_current_user, get_gateway
from treinai.core.config import settings
from treinai.core.rate_limit import limiter
from treinai.schemas.response import MessageResponse, Page
from treinai.services import billing_service, local_service
from treinai.services.payment_gateway import PaymentGateway
from treinai.services.upload_service import delete_upload, save_upload
from utils.constants import DEFAULT_PAGE_SIZE

router = APIRouter(prefix="/locals")


@router.get("", response_model=Page)
async def list_locals(
    user_id: Optional[str] = None,
    local_type: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    sort: str = "newest",
):
    return await local_service.list_locals(user_id, local_type, country, state, city, q, page, limit, sort)


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def publish_local(
    request: Request,
    name: str = Form(...),
    local_type: str = Form(...),
    description: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Stores the venue as pending and returns the subscription checkout.
    The venue is listed once the first invoice is paid.
    """
    location = form_location(lat, lng)
    data = {
        "name": name,
        "local_type": local_type,
        "description": description,
        "link": link,
        "country": country,
        "state": state,
        "city": city,
    }

    image_url = None
    if image is not None and image.filename:
        image_url = await save_upload(image)

    try:
        pending = await local_service.create_pending_local(user, data, image_url, location)
    except Exception:
        delete_upload(image_url)
        raise

    try:
        checkout = await billing_service.create_local_checkout(user, pending["pending_id"], gateway)
    except Exception:
        await local_service.discard_pending(pending["pending_id"])
        raise
    return checkout


@router.patch("/{local_id}")
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def update_local(
    request: Request,
    local_id: str,
    name: Optional[str] = Form(None),
    local_type: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
):
    await local_service.require_owned_local(user, local_id)
    location = form_location(lat, lng)
    changes = {
        "name": name,
        "local_type": local_type,
        "description": description,
        "link": link,
        "country": country,
        "state": state,
        "city": city,
    }

    image_url = None
    if image is not None and image.filename:
        image_url = await save_upload(image)

    try:
        updated = await local_service.update_local(user, local_id, changes, image_url, location)
    except Exception:
        delete_upload(image_url)
        raise
    return {"local": updated}


@router.delete("/{local_id}", response_model=MessageResponse)
async def delete_local(
    local_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    await local_service.delete_local(user, local_id, gateway)
    return MessageResponse(msg="Local deleted")
