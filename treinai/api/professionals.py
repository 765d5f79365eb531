"""
treinai/api/professionals.py

Purpose: Professional directory and coach/student matchmaking routes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from treinai.api.deps import form_location, get_current_user
from treinai.core.config import settings
from treinai.core.exceptions import PermissionDeniedError, ResourceNotFoundError
from treinai.core.rate_limit import limiter
from treinai.schemas.community import JoinRequest
from treinai.schemas.response import Page
from treinai.services import professional_service
from treinai.services.upload_service import delete_upload, save_upload
from utils.constants import DEFAULT_PAGE_SIZE
from utils.validation_utils import parse_bool

router = APIRouter(prefix="/professionals")


@router.get("")
async def list_professionals(
    q: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    specialty: Optional[str] = None,
    user_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
):
    """
    Directory listing, or the single professional of an account when
    `user_id` is given.
    """
    if user_id:
        professional = await professional_service.get_professional_by_user(user_id)
        if not professional:
            raise ResourceNotFoundError("Professional not found", details={"user_id": user_id})
        return {"professional": professional_service.public_professional(professional)}

    result = await professional_service.list_professionals(q, country, state, city, specialty, page, limit)
    return Page(**result)


@router.get("/{professional_id}")
async def get_professional(professional_id: str):
    professional = await professional_service.require_professional(professional_id)
    return {"professional": professional_service.public_professional(professional)}


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def create_professional(
    request: Request,
    name: str = Form(...),
    bio: str = Form(...),
    specialty: str = Form(...),
    country: Optional[str] = Form(None),
    country_code: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
):
    location = form_location(lat, lng)
    data = {
        "name": name,
        "bio": bio,
        "specialty": specialty,
        "country": country,
        "country_code": country_code,
        "state": state,
        "city": city,
    }

    image_url = None
    if image is not None and image.filename:
        image_url = await save_upload(image)

    try:
        professional = await professional_service.create_professional(user, data, image_url, location)
    except Exception:
        delete_upload(image_url)
        raise
    return {"professional": professional}


@router.patch("/{professional_id}")
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def update_professional(
    request: Request,
    professional_id: str,
    name: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    specialty: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    country_code: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    remove_image: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
):
    professional = await professional_service.require_professional(professional_id)
    professional_service.require_owner(professional, user)

    location = form_location(lat, lng)
    changes = {
        "name": name,
        "bio": bio,
        "specialty": specialty,
        "country": country,
        "country_code": country_code,
        "state": state,
        "city": city,
    }

    image_url = None
    if image is not None and image.filename:
        image_url = await save_upload(image)

    try:
        updated = await professional_service.update_professional(
            professional,
            changes,
            image_url=image_url,
            remove_image=bool(parse_bool(remove_image)),
            location=location,
        )
    except Exception:
        delete_upload(image_url)
        raise
    return {"professional": updated}


@router.post("/{professional_id}/requests")
async def request_to_join(
    professional_id: str,
    body: JoinRequest,
    user: Dict[str, Any] = Depends(get_current_user),
):
    status_code, payload = await professional_service.request_to_join(
        professional_id, user, body.message, body.force
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


@router.post("/{professional_id}/students/{student_id}/accept")
async def accept_student(
    professional_id: str,
    student_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
):
    professional = await professional_service.require_professional(professional_id)
    professional_service.require_owner(professional, user)
    return await professional_service.accept_student(professional, student_id)


@router.delete("/{professional_id}/students/{student_id}")
async def remove_student(
    professional_id: str,
    student_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
):
    """The professional drops a student, or the student leaves."""
    professional = await professional_service.require_professional(professional_id)
    if professional.get("user_id") != str(user["_id"]) and student_id != str(user["_id"]):
        raise PermissionDeniedError("Only the professional or the student can end this relationship")
    return await professional_service.remove_student(professional, student_id)
