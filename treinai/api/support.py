"""
treinai/api/support.py

Purpose: Public support FAQ and ticket creation
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from treinai.api.deps import get_current_user
from treinai.schemas.community import SupportRequest
from treinai.services import support_service
from utils.constants import DEFAULT_PAGE_SIZE

router = APIRouter(prefix="/supports")


@router.get("")
async def list_public_tickets(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PAGE_SIZE, ge=1),
):
    return await support_service.list_public_tickets(search, page, per_page)


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_ticket(body: SupportRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return {"support": await support_service.create_ticket(user, body.subject, body.description)}
