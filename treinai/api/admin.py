"""
treinai/api/admin.py

Purpose: Back-office routes (admin role only)
"""

from typing import Optional

from fastapi import APIRouter, Depends

from treinai.api.deps import require_admin
from treinai.schemas.community import AnswerRequest, StatusRequest, VisibilityRequest
from treinai.services import ad_service, support_service, user_service

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/users")
async def list_users():
    users = await user_service.list_users()
    return {"users": users, "total": len(users)}


@router.get("/ads")
async def list_ads():
    return {"ads": await ad_service.list_all_ads()}


@router.patch("/ads/{ad_id}/status")
async def set_ad_status(ad_id: str, body: StatusRequest):
    return {"ad": await ad_service.set_status(ad_id, body.status)}


@router.get("/supports")
async def list_tickets(filter: str = "all", private: Optional[str] = None):
    return await support_service.list_tickets(filter, private)


@router.post("/supports/{support_id}/answer")
async def answer_ticket(support_id: str, body: AnswerRequest):
    return {"support": await support_service.answer_ticket(support_id, body.answer)}


@router.patch("/supports/{support_id}/visibility")
async def set_ticket_visibility(support_id: str, body: VisibilityRequest):
    return {"support": await support_service.set_visibility(support_id, body.private)}
