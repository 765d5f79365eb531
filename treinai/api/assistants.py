"""
treinai/api/assistants.py

Purpose: Conversational AI routes (trainer and nutrition assistants)
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from treinai.api.deps import get_ai, get_current_user
from treinai.core.config import settings
from treinai.core.rate_limit import limiter
from treinai.schemas.training import NutritionChatRequest, TrainerChatRequest
from treinai.services import assistant_service
from treinai.services.ai_service import AIService
from treinai.services.professional_service import resolve_acting_target

router = APIRouter(prefix="/ai")


@router.post("/trainer-chat")
@limiter.limit(settings.RATE_LIMIT_AI)
async def trainer_chat(
    request: Request,
    body: TrainerChatRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    history = [turn.model_dump() for turn in body.history]
    return await assistant_service.trainer_chat(user, body.message, history, ai)


@router.post("/nutrition-chat")
@limiter.limit(settings.RATE_LIMIT_AI)
async def nutrition_chat(
    request: Request,
    body: NutritionChatRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    target, professional = await resolve_acting_target(user, body.student_id)
    return await assistant_service.nutrition_chat(target, body.message, ai, professional)
