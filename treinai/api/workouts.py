"""
treinai/api/workouts.py

Purpose: Workout plan routes

A professional edits a student's plan by passing `student_id`.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status

from treinai.api.deps import get_ai, get_current_user
from treinai.core.config import settings
from treinai.core.rate_limit import limiter
from treinai.schemas.response import MessageResponse
from treinai.schemas.training import (
    GeneratePlanRequest,
    HistoryEntryRequest,
    NamedGenerationRequest,
    ReplaceWorkoutsRequest,
)
from treinai.services import workout_service
from treinai.services.ai_service import AIService
from treinai.services.professional_service import resolve_acting_target

router = APIRouter(prefix="/workouts")


@router.get("")
async def list_workouts(student_id: Optional[str] = None, user: Dict[str, Any] = Depends(get_current_user)):
    target, _ = await resolve_acting_target(user, student_id)
    return await workout_service.get_workouts(target)


@router.post("/generate")
@limiter.limit(settings.RATE_LIMIT_AI)
async def generate_plan(
    request: Request,
    body: GeneratePlanRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    target, professional = await resolve_acting_target(user, body.student_id)
    return await workout_service.generate_initial_plan(target, ai, professional)


@router.put("")
async def replace_workouts(body: ReplaceWorkoutsRequest, user: Dict[str, Any] = Depends(get_current_user)):
    target, professional = await resolve_acting_target(user, body.student_id)
    workouts = await workout_service.replace_workouts(target, body.workouts, professional)
    return {"workouts": workouts}


@router.delete("/{workout_id}", response_model=MessageResponse)
async def delete_workout(
    workout_id: str,
    student_id: Optional[str] = None,
    user: Dict[str, Any] = Depends(get_current_user),
):
    target, professional = await resolve_acting_target(user, student_id)
    await workout_service.delete_workout(target, workout_id, professional)
    return MessageResponse(msg="Workout deleted")


@router.delete("/{workout_id}/exercises/{exercise_id}")
async def delete_exercise(
    workout_id: str,
    exercise_id: str,
    student_id: Optional[str] = None,
    user: Dict[str, Any] = Depends(get_current_user),
):
    target, professional = await resolve_acting_target(user, student_id)
    workout = await workout_service.delete_exercise(target, workout_id, exercise_id, professional)
    return {"workout": workout}


@router.post("/history", status_code=status.HTTP_201_CREATED)
async def add_history(body: HistoryEntryRequest, user: Dict[str, Any] = Depends(get_current_user)):
    entry = await workout_service.add_history_entry(user, body.model_dump())
    return {"entry": entry}


@router.post("/ai")
@limiter.limit(settings.RATE_LIMIT_AI)
async def generate_workout(
    request: Request,
    body: NamedGenerationRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    target, professional = await resolve_acting_target(user, body.student_id)
    return await workout_service.generate_workout_by_name(target, body.name, ai, professional)


@router.post("/{workout_id}/exercises/ai")
@limiter.limit(settings.RATE_LIMIT_AI)
async def generate_exercise(
    request: Request,
    workout_id: str,
    body: NamedGenerationRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    ai: AIService = Depends(get_ai),
):
    target, professional = await resolve_acting_target(user, body.student_id)
    return await workout_service.generate_exercise_by_name(target, workout_id, body.name, ai, professional)
