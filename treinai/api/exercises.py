"""
treinai/api/exercises.py

Purpose: Exercise catalog routes
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from treinai.api.deps import get_current_user
from treinai.schemas.training import ExerciseCatalogRequest, ExerciseReportRequest
from treinai.services import exercise_service

router = APIRouter(prefix="/exercises")


@router.get("")
async def find_exercise(name: str = Query(...), user: Dict[str, Any] = Depends(get_current_user)):
    return await exercise_service.find_exercise(name)


@router.post("")
async def add_exercise(body: ExerciseCatalogRequest, user: Dict[str, Any] = Depends(get_current_user)):
    status_code, payload = await exercise_service.add_exercise(body.name, body.image_url, body.force_update)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


@router.post("/report", status_code=status.HTTP_201_CREATED)
async def report_exercise(body: ExerciseReportRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return await exercise_service.report_exercise(user, body.name, body.explanation)
