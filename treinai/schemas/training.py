"""
treinai/schemas/training.py

Purpose: Request bodies for workouts, the exercise catalog and AI chats

Writes that a professional may perform for a student carry an optional
`student_id`.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ActingRequest(BaseModel):
    student_id: Optional[str] = None


class GeneratePlanRequest(ActingRequest):
    pass


class ReplaceWorkoutsRequest(ActingRequest):
    workouts: List[Dict[str, Any]]


class HistoryEntryRequest(BaseModel):
    workout_id: str
    workout_name: Optional[str] = None
    performed_at: Optional[str] = None
    duration: Optional[Any] = None
    exercises_done: List[Dict[str, Any]] = Field(default_factory=list)


class NamedGenerationRequest(ActingRequest):
    name: str


class ExerciseCatalogRequest(BaseModel):
    name: str
    image_url: str
    force_update: bool = False


class ExerciseReportRequest(BaseModel):
    name: str
    explanation: str


class ChatTurn(BaseModel):
    role: Literal["ia", "user"]
    content: str


class TrainerChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = Field(default_factory=list)


class NutritionChatRequest(ActingRequest):
    message: str
