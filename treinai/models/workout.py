"""
treinai/models/workout.py

Purpose: Workout plan entries embedded in users.workouts

- Normalizes workouts coming from clients or the LLM
- Assigns ids and 1-based ordering where missing
- Coerces numeric fields (sets, reps, rpe) and list-valued text fields
"""

import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.time_utils import utc_now

RPE_MIN = 1
RPE_MAX = 10

# Leading number of values like "8-12" or "10 reps"
LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_int(value: Any) -> Optional[int]:
    """
    Coerces a count to int. Ranges keep their lower bound ("8-12" -> 8);
    anything else unreadable becomes None.
    """
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        pass
    if isinstance(value, str):
        match = LEADING_NUMBER.match(value)
        if match:
            return int(float(match.group(1)))
    return None


def _to_text(value: Any) -> Any:
    """Joins lists of strings ("muscle": ["chest", "triceps"]) and stringifies numbers."""
    if isinstance(value, list) and all(isinstance(v, (str, int, float)) for v in value):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class ExerciseEntry(BaseModel):
    exercise_id: str = Field(default_factory=_new_id)
    order: Optional[int] = None
    muscle: Optional[str] = None
    name: str
    instructions: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    rpe: Optional[int] = None

    @field_validator("sets", "reps", "rpe", "order", mode="before")
    @classmethod
    def coerce_int(cls, v):
        return _to_int(v)

    @field_validator("muscle", "name", "instructions", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _to_text(v)

    @field_validator("rpe")
    @classmethod
    def rpe_in_scale(cls, v):
        if v is None or RPE_MIN <= v <= RPE_MAX:
            return v
        return None


class WorkoutEntry(BaseModel):
    workout_id: str = Field(default_factory=_new_id)
    name: str
    order: Optional[int] = None
    description: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    exercises: List[ExerciseEntry] = Field(default_factory=list)

    @field_validator("order", mode="before")
    @classmethod
    def coerce_order(cls, v):
        return _to_int(v)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v):
        return _to_text(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v):
        return _to_text(v) or ""


def build_exercise(raw: Dict[str, Any], position: int) -> Dict[str, Any]:
    """
    Normalizes one exercise dict; `position` (1-based) fills a missing order.
    """
    data = dict(raw or {})
    if not data.get("exercise_id"):
        data.pop("exercise_id", None)
    exercise = ExerciseEntry(**data)
    if exercise.order is None:
        exercise.order = position
    return exercise.model_dump()


def build_workout(raw: Dict[str, Any], position: int) -> Dict[str, Any]:
    """
    Normalizes one workout dict and its exercises.

    Args:
        raw: Client or LLM supplied workout
        position: 1-based index used when the workout carries no order

    Returns:
        Storage-ready workout dict
    """
    data = dict(raw or {})
    if not data.get("workout_id"):
        data.pop("workout_id", None)
    data["name"] = data.get("name") or f"Workout {position}"
    exercises = data.pop("exercises", None) or []

    workout = WorkoutEntry(**data)
    if workout.order is None:
        workout.order = position

    result = workout.model_dump()
    result["exercises"] = [
        build_exercise(ex, idx + 1)
        for idx, ex in enumerate(exercises)
        if isinstance(ex, dict) and ex.get("name")
    ]
    return result
