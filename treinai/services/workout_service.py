"""
treinai/services/workout_service.py

Purpose: Workout plans embedded in the user document

- Initial AI plan generation (gated by plan status)
- Whole-plan replacement, workout/exercise deletion
- Workout history (performed sessions)
- AI generation of one workout / one exercise by name
- Marks the serving professional's student entry as updated
"""

from typing import Any, Dict, List, Optional

import pydantic
from pymongo import ReturnDocument

from treinai.core.exceptions import (
    ExternalServiceError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from treinai.core.logging import get_logger, LogContext
from treinai.db.mongo import get_users_collection
from treinai.db.serialize import serialize
from treinai.models.workout import build_exercise, build_workout
from treinai.services.ai_service import AIService
from treinai.services.professional_service import touch_student
from treinai.services.user_service import record_token_usage
from utils.constants import PlanStatus, PlanType
from utils.time_utils import parse_client_datetime, utc_now

logger = get_logger(__name__)


def _schema_errors(e: pydantic.ValidationError) -> List[Dict[str, Any]]:
    return e.errors(include_url=False, include_context=False, include_input=False)


def _invalid_ai_output(e: pydantic.ValidationError, what: str) -> ExternalServiceError:
    return ExternalServiceError(
        f"AI returned a malformed {what}",
        code="AI_INVALID_RESPONSE",
        details=_schema_errors(e)
    )


def ensure_plan_usable(user: Dict[str, Any]) -> None:
    """
    Paid plans must be active; free plans are always usable.

    Raises:
        PermissionDeniedError: inactive paid plan
    """
    plan = user.get("plan_info") or {}
    if plan.get("status") == PlanStatus.INACTIVE.value and plan.get("plan_type") != PlanType.FREE.value:
        raise PermissionDeniedError("Your plan is inactive", code="PLAN_INACTIVE")


def _find_workout(user: Dict[str, Any], workout_id: str) -> Optional[Dict[str, Any]]:
    for workout in user.get("workouts", []):
        if workout.get("workout_id") == workout_id:
            return workout
    return None


async def _after_edit(target: Dict[str, Any], professional: Optional[Dict[str, Any]]) -> None:
    if professional is not None:
        await touch_student(professional["professional_id"], str(target["_id"]))


async def generate_initial_plan(
    target: Dict[str, Any],
    ai: AIService,
    professional: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Builds the user's first set of workouts from their goal.

    Users that already have workouts get them back untouched with
    total_tokens 0.

    Returns:
        {"workouts", "total_tokens", "generated"}
    """
    ensure_plan_usable(target)
    user_id = str(target["_id"])

    existing = target.get("workouts") or []
    if existing:
        return {"workouts": serialize(existing), "total_tokens": 0, "generated": False}

    with LogContext(user_id=user_id):
        goal = (target.get("profile") or {}).get("goal") or "saude"
        completion = await ai.generate_plan(goal)
        await record_token_usage(user_id, completion.total_tokens)

        parsed = completion.parsed or {}
        raw_workouts = parsed.get("workouts") or []
        if not isinstance(raw_workouts, list):
            raw_workouts = []

        try:
            workouts = [
                build_workout(raw, idx + 1)
                for idx, raw in enumerate(raw_workouts)
                if isinstance(raw, dict)
            ]
        except pydantic.ValidationError as e:
            raise _invalid_ai_output(e, "plan")
        if not workouts:
            raise ExternalServiceError("AI did not return a usable plan", code="AI_INVALID_RESPONSE")

        await get_users_collection().update_one(
            {"_id": target["_id"]},
            {"$set": {"workouts": workouts, "updated_at": utc_now()}}
        )
        await _after_edit(target, professional)

        logger.info("Initial plan generated", extra={"workouts": len(workouts), "tokens": completion.total_tokens})

    return {"workouts": serialize(workouts), "total_tokens": completion.total_tokens, "generated": True}


async def replace_workouts(
    target: Dict[str, Any],
    workouts: List[Dict[str, Any]],
    professional: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Replaces the whole plan, normalizing ids and ordering."""
    try:
        normalized = [build_workout(raw, idx + 1) for idx, raw in enumerate(workouts)]
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid workout data", details=_schema_errors(e))

    await get_users_collection().update_one(
        {"_id": target["_id"]},
        {"$set": {"workouts": normalized, "updated_at": utc_now()}}
    )
    await _after_edit(target, professional)

    logger.info("Workouts replaced", extra={"user_id": str(target["_id"]), "workouts": len(normalized)})
    return serialize(normalized)


async def delete_workout(
    target: Dict[str, Any],
    workout_id: str,
    professional: Optional[Dict[str, Any]] = None,
) -> bool:
    result = await get_users_collection().update_one(
        {"_id": target["_id"], "workouts.workout_id": workout_id},
        {"$pull": {"workouts": {"workout_id": workout_id}}, "$set": {"updated_at": utc_now()}}
    )
    if result.modified_count == 0:
        raise ResourceNotFoundError("Workout not found", details={"workout_id": workout_id})

    await _after_edit(target, professional)
    return True


async def delete_exercise(
    target: Dict[str, Any],
    workout_id: str,
    exercise_id: str,
    professional: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Removes one exercise from a workout.

    Returns:
        The updated workout
    """
    workout = _find_workout(target, workout_id)
    if not workout:
        raise ResourceNotFoundError("Workout not found", details={"workout_id": workout_id})
    if not any(ex.get("exercise_id") == exercise_id for ex in workout.get("exercises", [])):
        raise ResourceNotFoundError("Exercise not found", details={"exercise_id": exercise_id})

    updated = await get_users_collection().find_one_and_update(
        {"_id": target["_id"], "workouts.workout_id": workout_id},
        {"$pull": {"workouts.$.exercises": {"exercise_id": exercise_id}}},
        return_document=ReturnDocument.AFTER
    )
    await _after_edit(target, professional)
    return serialize(_find_workout(updated, workout_id))


async def add_history_entry(user: Dict[str, Any], entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Records a performed workout session.

    Args:
        user: Current user document
        entry: workout_id (required), workout_name, performed_at, duration, exercises_done

    Returns:
        The stored history entry
    """
    workout_id = entry.get("workout_id")
    if not workout_id:
        raise ValidationError("workout_id is required")

    workout_name = entry.get("workout_name")
    if not workout_name:
        workout = _find_workout(user, workout_id)
        workout_name = workout.get("name") if workout else None

    try:
        duration = max(0, int(float(entry.get("duration") or 0)))
    except (TypeError, ValueError):
        duration = 0

    record = {
        "workout_id": workout_id,
        "workout_name": workout_name,
        "performed_at": parse_client_datetime(entry.get("performed_at")) or utc_now(),
        "duration": duration,
        "exercises_done": entry.get("exercises_done") or [],
    }

    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$push": {"history": record}}
    )
    logger.info("Workout logged", extra={"user_id": str(user["_id"]), "workout_id": workout_id})
    return serialize(record)


async def generate_workout_by_name(
    target: Dict[str, Any],
    name: str,
    ai: AIService,
    professional: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Asks the LLM for one workout and appends it to the plan.

    A model refusal (`success: false`) is returned as a normal result with
    success False; an unparseable answer raises.
    """
    if not name or not name.strip():
        raise ValidationError("Workout name is required")

    completion = await ai.generate_workout(name)
    await record_token_usage(str(target["_id"]), completion.total_tokens)

    parsed = completion.parsed
    if parsed and parsed.get("success") is False:
        return {
            "success": False,
            "reason": parsed.get("reason") or "The AI could not build this workout",
            "total_tokens": completion.total_tokens,
        }
    if not parsed or parsed.get("success") is not True or not isinstance(parsed.get("workout"), dict):
        raise ExternalServiceError(
            "Could not generate a valid workout",
            code="AI_INVALID_RESPONSE",
            details={"raw": completion.text}
        )

    order = len(target.get("workouts") or []) + 1
    try:
        workout = build_workout({**parsed["workout"], "order": order}, order)
    except pydantic.ValidationError as e:
        raise _invalid_ai_output(e, "workout")

    await get_users_collection().update_one(
        {"_id": target["_id"]},
        {"$push": {"workouts": workout}, "$set": {"updated_at": utc_now()}}
    )
    await _after_edit(target, professional)

    logger.info("AI workout added", extra={"user_id": str(target["_id"]), "workout_id": workout["workout_id"]})
    return {"success": True, "workout": serialize(workout), "total_tokens": completion.total_tokens}


async def generate_exercise_by_name(
    target: Dict[str, Any],
    workout_id: str,
    name: str,
    ai: AIService,
    professional: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Asks the LLM for one exercise and appends it to an existing workout."""
    if not name or not name.strip():
        raise ValidationError("Exercise name is required")

    workout = _find_workout(target, workout_id)
    if not workout:
        raise ResourceNotFoundError("Workout not found", details={"workout_id": workout_id})

    completion = await ai.generate_exercise(name)
    await record_token_usage(str(target["_id"]), completion.total_tokens)

    parsed = completion.parsed
    if parsed and parsed.get("success") is False:
        return {
            "success": False,
            "reason": parsed.get("reason") or "The AI could not find this exercise",
            "total_tokens": completion.total_tokens,
        }
    if not parsed or parsed.get("success") is not True or not isinstance(parsed.get("exercise"), dict):
        raise ExternalServiceError(
            "Could not generate a valid exercise",
            code="AI_INVALID_RESPONSE",
            details={"raw": completion.text}
        )

    order = len(workout.get("exercises") or []) + 1
    raw = {**parsed["exercise"], "order": order}
    raw.pop("exercise_id", None)
    raw["name"] = raw.get("name") or name.strip()
    try:
        exercise = build_exercise(raw, order)
    except pydantic.ValidationError as e:
        raise _invalid_ai_output(e, "exercise")

    updated = await get_users_collection().find_one_and_update(
        {"_id": target["_id"], "workouts.workout_id": workout_id},
        {"$push": {"workouts.$.exercises": exercise}},
        return_document=ReturnDocument.AFTER
    )
    await _after_edit(target, professional)

    return {
        "success": True,
        "exercise": serialize(exercise),
        "workout": serialize(_find_workout(updated, workout_id)),
        "total_tokens": completion.total_tokens,
    }


async def get_workouts(target: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "workouts": serialize(target.get("workouts") or []),
        "history": serialize(target.get("history") or []),
    }
