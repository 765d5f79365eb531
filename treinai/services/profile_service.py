"""
treinai/services/profile_service.py

Purpose: User profile, preferences and onboarding

- Theme preference changes
- Onboarding answers -> AI summary -> training goal
- Profile edits with per-day weight/height history
"""

import re
import uuid
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from treinai.core.exceptions import BadRequestError, ExternalServiceError, ValidationError
from treinai.core.logging import get_logger
from treinai.db.mongo import get_users_collection
from treinai.db.serialize import public_user
from treinai.services.ai_service import AIService
from treinai.services.user_service import record_token_usage
from utils.constants import EXPERIENCE_LEVELS, GENDERS, GOAL_KEYWORDS, THEMES
from utils.time_utils import is_same_local_day, utc_now

logger = get_logger(__name__)


def _text_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def map_summary_to_goal(text: Optional[str]) -> Optional[str]:
    """
    Maps a free-text goal summary onto one of the known training goals.

    First keyword group that matches wins; None when nothing matches.
    """
    if not isinstance(text, str) or not text:
        return None
    lowered = text.lower()
    for goal, pattern in GOAL_KEYWORDS:
        if re.search(pattern, lowered):
            return goal
    return None


def upsert_daily_measurement(history: List[Dict[str, Any]], value: float) -> List[Dict[str, Any]]:
    """
    Records a measurement, keeping at most one entry per local day.

    The last entry is replaced when it was published today; otherwise a new
    entry is appended.
    """
    now = utc_now()
    history = list(history or [])
    entry = {"id": str(uuid.uuid4()), "value": value, "published_at": now}

    if history and is_same_local_day(history[-1].get("published_at"), now):
        entry["id"] = history[-1].get("id") or entry["id"]
        history[-1] = entry
    else:
        history.append(entry)
    return history


async def change_theme(user: Dict[str, Any], theme: str) -> Dict[str, Any]:
    if theme not in THEMES:
        raise ValidationError("Invalid theme", details={"allowed": list(THEMES)})
    if user.get("preferences", {}).get("theme") == theme:
        raise BadRequestError(f"Theme is already {theme}", code="UNCHANGED")

    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"preferences.theme": theme, "updated_at": utc_now()}}
    )
    return {"theme": theme}


async def complete_onboarding(user: Dict[str, Any], answers: str, ai: AIService) -> Dict[str, Any]:
    """
    Summarizes questionnaire answers and stores the resulting goal.

    Args:
        user: Current user document
        answers: Questionnaire answers as free text
        ai: LLM client

    Returns:
        {"goal", "summary", "objective_hint", "total_tokens"}
    """
    completion = await ai.summarize_onboarding(answers)
    user_id = str(user["_id"])
    await record_token_usage(user_id, completion.total_tokens)

    parsed = completion.parsed
    if parsed:
        summary = _text_or_none(parsed.get("summary"))
        hint = _text_or_none(parsed.get("objective_hint")) or _text_or_none(parsed.get("objective"))
        if summary is None and hint is None:
            raise ExternalServiceError(
                "Could not process the AI response",
                code="AI_INVALID_RESPONSE",
                details={"raw": completion.text}
            )
    else:
        summary = (completion.text or "").strip() or None
        hint = None

    mapped = map_summary_to_goal(hint) or map_summary_to_goal(summary)
    if mapped and summary:
        goal = f"{mapped} - {summary}"
    else:
        goal = summary or mapped or user.get("profile", {}).get("goal")

    now = utc_now()
    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {
            "profile.goal": goal,
            "onboarding.completed": True,
            "onboarding.completed_at": now,
            "preferences.onboard_completed": True,
            "updated_at": now,
        }}
    )

    logger.info("Onboarding completed", extra={"user_id": user_id, "goal": mapped})
    return {
        "goal": goal,
        "summary": summary,
        "objective_hint": hint,
        "total_tokens": completion.total_tokens,
    }


async def update_profile(
    user: Dict[str, Any],
    changes: Dict[str, Any],
    location: Optional[Dict[str, Any]] = None,
    avatar_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Applies profile edits.

    Args:
        user: Current user document
        changes: Optional keys weight, height, age, gender, experience_level,
            country, state, city (None values are ignored)
        location: GeoJSON point built from lat/lng
        avatar_url: Newly stored avatar (caller deletes the previous file)

    Returns:
        Updated safe user
    """
    profile = user.get("profile", {})
    updates: Dict[str, Any] = {}

    weight = changes.get("weight")
    if weight is not None:
        if weight <= 0:
            raise ValidationError("Weight must be positive")
        updates["profile.weight_history"] = upsert_daily_measurement(profile.get("weight_history"), weight)

    height = changes.get("height")
    if height is not None:
        if height <= 0:
            raise ValidationError("Height must be positive")
        updates["profile.height_history"] = upsert_daily_measurement(profile.get("height_history"), height)

    age = changes.get("age")
    if age is not None:
        if not 0 < age < 130:
            raise ValidationError("Invalid age")
        updates["profile.age"] = age

    gender = changes.get("gender")
    if gender is not None:
        if gender not in GENDERS:
            raise ValidationError("Invalid gender", details={"allowed": list(GENDERS)})
        updates["profile.gender"] = gender

    level = changes.get("experience_level")
    if level is not None:
        if level not in EXPERIENCE_LEVELS:
            raise ValidationError("Invalid experience level", details={"allowed": list(EXPERIENCE_LEVELS)})
        updates["profile.experience_level"] = level

    for field in ("country", "state", "city"):
        value = changes.get(field)
        if value is not None:
            updates[f"profile.{field}"] = value.strip()

    if location is not None:
        updates["profile.location"] = location
    if avatar_url is not None:
        updates["avatar"] = avatar_url

    if not updates:
        return public_user(user)

    updates["updated_at"] = utc_now()
    updated = await get_users_collection().find_one_and_update(
        {"_id": user["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )

    logger.info("Profile updated", extra={"user_id": str(user["_id"]), "fields": sorted(updates)})
    return public_user(updated)
