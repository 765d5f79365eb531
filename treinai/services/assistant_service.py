"""
treinai/services/assistant_service.py

Purpose: Conversational AI assistants

- Personal-trainer chat (free conversation, no content generation)
- Nutrition assistant that maintains the user's meal plan
"""

from typing import Any, Dict, List, Optional

from treinai.core.exceptions import ExternalServiceError, PermissionDeniedError, ValidationError
from treinai.core.logging import get_logger
from treinai.db.mongo import get_users_collection
from treinai.db.serialize import serialize
from treinai.services.ai_service import AIService
from treinai.services.professional_service import touch_student
from treinai.services.user_service import record_token_usage
from utils.constants import NUTRITION_PLANS
from utils.time_utils import utc_now

logger = get_logger(__name__)

# Profile fields shared with the nutrition assistant
NUTRITION_CONTEXT_FIELDS = ("goal", "age", "gender", "experience_level", "weight_history", "height_history")


def sanitize_meal_plan(items: Any) -> List[Dict[str, str]]:
    """
    Normalizes meal plan entries.

    Strings are trimmed; a non-dict entry or one with empty content gets a
    placeholder `Item N` content.
    """
    if not isinstance(items, list):
        return []

    sanitized = []
    for idx, item in enumerate(items):
        item = item if isinstance(item, dict) else {}
        time_of_day = item.get("time_of_day")
        content = item.get("content")
        time_of_day = time_of_day.strip() if isinstance(time_of_day, str) else ""
        content = content.strip() if isinstance(content, str) else ""
        sanitized.append({"time_of_day": time_of_day, "content": content or f"Item {idx + 1}"})
    return sanitized


async def trainer_chat(
    user: Dict[str, Any],
    message: str,
    history: List[Dict[str, str]],
    ai: AIService,
) -> Dict[str, Any]:
    if not message or not message.strip():
        raise ValidationError("Message is required")

    completion = await ai.trainer_reply(history, message.strip())
    await record_token_usage(str(user["_id"]), completion.total_tokens)

    if not completion.text:
        raise ExternalServiceError("Empty AI response", code="AI_INVALID_RESPONSE")

    return {"reply": completion.text, "total_tokens": completion.total_tokens}


async def nutrition_chat(
    target: Dict[str, Any],
    message: str,
    ai: AIService,
    professional: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Sends a message to the nutrition assistant and stores the returned plan.

    Users need a max or coach plan unless a professional acts for them.

    Returns:
        {"success", "msg", "nutrition"?, "total_tokens"}

    Raises:
        PermissionDeniedError: plan does not include the assistant
        ExternalServiceError: unparseable model output
        ValidationError: the model returned an empty meal plan
    """
    if not message or not message.strip():
        raise ValidationError("Message is required")

    plan_type = (target.get("plan_info") or {}).get("plan_type")
    if professional is None and plan_type not in NUTRITION_PLANS:
        raise PermissionDeniedError(
            "Only MAX or COACH plans can use the nutrition assistant",
            code="PLAN_REQUIRED",
            details={"plan_type": plan_type}
        )

    user_id = str(target["_id"])
    if professional is not None:
        await touch_student(professional["professional_id"], user_id)

    nutrition = target.get("nutrition") or {}
    profile = target.get("profile") or {}
    client_info = {field: profile.get(field) for field in NUTRITION_CONTEXT_FIELDS}
    client_info["username"] = target.get("username")

    completion = await ai.nutrition_reply(
        message.strip(),
        {"restrictions": nutrition.get("restrictions", ""), "meal_plan": nutrition.get("meal_plan", [])},
        client_info,
    )
    await record_token_usage(user_id, completion.total_tokens)

    parsed = completion.parsed
    if parsed is None:
        raise ExternalServiceError(
            "Could not process the AI response",
            code="AI_INVALID_RESPONSE",
            details={"raw": completion.text}
        )

    if parsed.get("success") is False:
        return {
            "success": False,
            "msg": parsed.get("msg") or "The AI could not update your plan",
            "total_tokens": completion.total_tokens,
        }

    returned = parsed.get("nutrition")
    if not isinstance(returned, dict) or not isinstance(returned.get("meal_plan"), list):
        raise ExternalServiceError(
            "AI did not return a meal plan",
            code="AI_INVALID_RESPONSE",
            details={"raw": parsed}
        )

    meal_plan = sanitize_meal_plan(returned["meal_plan"])
    if not meal_plan:
        raise ValidationError("AI returned an empty meal plan", code="AI_EMPTY_PLAN")

    now = utc_now()
    restrictions = returned.get("restrictions")
    stored = {
        "created_at": nutrition.get("created_at") or now,
        "updated_at": now,
        "restrictions": restrictions.strip() if isinstance(restrictions, str) else nutrition.get("restrictions", ""),
        "meal_plan": meal_plan,
    }
    await get_users_collection().update_one(
        {"_id": target["_id"]},
        {"$set": {"nutrition": stored, "updated_at": now}}
    )

    logger.info("Nutrition plan updated", extra={"user_id": user_id, "meals": len(meal_plan)})
    return {
        "success": True,
        "msg": parsed.get("msg") or "",
        "nutrition": serialize(stored),
        "total_tokens": completion.total_tokens,
    }
