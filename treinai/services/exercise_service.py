"""
treinai/services/exercise_service.py

Purpose: Shared exercise catalog (demonstration images)

- Case-insensitive lookup by exercise name
- Add / force-update catalog entries
- User reports on wrong images (one per user per exercise per day)
"""

from typing import Any, Dict, Tuple

from pymongo import ReturnDocument

from treinai.core.exceptions import RateLimitError, ResourceNotFoundError, ValidationError
from treinai.core.logging import get_logger
from treinai.db.mongo import get_exercises_collection
from treinai.db.serialize import serialize
from utils.time_utils import is_same_local_day, utc_now
from utils.validation_utils import exact_ci, validate_url

logger = get_logger(__name__)


async def find_exercise(name: str) -> Dict[str, Any]:
    """
    Looks up a catalog entry by name.

    Returns:
        {"found": True, "exercise": ...} or {"found": False}
    """
    if not name or not name.strip():
        raise ValidationError("Exercise name is required")

    exercise = await get_exercises_collection().find_one({"name": exact_ci(name)})
    if not exercise:
        return {"found": False}
    return {"found": True, "exercise": serialize(exercise)}


async def add_exercise(name: str, image_url: str, force_update: bool = False) -> Tuple[int, Dict[str, Any]]:
    """
    Adds an exercise image to the catalog.

    An existing entry is returned unchanged unless `force_update` is set.

    Returns:
        (status_code, body): 201 when created, 200 otherwise
    """
    name = (name or "").strip()
    image_url = (image_url or "").strip()
    if not name:
        raise ValidationError("Exercise name is required")
    if not validate_url(image_url):
        raise ValidationError("image_url must be a valid http(s) URL")

    collection = get_exercises_collection()
    existing = await collection.find_one({"name": exact_ci(name)})
    now = utc_now()

    if existing and not force_update:
        return 200, {"created": False, "updated": False, "exercise": serialize(existing)}

    if existing:
        updated = await collection.find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": {"image_url": image_url, "updated_at": now}},
            return_document=ReturnDocument.AFTER
        )
        logger.info("Exercise image updated", extra={"exercise": name})
        return 200, {"created": False, "updated": True, "exercise": serialize(updated)}

    document = {
        "name": name,
        "image_url": image_url,
        "reports": [],
        "created_at": now,
        "updated_at": now,
    }
    await collection.insert_one(document)
    logger.info("Exercise added to catalog", extra={"exercise": name})
    return 201, {"created": True, "updated": False, "exercise": serialize(document)}


async def report_exercise(user: Dict[str, Any], name: str, explanation: str) -> Dict[str, Any]:
    """
    Files a report against a catalog entry.

    Raises:
        ResourceNotFoundError: unknown exercise
        RateLimitError: the user already reported this exercise today
    """
    if not explanation or not explanation.strip():
        raise ValidationError("Explanation is required")

    collection = get_exercises_collection()
    exercise = await collection.find_one({"name": exact_ci(name or "")})
    if not exercise:
        raise ResourceNotFoundError("Exercise not found")

    user_id = str(user["_id"])
    now = utc_now()
    for report in exercise.get("reports", []):
        if report.get("user_id") == user_id and is_same_local_day(report.get("created_at"), now):
            raise RateLimitError("You already reported this exercise today", code="REPORT_LIMIT")

    report = {
        "user_id": user_id,
        "username": user.get("username"),
        "explanation": explanation.strip(),
        "created_at": now,
    }
    await collection.update_one({"_id": exercise["_id"]}, {"$push": {"reports": report}})

    logger.info("Exercise reported", extra={"user_id": user_id, "exercise": exercise["name"]})
    return {"reported": True, "report": serialize(report)}
