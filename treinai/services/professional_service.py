"""
treinai/services/professional_service.py

Purpose: Professional profiles and coach/student assignment

- Directory listing with text/location/specialty filters
- Publishing and editing professional profiles
- Student requests with conflict detection and forced override
- Transactional acceptance (one professional per specialty per student)
- Student removal and professional access to student data
"""

from typing import Any, Dict, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from treinai.core.exceptions import (
    BadRequestError,
    ConflictError,
    PermissionDeniedError,
    ResourceNotFoundError,
    TreinAIError,
    ValidationError,
)
from treinai.core.logging import get_logger, LogContext
from treinai.db.mongo import get_professionals_collection, get_users_collection, transaction
from treinai.db.serialize import public_user, serialize, to_object_id
from treinai.models.professional import ProfessionalDocument, StudentEntry
from treinai.services.upload_service import delete_upload
from utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SPECIALTIES, STUDENT_VIEW_FIELDS
from utils.time_utils import utc_now
from utils.validation_utils import contains_ci, exact_ci

logger = get_logger(__name__)


def public_professional(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    return serialize({k: v for k, v in doc.items() if k != "reports"})


def _find_student(professional: Dict[str, Any], student_id: str) -> Optional[Dict[str, Any]]:
    for entry in professional.get("students", []):
        if str(entry.get("user_id")) == str(student_id):
            return entry
    return None


def has_accepted_student(professional: Dict[str, Any], student_id: str) -> bool:
    return any(
        str(entry.get("user_id")) == str(student_id) and entry.get("accepted")
        for entry in professional.get("students", [])
    )


async def get_professional(professional_id: str) -> Optional[Dict[str, Any]]:
    return await get_professionals_collection().find_one({"professional_id": professional_id})


async def require_professional(professional_id: str) -> Dict[str, Any]:
    professional = await get_professional(professional_id)
    if not professional:
        raise ResourceNotFoundError("Professional not found", details={"professional_id": professional_id})
    return professional


async def get_professional_by_user(user_id: str) -> Optional[Dict[str, Any]]:
    return await get_professionals_collection().find_one({"user_id": str(user_id)})


def require_owner(professional: Dict[str, Any], user: Dict[str, Any]) -> None:
    if professional.get("user_id") != str(user["_id"]):
        raise PermissionDeniedError("Only the profile owner can do this")


async def list_professionals(
    q: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    specialty: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    """
    Professional directory.

    Args:
        q: Free text matched against name, bio and specialty
        country/state/city: Exact, case-insensitive location filters
        specialty: One of SPECIALTIES
        page: 1-based page
        limit: Page size (capped at MAX_PAGE_SIZE)

    Returns:
        {"total", "page", "per_page", "items"}
    """
    page = max(1, page or 1)
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))

    query: Dict[str, Any] = {}
    if q and q.strip():
        pattern = contains_ci(q)
        query["$or"] = [{"name": pattern}, {"bio": pattern}, {"specialty": pattern}]
    if country:
        query["country"] = exact_ci(country)
    if state:
        query["state"] = exact_ci(state)
    if city:
        query["city"] = exact_ci(city)
    if specialty:
        query["specialty"] = specialty

    collection = get_professionals_collection()
    total = await collection.count_documents(query)
    cursor = (
        collection.find(query, {"reports": 0})
        .sort("created_at", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    items = await cursor.to_list(length=limit)

    return {
        "total": total,
        "page": page,
        "per_page": limit,
        "items": [public_professional(item) for item in items],
    }


async def create_professional(
    user: Dict[str, Any],
    data: Dict[str, Any],
    image_url: Optional[str] = None,
    location: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Publishes the caller's professional profile.

    Raises:
        ValidationError: missing name/bio or unknown specialty
        ConflictError: the account already has a professional profile
    """
    user_id = str(user["_id"])
    name = (data.get("name") or "").strip()
    bio = (data.get("bio") or "").strip()
    specialty = data.get("specialty")

    if not name or not bio:
        raise ValidationError("Name and bio are required")
    if specialty not in SPECIALTIES:
        raise ValidationError("Invalid specialty", details={"allowed": list(SPECIALTIES)})

    collection = get_professionals_collection()
    if await collection.find_one({"user_id": user_id}, {"_id": 1}):
        raise ConflictError("A professional profile already exists for this user", code="PROFESSIONAL_EXISTS")

    document = ProfessionalDocument(
        user_id=user_id,
        name=name,
        bio=bio,
        specialty=specialty,
        image_url=image_url,
        country=data.get("country"),
        country_code=data.get("country_code"),
        state=data.get("state"),
        city=data.get("city"),
        location=location,
    ).to_document()

    try:
        await collection.insert_one(document)
    except DuplicateKeyError:
        raise ConflictError("A professional profile already exists for this user", code="PROFESSIONAL_EXISTS")

    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"is_coach": True, "updated_at": utc_now()}}
    )

    logger.info(
        "Professional published",
        extra={"user_id": user_id, "professional_id": document["professional_id"], "specialty": specialty}
    )
    return public_professional(document)


async def update_professional(
    professional: Dict[str, Any],
    changes: Dict[str, Any],
    image_url: Optional[str] = None,
    remove_image: bool = False,
    location: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Edits a professional profile.

    The specialty cannot change while the profile still has students.
    A new image (or remove_image) deletes the previously stored file.
    """
    updates: Dict[str, Any] = {}

    for field in ("name", "bio", "country", "country_code", "state", "city"):
        value = changes.get(field)
        if value is not None:
            value = value.strip()
            if field in ("name", "bio") and not value:
                raise ValidationError(f"{field} cannot be empty")
            updates[field] = value

    specialty = changes.get("specialty")
    if specialty is not None and specialty != professional.get("specialty"):
        if specialty not in SPECIALTIES:
            raise ValidationError("Invalid specialty", details={"allowed": list(SPECIALTIES)})
        if professional.get("students"):
            raise BadRequestError(
                "Cannot change specialty while you still have students",
                code="HAS_STUDENTS",
                details={"students": len(professional["students"])}
            )
        updates["specialty"] = specialty

    if location is not None:
        updates["location"] = location

    old_image = professional.get("image_url")
    if image_url is not None:
        updates["image_url"] = image_url
    elif remove_image:
        updates["image_url"] = None

    if not updates:
        return public_professional(professional)

    updates["updated_at"] = utc_now()
    updated = await get_professionals_collection().find_one_and_update(
        {"professional_id": professional["professional_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )

    if "image_url" in updates and old_image and old_image != updates["image_url"]:
        delete_upload(old_image)

    logger.info(
        "Professional updated",
        extra={"professional_id": professional["professional_id"], "fields": sorted(updates)}
    )
    return public_professional(updated)


async def find_current_professional(
    student: Dict[str, Any],
    specialty: str,
    exclude_id: str,
) -> Optional[Dict[str, Any]]:
    """
    The professional currently serving a student for a specialty, other than `exclude_id`.

    Looks at the student's coach slot first, then at any other professional
    of the same specialty listing the student as accepted.
    """
    collection = get_professionals_collection()
    slot = (student.get("coach_ids") or {}).get(specialty)
    if slot and slot != exclude_id:
        current = await collection.find_one({"professional_id": slot})
        if current:
            return current

    return await collection.find_one({
        "specialty": specialty,
        "professional_id": {"$ne": exclude_id},
        "students": {"$elemMatch": {"user_id": str(student["_id"]), "accepted": True}},
    })


async def request_to_join(
    professional_id: str,
    student: Dict[str, Any],
    message: str = "",
    force: bool = False,
) -> Tuple[int, Dict[str, Any]]:
    """
    A user asks to become a professional's student.

    Rules, in order:
      1. a professional cannot take themself as a student (400)
      2. already assigned to this professional (409)
      3. a pending request is refreshed (200)
      4. another professional of the same specialty serves the user:
         409 with the current professional unless `force`, which records
         a forced request naming the previous professional (201)
      5. otherwise a new request is recorded (201)

    Returns:
        (status_code, body)
    """
    professional = await require_professional(professional_id)
    student_id = str(student["_id"])
    specialty = professional["specialty"]
    collection = get_professionals_collection()
    now = utc_now()

    with LogContext(user_id=student_id, professional_id=professional_id):
        if professional.get("user_id") == student_id:
            raise BadRequestError("You cannot become your own student", code="SELF_REQUEST")

        if (student.get("coach_ids") or {}).get(specialty) == professional_id:
            raise ConflictError("You are already this professional's student", code="ALREADY_STUDENT")

        if _find_student(professional, student_id):
            await collection.update_one(
                {"professional_id": professional_id, "students.user_id": student_id},
                {"$set": {"students.$.message": message, "students.$.last_update": now}}
            )
            logger.info("Student request refreshed")
            return 200, {"msg": "Request updated", "success": True}

        current = await find_current_professional(student, specialty, professional_id)
        if current and not force:
            raise ConflictError(
                "You already have a professional for this specialty",
                code="COACH_CONFLICT",
                details={
                    "current_professional": {
                        "professional_id": current["professional_id"],
                        "name": current.get("name"),
                        "image_url": current.get("image_url"),
                        "specialty": current.get("specialty"),
                    },
                    "can_force": True,
                }
            )

        entry = StudentEntry(
            user_id=student_id,
            message=message,
            force_request=bool(current),
            previous_professional=current["professional_id"] if current else None,
        )
        await collection.update_one(
            {"professional_id": professional_id},
            {"$push": {"students": entry.model_dump()}}
        )

        body: Dict[str, Any] = {"msg": "Request sent", "success": True}
        if current:
            body["warning"] = (
                "Once accepted, this professional replaces your current "
                f"{specialty} ({current.get('name')})"
            )
            logger.info("Forced student request recorded", extra={"previous": current["professional_id"]})
        else:
            logger.info("Student request recorded")
        return 201, body


async def accept_student(professional: Dict[str, Any], student_id: str) -> Dict[str, Any]:
    """
    Accepts a student and moves them off any previous professional of the
    same specialty, atomically.

    Returns:
        {"professional_id", "student_id", "previous_professional_removed"}

    Raises:
        ResourceNotFoundError: student does not exist
        TreinAIError: transaction could not be completed (500)
    """
    professional_id = professional["professional_id"]
    specialty = professional["specialty"]
    student_oid = to_object_id(student_id)
    if student_oid is None:
        raise ResourceNotFoundError("Student not found")

    professionals = get_professionals_collection()
    users = get_users_collection()

    with LogContext(user_id=student_id, professional_id=professional_id):
        try:
            async with transaction() as session:
                student = await users.find_one({"_id": student_oid}, session=session)
                if not student:
                    raise ResourceNotFoundError("Student not found")

                now = utc_now()
                marked = await professionals.update_one(
                    {"professional_id": professional_id, "students.user_id": student_id},
                    {"$set": {
                        "students.$.accepted": True,
                        "students.$.accepted_at": now,
                        "students.$.last_update": now,
                    }},
                    session=session
                )
                if marked.matched_count == 0:
                    entry = StudentEntry(user_id=student_id, accepted=True, accepted_at=now)
                    await professionals.update_one(
                        {"professional_id": professional_id},
                        {"$push": {"students": entry.model_dump()}},
                        session=session
                    )

                previous_id = (student.get("coach_ids") or {}).get(specialty)
                if previous_id == professional_id:
                    previous_id = None
                if not previous_id:
                    other = await professionals.find_one(
                        {
                            "specialty": specialty,
                            "professional_id": {"$ne": professional_id},
                            "students": {"$elemMatch": {"user_id": student_id, "accepted": True}},
                        },
                        session=session
                    )
                    previous_id = other["professional_id"] if other else None

                removed = False
                if previous_id:
                    pulled = await professionals.update_one(
                        {"professional_id": previous_id},
                        {"$pull": {"students": {"user_id": student_id}}},
                        session=session
                    )
                    removed = pulled.modified_count > 0

                await users.update_one(
                    {"_id": student_oid},
                    {"$set": {f"coach_ids.{specialty}": professional_id, "updated_at": now}},
                    session=session
                )
        except PyMongoError as e:
            logger.error(f"Accept student transaction failed: {e}", exc_info=True)
            raise TreinAIError(
                "Could not complete the student transfer",
                code="TRANSACTION_FAILED",
                status_code=500
            ) from e

        logger.info(
            "Student accepted",
            extra={"previous_professional": previous_id, "previous_removed": removed}
        )

    return {
        "professional_id": professional_id,
        "student_id": student_id,
        "previous_professional": previous_id,
        "previous_professional_removed": removed,
    }


async def remove_student(professional: Dict[str, Any], student_id: str) -> Dict[str, Any]:
    """
    Drops every entry for a student and frees their coach slot when it
    pointed at this professional.
    """
    professional_id = professional["professional_id"]
    specialty = professional["specialty"]

    result = await get_professionals_collection().update_one(
        {"professional_id": professional_id, "students.user_id": student_id},
        {"$pull": {"students": {"user_id": student_id}}}
    )
    if result.modified_count == 0:
        raise ResourceNotFoundError("Student not found for this professional")

    slot_cleared = False
    student_oid = to_object_id(student_id)
    if student_oid is not None:
        cleared = await get_users_collection().update_one(
            {"_id": student_oid, f"coach_ids.{specialty}": professional_id},
            {"$set": {f"coach_ids.{specialty}": None, "updated_at": utc_now()}}
        )
        slot_cleared = cleared.modified_count > 0

    logger.info(
        "Student removed",
        extra={"professional_id": professional_id, "user_id": student_id, "slot_cleared": slot_cleared}
    )
    return {"removed": True, "coach_slot_cleared": slot_cleared}


async def touch_student(professional_id: str, student_id: str) -> bool:
    """Marks a student's entry as updated now (after plan edits by the professional)."""
    result = await get_professionals_collection().update_one(
        {"professional_id": professional_id, "students.user_id": str(student_id)},
        {"$set": {"students.$.last_update": utc_now()}}
    )
    return result.modified_count > 0


async def resolve_acting_target(
    caller: Dict[str, Any],
    student_id: Optional[str],
) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    Works out whose data a request edits.

    Without `student_id` (or with the caller's own id) the caller edits
    their own data. Otherwise the caller must be a professional with that
    student accepted.

    Returns:
        (target user document, acting professional or None)
    """
    if not student_id or student_id == str(caller["_id"]):
        return caller, None

    professional = await get_professional_by_user(str(caller["_id"]))
    if not professional or not has_accepted_student(professional, student_id):
        raise PermissionDeniedError("This user is not one of your students", code="NOT_YOUR_STUDENT")

    student = await get_users_collection().find_one({"_id": to_object_id(student_id)})
    if not student:
        raise ResourceNotFoundError("Student not found")
    return student, professional


async def student_view(caller: Dict[str, Any], student_id: str) -> Dict[str, Any]:
    """Safe subset of a student's data for the professional serving them."""
    student, _ = await resolve_acting_target(caller, student_id)
    return public_user(student, fields=STUDENT_VIEW_FIELDS)
