"""
treinai/services/user_service.py

Purpose: User account management

- Signup / login / dashboard visit bookkeeping
- User retrieval by id or email
- Per-day AI token usage aggregation
- Admin listing of users
"""

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from typing import Optional, Dict, Any, List

from treinai.core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ResourceNotFoundError,
    ValidationError,
)
from treinai.core.logging import get_logger, LogContext
from treinai.core.security import create_access_token, hash_password, verify_password
from treinai.db.mongo import get_users_collection
from treinai.db.serialize import public_user, to_object_id
from treinai.models.user import UserDocument
from utils.constants import ADMIN_USERS_LIMIT, PlanType
from utils.time_utils import local_day_key, utc_now
from utils.validation_utils import normalize_email, password_problems, validate_email

logger = get_logger(__name__)


async def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by id.

    Args:
        user_id: users._id as string

    Returns:
        User document or None if not found (or the id is malformed)
    """
    oid = to_object_id(user_id)
    if oid is None:
        return None
    return await get_users_collection().find_one({"_id": oid})


async def require_user(user_id: str) -> Dict[str, Any]:
    user = await get_user_by_id(user_id)
    if not user:
        raise ResourceNotFoundError("User not found", details={"user_id": user_id})
    return user


async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    return await get_users_collection().find_one({"email": normalize_email(email)})


async def create_user(username: str, email: str, password: str, plan: str) -> Dict[str, Any]:
    """
    Registers a new account.

    Args:
        username: Display name
        email: Login email (stored lowercased)
        password: Plain password, checked against the password rules
        plan: Requested plan; paid plans stay inactive until the first invoice is paid

    Returns:
        {"user": safe user, "token": access token}

    Raises:
        ValidationError: bad email, weak password or unknown plan
        BadRequestError: email already registered
    """
    email = normalize_email(email)
    username = (username or "").strip()

    if not username:
        raise ValidationError("Username is required")
    if not validate_email(email):
        raise ValidationError("Invalid email address")
    problems = password_problems(password)
    if problems:
        raise ValidationError("Password too weak", details=problems)
    if plan not in {p.value for p in PlanType}:
        raise ValidationError("Invalid plan", details={"allowed": [p.value for p in PlanType]})

    users = get_users_collection()
    if await users.find_one({"email": email}, {"_id": 1}):
        raise BadRequestError("User already exists", code="USER_EXISTS")

    document = UserDocument(
        username=username,
        email=email,
        password=hash_password(password),
        is_coach=plan == PlanType.COACH.value,
    )
    document.plan_info.plan_type = plan
    user = document.model_dump()

    try:
        result = await users.insert_one(user)
    except DuplicateKeyError:
        raise BadRequestError("User already exists", code="USER_EXISTS")

    user["_id"] = result.inserted_id
    user_id = str(result.inserted_id)

    logger.info("New user created", extra={"user_id": user_id, "plan": plan})
    return {"user": public_user(user), "token": create_access_token(user_id, email)}


async def authenticate(email: str, password: str) -> Dict[str, Any]:
    """
    Verifies credentials and issues a token.

    Raises:
        ResourceNotFoundError: unknown email
        AuthenticationError: wrong password (failed attempt is counted)
    """
    users = get_users_collection()
    user = await get_user_by_email(email)
    if not user:
        raise ResourceNotFoundError("User not found")

    user_id = str(user["_id"])
    with LogContext(user_id=user_id):
        if not verify_password(password, user.get("password", "")):
            await users.update_one(
                {"_id": user["_id"]},
                {"$inc": {"stats.failed_login_attempts": 1}}
            )
            logger.warning("Failed login attempt")
            raise AuthenticationError("Invalid password")

        await users.update_one(
            {"_id": user["_id"]},
            {"$set": {"stats.failed_login_attempts": 0}}
        )
        logger.info("User logged in")

    return {
        "token": create_access_token(user_id, user["email"]),
        "user_id": user_id,
    }


async def record_dashboard_visit(
    user: Dict[str, Any],
    ip: Optional[str],
    device: Optional[str]
) -> Dict[str, Any]:
    """
    Stamps last_login, bumps login_count and remembers new IPs/devices.

    Returns:
        Updated user document
    """
    update: Dict[str, Any] = {
        "$set": {"stats.last_login": utc_now()},
        "$inc": {"stats.login_count": 1},
    }
    add_to_set = {}
    if ip:
        add_to_set["stats.ip_history"] = ip
    if device:
        add_to_set["stats.device_history"] = device
    if add_to_set:
        update["$addToSet"] = add_to_set

    updated = await get_users_collection().find_one_and_update(
        {"_id": user["_id"]},
        update,
        return_document=ReturnDocument.AFTER
    )
    return updated or user


async def record_token_usage(user_id: str, tokens: int) -> None:
    """
    Adds AI token usage to today's bucket (application timezone).

    One entry per local day: today's entry is incremented, otherwise a new
    entry is appended. The append only matches while no entry for the day
    exists, so a concurrent caller that loses the race increments instead.
    """
    oid = to_object_id(user_id)
    if oid is None or not tokens:
        return

    users = get_users_collection()
    now = utc_now()
    day = local_day_key(now)
    increment = {
        "$inc": {"stats.token_usage.$.value": int(tokens)},
        "$set": {"stats.token_usage.$.date": now},
    }

    result = await users.update_one({"_id": oid, "stats.token_usage.day": day}, increment)
    if result.matched_count == 0:
        result = await users.update_one(
            {"_id": oid, "stats.token_usage.day": {"$ne": day}},
            {"$push": {"stats.token_usage": {"value": int(tokens), "date": now, "day": day}}}
        )
        if result.matched_count == 0:
            await users.update_one({"_id": oid, "stats.token_usage.day": day}, increment)

    logger.debug("Recorded token usage", extra={"user_id": user_id, "tokens": tokens})


async def list_users(limit: int = ADMIN_USERS_LIMIT) -> List[Dict[str, Any]]:
    """Admin listing without credentials, newest first."""
    cursor = get_users_collection().find(
        {},
        {"password": 0}
    ).sort("created_at", DESCENDING).limit(limit)
    return [public_user(u) for u in await cursor.to_list(length=limit)]
