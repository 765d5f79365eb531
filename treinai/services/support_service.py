"""
treinai/services/support_service.py

Purpose: Support tickets

- Users open tickets (private by default)
- Public FAQ-style listing of tickets made public
- Admin listing, answering and visibility toggling
"""

import math
from typing import Any, Dict, Optional

from pymongo import DESCENDING, ReturnDocument

from treinai.core.exceptions import BadRequestError, ResourceNotFoundError, ValidationError
from treinai.core.logging import get_logger
from treinai.db.mongo import get_supports_collection
from treinai.db.serialize import serialize
from treinai.models.listing import SupportDocument
from utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from utils.time_utils import utc_now
from utils.validation_utils import contains_ci, parse_bool

logger = get_logger(__name__)

ANSWER_FILTERS = ("all", "answered", "unanswered")


async def create_ticket(user: Dict[str, Any], subject: str, description: str) -> Dict[str, Any]:
    subject = (subject or "").strip()
    description = (description or "").strip()
    if not subject or not description:
        raise ValidationError("Subject and description are required")

    ticket = SupportDocument(
        user_id=str(user["_id"]),
        user_email=user["email"],
        subject=subject,
        description=description,
    ).model_dump()
    await get_supports_collection().insert_one(ticket)

    logger.info("Support ticket opened", extra={"user_id": str(user["_id"]), "support_id": ticket["support_id"]})
    return serialize(ticket)


async def list_public_tickets(search: Optional[str] = None, page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    """
    Public tickets, newest first.

    Returns:
        {"items", "pagination": {"page", "per_page", "total", "total_pages"}}
    """
    page = max(1, page or 1)
    per_page = max(1, min(per_page or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))

    query: Dict[str, Any] = {"private": False}
    if search and search.strip():
        pattern = contains_ci(search)
        query["$or"] = [{"subject": pattern}, {"description": pattern}, {"answer": pattern}]

    collection = get_supports_collection()
    total = await collection.count_documents(query)
    cursor = (
        collection.find(query, {"user_email": 0})
        .sort("created_at", DESCENDING)
        .skip((page - 1) * per_page)
        .limit(per_page)
    )
    items = await cursor.to_list(length=per_page)

    return {
        "items": serialize(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": math.ceil(total / per_page) if total else 0,
        },
    }


async def list_tickets(answer_filter: str = "all", private: Optional[Any] = None) -> Dict[str, Any]:
    """Admin listing filtered by answered state and visibility."""
    if answer_filter not in ANSWER_FILTERS:
        raise ValidationError("Invalid filter", details={"allowed": list(ANSWER_FILTERS)})

    query: Dict[str, Any] = {}
    if answer_filter == "answered":
        query["answer"] = {"$nin": [None, ""]}
    elif answer_filter == "unanswered":
        query["answer"] = {"$in": [None, ""]}

    if private is not None:
        parsed = parse_bool(private)
        if parsed is None:
            raise ValidationError("private must be true or false")
        query["private"] = parsed

    cursor = get_supports_collection().find(query).sort("created_at", DESCENDING)
    items = await cursor.to_list(length=None)
    return {"items": serialize(items), "total": len(items)}


async def answer_ticket(support_id: str, answer: str) -> Dict[str, Any]:
    answer = (answer or "").strip()
    if not answer:
        raise ValidationError("Answer is required")

    updated = await get_supports_collection().find_one_and_update(
        {"support_id": support_id},
        {"$set": {"answer": answer, "answered_at": utc_now()}},
        return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise ResourceNotFoundError("Support ticket not found")

    logger.info("Support ticket answered", extra={"support_id": support_id})
    return serialize(updated)


async def set_visibility(support_id: str, private: Any) -> Dict[str, Any]:
    """
    Makes a ticket public or private. Accepts booleans or "true"/"false".

    Raises:
        BadRequestError: the ticket already has this visibility
    """
    parsed = parse_bool(private)
    if parsed is None:
        raise ValidationError("private must be true or false")

    collection = get_supports_collection()
    ticket = await collection.find_one({"support_id": support_id})
    if not ticket:
        raise ResourceNotFoundError("Support ticket not found")
    if ticket.get("private") == parsed:
        raise BadRequestError("Ticket already has this visibility", code="UNCHANGED")

    updated = await collection.find_one_and_update(
        {"support_id": support_id},
        {"$set": {"private": parsed}},
        return_document=ReturnDocument.AFTER
    )
    logger.info("Support ticket visibility changed", extra={"support_id": support_id, "private": parsed})
    return serialize(updated)
