"""
treinai/services/local_service.py

Purpose: Venues (locals) published through a paid subscription

- Directory listing with filters, paging and sorting
- Pending uploads held until the venue subscription is paid
- Activation / deactivation driven by billing events
- Owner edits and deletion
"""

from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from treinai.core.exceptions import ExternalServiceError, PermissionDeniedError, ResourceNotFoundError, ValidationError
from treinai.core.logging import get_logger
from treinai.db.mongo import get_locals_collection, get_pending_uploads_collection
from treinai.db.serialize import serialize
from treinai.models.listing import LocalDocument, new_id
from treinai.services.payment_gateway import PaymentGateway
from treinai.services.upload_service import delete_upload
from utils.constants import DEFAULT_PAGE_SIZE, ListingStatus, LOCAL_SORTS, LOCAL_TYPES, MAX_LOCAL_PAGE_SIZE
from utils.time_utils import utc_now
from utils.validation_utils import contains_ci, exact_ci, validate_url

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "description", "country", "state", "city")


def public_local(local: Dict[str, Any]) -> Dict[str, Any]:
    return serialize({k: v for k, v in local.items() if k != "reports"})


def _clean_listing(data: Dict[str, Any]) -> Dict[str, Any]:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Name is required")

    local_type = data.get("local_type")
    if local_type not in LOCAL_TYPES:
        raise ValidationError("Invalid local type", details={"allowed": list(LOCAL_TYPES)})

    link = (data.get("link") or "").strip() or None
    if link and not validate_url(link):
        raise ValidationError("link must be a valid http(s) URL")

    return {
        "name": name,
        "description": (data.get("description") or "").strip(),
        "local_type": local_type,
        "link": link,
        "country": data.get("country"),
        "state": data.get("state"),
        "city": data.get("city"),
    }


async def list_locals(
    user_id: Optional[str] = None,
    local_type: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort: str = "newest",
) -> Dict[str, Any]:
    """
    Venue directory.

    Without `user_id` only active venues are listed; an owner's listing
    includes inactive ones.

    Returns:
        {"total", "page", "per_page", "items"}
    """
    if sort not in LOCAL_SORTS:
        raise ValidationError("Invalid sort", details={"allowed": list(LOCAL_SORTS)})

    page = max(1, page or 1)
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_LOCAL_PAGE_SIZE))

    query: Dict[str, Any] = {}
    if user_id:
        query["user_id"] = user_id
    else:
        query["status"] = ListingStatus.ACTIVE.value
    if local_type:
        query["local_type"] = local_type
    if country:
        query["country"] = exact_ci(country)
    if state:
        query["state"] = exact_ci(state)
    if city:
        query["city"] = exact_ci(city)
    if q and q.strip():
        pattern = contains_ci(q)
        query["$or"] = [{"name": pattern}, {"description": pattern}]

    collection = get_locals_collection()
    total = await collection.count_documents(query)
    cursor = (
        collection.find(query, {"reports": 0})
        .sort(LOCAL_SORTS[sort])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    items = await cursor.to_list(length=limit)

    return {
        "total": total,
        "page": page,
        "per_page": limit,
        "items": [public_local(item) for item in items],
    }


async def require_local(local_id: str) -> Dict[str, Any]:
    local = await get_locals_collection().find_one({"local_id": local_id})
    if not local:
        raise ResourceNotFoundError("Local not found", details={"local_id": local_id})
    return local


async def require_owned_local(user: Dict[str, Any], local_id: str) -> Dict[str, Any]:
    local = await require_local(local_id)
    if local["user_id"] != str(user["_id"]):
        raise PermissionDeniedError("Only the owner can change this local")
    return local


async def create_pending_local(
    user: Dict[str, Any],
    data: Dict[str, Any],
    image_url: Optional[str] = None,
    location: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Holds a venue until its subscription is paid.

    The listing is created by the first paid invoice of the subscription.
    """
    listing = _clean_listing(data)
    if location is not None:
        listing["location"] = location

    pending = {
        "pending_id": new_id(),
        "user_id": str(user["_id"]),
        "local": listing,
        "image_url": image_url,
        "checkout_session_id": None,
        "subscription_id": None,
        "created_at": utc_now(),
    }
    await get_pending_uploads_collection().insert_one(pending)

    logger.info("Pending local stored", extra={"user_id": pending["user_id"], "pending_id": pending["pending_id"]})
    return pending


async def attach_checkout(pending_id: str, session_id: str) -> None:
    await get_pending_uploads_collection().update_one(
        {"pending_id": pending_id},
        {"$set": {"checkout_session_id": session_id}}
    )


async def attach_subscription(pending_id: str, subscription_id: str) -> bool:
    result = await get_pending_uploads_collection().update_one(
        {"pending_id": pending_id},
        {"$set": {"subscription_id": subscription_id}}
    )
    return result.matched_count > 0


async def is_venue_subscription(subscription_id: Optional[str]) -> bool:
    if not subscription_id:
        return False
    if await get_locals_collection().find_one({"subscription_id": subscription_id}, {"_id": 1}):
        return True
    return bool(await get_pending_uploads_collection().find_one({"subscription_id": subscription_id}, {"_id": 1}))


async def activate_for_subscription(subscription_id: str) -> Optional[Dict[str, Any]]:
    """
    Activates the venue paid by a subscription.

    An existing local is reactivated; otherwise the pending upload becomes
    a new active local. None when the subscription has no venue.
    """
    now = utc_now()
    local = await get_locals_collection().find_one_and_update(
        {"subscription_id": subscription_id},
        {"$set": {"status": ListingStatus.ACTIVE.value, "updated_at": now}},
        return_document=ReturnDocument.AFTER
    )
    if local:
        logger.info("Local reactivated", extra={"local_id": local["local_id"]})
        return local

    pending = await get_pending_uploads_collection().find_one_and_delete({"subscription_id": subscription_id})
    if not pending:
        return None

    local = LocalDocument(
        user_id=pending["user_id"],
        image_url=pending.get("image_url"),
        subscription_id=subscription_id,
        **pending["local"],
    ).to_document()
    await get_locals_collection().insert_one(local)

    logger.info("Local published", extra={"local_id": local["local_id"], "user_id": local["user_id"]})
    return local


async def deactivate_for_subscription(subscription_id: str) -> bool:
    result = await get_locals_collection().update_one(
        {"subscription_id": subscription_id},
        {"$set": {"status": ListingStatus.INACTIVE.value, "updated_at": utc_now()}}
    )
    if result.matched_count:
        logger.info("Local deactivated", extra={"subscription_id": subscription_id})
    return result.matched_count > 0


async def discard_pending(pending_id: Optional[str] = None, session_id: Optional[str] = None) -> bool:
    """Removes an abandoned pending upload and its image."""
    if pending_id:
        query = {"pending_id": pending_id}
    elif session_id:
        query = {"checkout_session_id": session_id}
    else:
        return False

    pending = await get_pending_uploads_collection().find_one_and_delete(query)
    if not pending:
        return False

    delete_upload(pending.get("image_url"))
    logger.info("Pending local discarded", extra={"pending_id": pending["pending_id"]})
    return True


async def update_local(
    user: Dict[str, Any],
    local_id: str,
    changes: Dict[str, Any],
    image_url: Optional[str] = None,
    location: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    local = await require_owned_local(user, local_id)
    updates: Dict[str, Any] = {}

    for field in EDITABLE_FIELDS:
        value = changes.get(field)
        if value is not None:
            value = value.strip()
            if field == "name" and not value:
                raise ValidationError("name cannot be empty")
            updates[field] = value

    local_type = changes.get("local_type")
    if local_type is not None:
        if local_type not in LOCAL_TYPES:
            raise ValidationError("Invalid local type", details={"allowed": list(LOCAL_TYPES)})
        updates["local_type"] = local_type

    link = changes.get("link")
    if link is not None:
        link = link.strip() or None
        if link and not validate_url(link):
            raise ValidationError("link must be a valid http(s) URL")
        updates["link"] = link

    if location is not None:
        updates["location"] = location
    if image_url is not None:
        updates["image_url"] = image_url

    if not updates:
        return public_local(local)

    updates["updated_at"] = utc_now()
    updated = await get_locals_collection().find_one_and_update(
        {"local_id": local_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if image_url is not None and local.get("image_url") != image_url:
        delete_upload(local.get("image_url"))

    logger.info("Local updated", extra={"local_id": local_id, "fields": sorted(updates)})
    return public_local(updated)


async def delete_local(user: Dict[str, Any], local_id: str, gateway: PaymentGateway) -> bool:
    """
    Owner deletes a venue, cancelling its subscription first.

    A cancellation failure aborts the deletion unless the venue is already
    inactive (its subscription may be gone).
    """
    local = await require_owned_local(user, local_id)

    subscription_id = local.get("subscription_id")
    if subscription_id:
        try:
            await gateway.cancel_subscription(subscription_id)
        except ExternalServiceError:
            if local.get("status") == ListingStatus.ACTIVE.value:
                raise
            logger.warning("Subscription cancel failed for inactive local", extra={"local_id": local_id})

    await get_locals_collection().delete_one({"local_id": local_id})
    delete_upload(local.get("image_url"))

    logger.info("Local deleted", extra={"local_id": local_id, "user_id": str(user["_id"])})
    return True
