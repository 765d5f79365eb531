"""
treinai/services/ad_service.py

Purpose: Advertisements

- Creation with a per-user cap
- Location-aware serving with progressive fallback
- Impression/click tracking against the owner's prepaid balance
- Admin status changes and deletion
"""

from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument

from treinai.core.config import settings
from treinai.core.exceptions import (
    BadRequestError,
    ConflictError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from treinai.core.logging import get_logger
from treinai.db.mongo import get_advertisements_collection, get_users_collection
from treinai.db.serialize import serialize, to_object_id
from treinai.models.listing import AdvertisementDocument
from treinai.services.upload_service import delete_upload
from utils.constants import AdType, IMAGE_MIME_TYPES, ListingStatus, Role, VIDEO_MIME_TYPES
from utils.validation_utils import exact_ci, validate_url

logger = get_logger(__name__)

SERVE_LIMIT = 50


def public_ad(ad: Dict[str, Any]) -> Dict[str, Any]:
    return serialize({k: v for k, v in ad.items() if k != "reports"})


async def count_user_ads(user_id: str) -> int:
    return await get_advertisements_collection().count_documents({"user_id": user_id})


async def ensure_can_create(user: Dict[str, Any]) -> None:
    """Raises ConflictError when the user already has the maximum number of ads."""
    if await count_user_ads(str(user["_id"])) >= settings.MAX_ADS_PER_USER:
        raise ConflictError(
            f"You can have at most {settings.MAX_ADS_PER_USER} ads",
            code="AD_LIMIT"
        )


async def create_ad(user: Dict[str, Any], data: Dict[str, Any], media_url: str) -> Dict[str, Any]:
    """
    Stores a new ad. The media file has already been validated and saved.
    """
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")
    link = (data.get("link") or "").strip() or None
    if link and not validate_url(link):
        raise ValidationError("link must be a valid http(s) URL")

    ad = AdvertisementDocument(
        user_id=str(user["_id"]),
        title=title,
        description=(data.get("description") or "").strip(),
        link=link,
        ad_type=data["ad_type"],
        media_url=media_url,
        country=data.get("country"),
        state=data.get("state"),
        city=data.get("city"),
    ).model_dump()
    await get_advertisements_collection().insert_one(ad)

    logger.info("Ad created", extra={"user_id": str(user["_id"]), "ad_id": ad["ad_id"]})
    return public_ad(ad)


async def _owners_with_balance(user_ids: List[str]) -> set:
    oids = [oid for oid in (to_object_id(uid) for uid in user_ids) if oid is not None]
    if not oids:
        return set()
    cursor = get_users_collection().find(
        {"_id": {"$in": oids}, "impression_balance": {"$gt": 0}},
        {"_id": 1}
    )
    return {str(u["_id"]) for u in await cursor.to_list(length=None)}


async def _servable(query: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
    cursor = (
        get_advertisements_collection()
        .find({**query, "status": ListingStatus.ACTIVE.value}, {"reports": 0})
        .sort("created_at", DESCENDING)
    )
    ads = await cursor.to_list(length=None)
    funded = await _owners_with_balance(list({ad["user_id"] for ad in ads}))
    return [ad for ad in ads if ad["user_id"] in funded][:limit]


async def list_ads(
    user_id: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    limit: int = SERVE_LIMIT,
) -> Dict[str, Any]:
    """
    Ads for display.

    With `user_id`, every ad of that user (any status). Otherwise active
    ads whose owner still has impression balance, narrowed by location with
    fallback: country+state+city, then country+state, then country, then
    everywhere.

    Returns:
        {"items", "scope"}
    """
    if user_id:
        cursor = get_advertisements_collection().find({"user_id": user_id}).sort("created_at", DESCENDING)
        return {"items": [public_ad(ad) for ad in await cursor.to_list(length=None)], "scope": "user"}

    limit = max(1, min(limit or SERVE_LIMIT, SERVE_LIMIT))

    levels = []
    if country and state and city:
        levels.append(("city", {"country": exact_ci(country), "state": exact_ci(state), "city": exact_ci(city)}))
    if country and state:
        levels.append(("state", {"country": exact_ci(country), "state": exact_ci(state)}))
    if country:
        levels.append(("country", {"country": exact_ci(country)}))
    levels.append(("all", {}))

    for scope, query in levels:
        ads = await _servable(query, limit)
        if ads:
            return {"items": [public_ad(ad) for ad in ads], "scope": scope}

    return {"items": [], "scope": "all"}


async def require_ad(ad_id: str) -> Dict[str, Any]:
    ad = await get_advertisements_collection().find_one({"ad_id": ad_id})
    if not ad:
        raise ResourceNotFoundError("Ad not found", details={"ad_id": ad_id})
    return ad


async def record_impression(ad_id: str) -> Dict[str, Any]:
    """
    Counts one impression and spends one unit of the owner's balance.

    The balance never goes below zero; ads of unfunded owners are not counted.
    """
    ad = await require_ad(ad_id)
    owner_oid = to_object_id(ad["user_id"])

    spent = await get_users_collection().update_one(
        {"_id": owner_oid, "impression_balance": {"$gt": 0}},
        {"$inc": {"impression_balance": -1}}
    )
    if spent.modified_count == 0:
        return {"counted": False}

    await get_advertisements_collection().update_one(
        {"ad_id": ad_id},
        {"$inc": {"stats.impressions": 1}}
    )
    return {"counted": True}


async def record_click(ad_id: str) -> Dict[str, Any]:
    updated = await get_advertisements_collection().find_one_and_update(
        {"ad_id": ad_id},
        {"$inc": {"stats.clicks": 1}},
        return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise ResourceNotFoundError("Ad not found", details={"ad_id": ad_id})
    return {"link": updated.get("link"), "clicks": updated["stats"]["clicks"]}


async def list_all_ads() -> List[Dict[str, Any]]:
    cursor = get_advertisements_collection().find({}).sort("created_at", DESCENDING)
    return serialize(await cursor.to_list(length=None))


async def set_status(ad_id: str, status: str) -> Dict[str, Any]:
    """
    Admin status change.

    Raises:
        ValidationError: unknown status
        BadRequestError: the ad already has this status
    """
    if status not in {s.value for s in ListingStatus}:
        raise ValidationError("Invalid status", details={"allowed": [s.value for s in ListingStatus]})

    ad = await require_ad(ad_id)
    if ad.get("status") == status:
        raise BadRequestError(f"Ad is already {status}", code="UNCHANGED")

    updated = await get_advertisements_collection().find_one_and_update(
        {"ad_id": ad_id},
        {"$set": {"status": status}},
        return_document=ReturnDocument.AFTER
    )
    logger.info("Ad status changed", extra={"ad_id": ad_id, "status": status})
    return public_ad(updated)


async def delete_ad(caller: Dict[str, Any], ad_id: str) -> bool:
    """Owner or admin deletes an ad and its media file."""
    ad = await require_ad(ad_id)
    if ad["user_id"] != str(caller["_id"]) and caller.get("role") != Role.ADMIN.value:
        raise PermissionDeniedError("Only the owner or an admin can delete this ad")

    await get_advertisements_collection().delete_one({"ad_id": ad_id})
    delete_upload(ad.get("media_url"))

    logger.info("Ad deleted", extra={"ad_id": ad_id, "user_id": str(caller["_id"])})
    return True


def media_rules(ad_type: str):
    """
    (allowed MIME types, max bytes) for an ad type.
    """
    if ad_type == AdType.IMAGE.value:
        return IMAGE_MIME_TYPES, settings.MAX_AD_IMAGE_BYTES
    if ad_type == AdType.VIDEO.value:
        return VIDEO_MIME_TYPES, settings.MAX_AD_VIDEO_BYTES
    raise ValidationError("Invalid ad type", details={"allowed": [t.value for t in AdType]})
