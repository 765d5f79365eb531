"""
treinai/models/listing.py

Purpose: Support tickets, advertisements and venue (local) documents
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.constants import ListingStatus
from utils.time_utils import utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class ListingStats(BaseModel):
    impressions: int = 0
    clicks: int = 0


class SupportDocument(BaseModel):
    support_id: str = Field(default_factory=new_id)
    user_id: str
    user_email: str
    subject: str
    description: str
    answer: Optional[str] = None
    private: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    answered_at: Optional[datetime] = None


class AdvertisementDocument(BaseModel):
    ad_id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    description: str = ""
    link: Optional[str] = None
    ad_type: str
    media_url: str
    status: str = ListingStatus.ACTIVE.value
    stats: ListingStats = Field(default_factory=ListingStats)
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    reports: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class LocalDocument(BaseModel):
    """A venue listed through a paid subscription."""
    local_id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    description: str = ""
    local_type: str
    link: Optional[str] = None
    image_url: Optional[str] = None
    status: str = ListingStatus.ACTIVE.value
    subscription_id: Optional[str] = None
    stats: ListingStats = Field(default_factory=ListingStats)
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    reviews: List[Dict[str, Any]] = Field(default_factory=list)
    reports: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_document(self) -> Dict[str, Any]:
        data = self.model_dump()
        if data.get("location") is None:
            data.pop("location")
        return data
