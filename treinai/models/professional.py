"""
treinai/models/professional.py

Purpose: Professional (coach) document model

- Public profile: name, bio, specialty, location, image
- Embedded student entries (requests and accepted students)
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.time_utils import utc_now


class StudentEntry(BaseModel):
    """
    A student request or an accepted student.
    `accepted` flips to True when the professional accepts.
    """
    user_id: str
    accepted: bool = False
    message: str = ""
    requested_at: datetime = Field(default_factory=utc_now)
    last_update: datetime = Field(default_factory=utc_now)
    force_request: bool = False
    previous_professional: Optional[str] = None
    accepted_at: Optional[datetime] = None


class ProfessionalDocument(BaseModel):
    professional_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    name: str
    bio: str
    specialty: str
    image_url: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    students: List[Dict[str, Any]] = Field(default_factory=list)
    reports: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_document(self) -> Dict[str, Any]:
        """Storage dict; an absent location is left out so the 2dsphere index ignores it."""
        data = self.model_dump()
        if data.get("location") is None:
            data.pop("location")
        return data
