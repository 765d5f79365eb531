"""
treinai/models/user.py

Purpose: User document model

- Account credentials and role
- Plan/subscription state
- Preferences, profile measurements, onboarding
- Embedded workouts, history, stats, coach assignments, nutrition plan
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from utils.constants import DEFAULT_GOAL, PlanStatus, PlanType, Role, SPECIALTIES
from utils.time_utils import utc_now


class PlanInfo(BaseModel):
    status: str = PlanStatus.INACTIVE.value
    plan_type: str = PlanType.FREE.value
    expiration_date: Optional[datetime] = None
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None
    last_event_at: Optional[datetime] = None
    last_invoice_id: Optional[str] = None
    next_payment_value: Optional[float] = None
    next_payment_date: Optional[datetime] = None


class Preferences(BaseModel):
    theme: str = "dark"
    language: str = "pt"
    notifications: bool = True
    onboard_completed: bool = False


class Measurement(BaseModel):
    """One dated weight or height reading."""
    id: str
    value: float
    published_at: datetime = Field(default_factory=utc_now)


class Profile(BaseModel):
    goal: str = DEFAULT_GOAL
    weight_history: List[Measurement] = Field(default_factory=list)
    height_history: List[Measurement] = Field(default_factory=list)
    experience_level: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None


class Stats(BaseModel):
    login_count: int = 0
    last_login: Optional[datetime] = None
    ip_history: List[str] = Field(default_factory=list)
    device_history: List[str] = Field(default_factory=list)
    failed_login_attempts: int = 0
    token_usage: List[Dict[str, Any]] = Field(default_factory=list)


class Onboarding(BaseModel):
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    completed: bool = False


class NutritionInfo(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    restrictions: str = ""
    meal_plan: List[Dict[str, str]] = Field(default_factory=list)


def empty_coach_slots() -> Dict[str, Optional[str]]:
    return {specialty: None for specialty in SPECIALTIES}


class UserDocument(BaseModel):
    """
    Shape of a freshly created users document.
    Stored with model_dump(); Mongo assigns `_id`.
    """
    username: str
    email: str
    password: str
    avatar: Optional[str] = None
    role: str = Role.USER.value
    is_coach: bool = False
    impression_balance: int = 0
    plan_info: PlanInfo = Field(default_factory=PlanInfo)
    preferences: Preferences = Field(default_factory=Preferences)
    profile: Profile = Field(default_factory=Profile)
    workouts: List[Dict[str, Any]] = Field(default_factory=list)
    history: List[Dict[str, Any]] = Field(default_factory=list)
    stats: Stats = Field(default_factory=Stats)
    onboarding: Onboarding = Field(default_factory=Onboarding)
    coach_ids: Dict[str, Optional[str]] = Field(default_factory=empty_coach_slots)
    nutrition: NutritionInfo = Field(default_factory=NutritionInfo)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
