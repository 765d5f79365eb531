"""
utils/constants.py

Purpose: Centralized static values

- Plans, specialties, statuses and other enumerations
- Goal keywords used to map onboarding summaries
- Upload MIME allow-lists

(Prevents hardcoding across the codebase)
"""

from enum import Enum


# ============================================================
# PLANS
# ============================================================

class PlanType(str, Enum):
    FREE = "free"
    PRO = "pro"
    MAX = "max"
    COACH = "coach"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


PAID_PLANS = (PlanType.PRO.value, PlanType.MAX.value, PlanType.COACH.value)

# Plans allowed to use the nutrition assistant on their own
NUTRITION_PLANS = (PlanType.MAX.value, PlanType.COACH.value)


# ============================================================
# USERS
# ============================================================

class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


THEMES = ("light", "dark")
GENDERS = ("masculino", "feminino", "outro")
EXPERIENCE_LEVELS = ("iniciante", "intermediario", "avancado")
DEFAULT_GOAL = "saude"

# Fields never returned to clients
SENSITIVE_USER_FIELDS = ("password",)

# Fields a professional may see about a student
STUDENT_VIEW_FIELDS = (
    "username", "email", "avatar", "profile", "workouts",
    "history", "nutrition", "preferences", "created_at",
)

# Ordered: first match wins
GOAL_KEYWORDS = (
    ("hipertrofia", r"massa|hipertrof|muscle|hypertroph"),
    ("emagrecimento", r"perda de peso|perder peso|emagrec|defini[cç][aã]o|weight loss|lose weight"),
    ("condicionamento", r"condicion|cardio|cardiovascul|resist(en|ência)|conditioning"),
    ("saude", r"\bsaú|saud|health"),
    ("forca", r"forç|forca|strength"),
    ("resistencia", r"resist|resistência|endurance"),
)


# ============================================================
# PROFESSIONALS
# ============================================================

class Specialty(str, Enum):
    PERSONAL_TRAINER = "personal-trainer"
    PHYSIOTHERAPIST = "physiotherapist"
    NUTRITIONIST = "nutritionist"


SPECIALTIES = tuple(s.value for s in Specialty)


# ============================================================
# ADS / LOCALS
# ============================================================

class AdType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ListingStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


LOCAL_TYPES = ("physio-clinic", "gym", "nutrition-office", "store", "other")

LOCAL_SORTS = {
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
    "name": [("name", 1)],
}


# ============================================================
# BILLING
# ============================================================

class CheckoutFlow(str, Enum):
    PLAN = "plan"
    IMPRESSIONS = "impressions"
    PUBLISH_LOCAL = "publish_local"


APP_METADATA_TAG = "treinai"
CURRENCY = "brl"


# ============================================================
# UPLOADS
# ============================================================

IMAGE_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
)

VIDEO_MIME_TYPES = (
    "video/mp4",
    "video/webm",
    "video/quicktime",
)

UPLOADS_ROUTE = "/uploads"


# ============================================================
# PAGINATION
# ============================================================

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_LOCAL_PAGE_SIZE = 200
ADMIN_USERS_LIMIT = 1000
