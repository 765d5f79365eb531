"""
utils/validation_utils.py

Purpose: Input validation

- Email and password rules
- Regex escaping for user-supplied search terms
- Loose boolean / coordinate parsing for form fields
"""

import re
from typing import Any, Dict, Optional


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """
    Checks an email address has a plausible user@domain.tld shape.
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def password_problems(password: str) -> list:
    """
    Lists the password rules a candidate password breaks.

    Rules: at least 8 characters, one lowercase, one uppercase, one digit.

    Args:
        password: Candidate password

    Returns:
        List of human-readable problems (empty when the password is acceptable)
    """
    problems = []
    password = password or ""

    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain an uppercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain a digit")

    return problems


def validate_url(url: str) -> bool:
    if not url:
        return False
    return bool(URL_PATTERN.match(url.strip()))


def escape_regex(text: str) -> str:
    """Escapes user text so it can be embedded in a Mongo $regex."""
    return re.escape(text or "")


def exact_ci(value: str) -> Dict[str, str]:
    """
    Mongo filter matching ``value`` exactly, case-insensitively.
    """
    return {"$regex": f"^{escape_regex(value.strip())}$", "$options": "i"}


def contains_ci(value: str) -> Dict[str, str]:
    return {"$regex": escape_regex(value.strip()), "$options": "i"}


def parse_bool(value: Any) -> Optional[bool]:
    """
    Parses booleans sent as JSON booleans or form strings.

    Returns:
        True/False, or None when the value is not recognizably boolean
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    return None


def parse_point(lat: Any, lng: Any) -> Optional[Dict[str, Any]]:
    """
    Builds a GeoJSON Point from latitude/longitude form values.

    Returns None when either value is missing, non-numeric or out of range.
    GeoJSON coordinate order is [longitude, latitude].
    """
    if lat in (None, "") or lng in (None, ""):
        return None
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return None

    if not (-90 <= lat_f <= 90 and -180 <= lng_f <= 180):
        return None

    return {"type": "Point", "coordinates": [lng_f, lat_f]}
