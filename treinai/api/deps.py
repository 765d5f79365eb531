"""
treinai/api/deps.py

Purpose: Shared route dependencies

- Bearer-token authentication resolving the current user
- Admin guard
- Service providers (LLM, payment gateway) overridable in tests
"""

from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from treinai.core.exceptions import AuthenticationError, PermissionDeniedError, ResourceNotFoundError, ValidationError
from treinai.core.security import decode_access_token
from treinai.services.ai_service import AIService, get_ai_service
from treinai.services.payment_gateway import PaymentGateway, get_payment_gateway
from treinai.services.user_service import get_user_by_id
from utils.constants import Role
from utils.validation_utils import parse_point

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    Resolves the bearer token to a user document.

    Missing token -> 401, invalid/expired -> 403, deleted user -> 404.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication token required")

    payload = decode_access_token(credentials.credentials)
    user = await get_user_by_id(payload["sub"])
    if not user:
        raise ResourceNotFoundError("User not found")
    return user


async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != Role.ADMIN.value:
        raise PermissionDeniedError("Admin access required")
    return user


def get_ai() -> AIService:
    return get_ai_service()


def get_gateway() -> PaymentGateway:
    return get_payment_gateway()


def form_location(lat: Optional[str], lng: Optional[str]) -> Optional[Dict[str, Any]]:
    """GeoJSON point from optional lat/lng form fields; half or invalid pairs are rejected."""
    if lat in (None, "") and lng in (None, ""):
        return None
    point = parse_point(lat, lng)
    if point is None:
        raise ValidationError("lat and lng must be valid coordinates")
    return point
