"""
treinai/core/rate_limit.py

Purpose: Per-client request throttling

- Shared slowapi Limiter keyed by client address
- Route limits come from settings (auth, AI, uploads)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from treinai.core.config import settings


def client_key(request: Request) -> str:
    """Client identifier, honoring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT] if settings.RATE_LIMIT_ENABLED else [],
    enabled=settings.RATE_LIMIT_ENABLED,
)
