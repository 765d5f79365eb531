"""
treinai/core/security.py

Purpose: Credentials and access tokens

- bcrypt password hashing via passlib
- JWT access token issue/verify via PyJWT
"""

from datetime import datetime, timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from treinai.core.config import settings
from treinai.core.exceptions import InvalidTokenError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Compare a plain password against its stored hash; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def create_access_token(user_id: str, email: str) -> str:
    """
    Issues a signed access token.

    Args:
        user_id: Subject of the token (users._id as string)
        email: Account email, kept as a claim for clients

    Returns:
        Encoded JWT
    """
    now = datetime.utcnow()
    claims = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verifies and decodes an access token.

    Raises:
        InvalidTokenError: expired, tampered or missing subject
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("Token expired")
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token", details=str(e))

    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload
