"""
treinai/db/serialize.py

Purpose: Document -> JSON-safe dict

- ObjectId values become strings, `_id` becomes `id`
- Sensitive user fields are dropped
"""

from typing import Any, Iterable, Optional

from bson import ObjectId

from utils.constants import SENSITIVE_USER_FIELDS


def serialize(value: Any) -> Any:
    """Recursively converts Mongo values into JSON-friendly ones."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key == "_id":
                out["id"] = serialize(item)
            else:
                out[key] = serialize(item)
        return out
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def public_user(user: Optional[dict], fields: Optional[Iterable[str]] = None) -> Optional[dict]:
    """
    User document safe to return to clients.

    Args:
        user: Raw users document
        fields: Optional whitelist; when given only these fields (plus id) are kept
    """
    if user is None:
        return None
    data = {k: v for k, v in user.items() if k not in SENSITIVE_USER_FIELDS}
    if fields is not None:
        allowed = set(fields) | {"_id"}
        data = {k: v for k, v in data.items() if k in allowed}
    return serialize(data)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId from a string id; None when the string is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None
