"""
treinai/services/chat_service.py

Purpose: Direct and group chats

- Lists a user's chats with last-message summaries
- Resolves (gets or creates) chats by id, exact member set, user pair or name
- Sends / deletes messages, read receipts
- Membership management (empty chats are deleted)
"""

from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from treinai.core.exceptions import (
    BadRequestError,
    ConflictError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from treinai.core.logging import get_logger, LogContext
from treinai.db.mongo import get_chats_collection
from treinai.db.serialize import serialize
from treinai.models.chat import ChatDocument, ChatMember, ChatMessage, member_ids, pair_id_for, unique_ids
from treinai.services.user_service import get_user_by_id, require_user
from utils.time_utils import utc_now

logger = get_logger(__name__)


def chat_summary(chat: Dict[str, Any]) -> Dict[str, Any]:
    """Chat without its full message list."""
    messages = chat.get("messages") or []
    return serialize({
        "chat_id": chat.get("chat_id"),
        "name": chat.get("name"),
        "description": chat.get("description", ""),
        "pair_id": chat.get("pair_id"),
        "members": chat.get("members", []),
        "member_ids": member_ids(chat),
        "last_message": messages[-1] if messages else None,
        "messages_count": len(messages),
        "created_at": chat.get("created_at"),
        "updated_at": chat.get("updated_at"),
    })


def public_chat(chat: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize({k: v for k, v in chat.items() if k != "reports"})
    data["member_ids"] = member_ids(chat)
    return data


def _require_member(chat: Dict[str, Any], user_id: str) -> None:
    if user_id not in member_ids(chat):
        raise PermissionDeniedError("You are not a member of this chat", code="NOT_A_MEMBER")


async def require_chat(chat_id: str) -> Dict[str, Any]:
    chat = await get_chats_collection().find_one({"chat_id": chat_id})
    if not chat:
        raise ResourceNotFoundError("Chat not found", details={"chat_id": chat_id})
    return chat


async def list_chats(user_id: str) -> List[Dict[str, Any]]:
    cursor = get_chats_collection().find({"members.user_id": user_id}).sort("created_at", DESCENDING)
    return [chat_summary(chat) for chat in await cursor.to_list(length=None)]


async def get_or_create_direct_chat(caller: Dict[str, Any], other_user_id: str) -> Dict[str, Any]:
    """
    The single direct chat between two users, created on first use.

    The sorted pair id is unique, so concurrent creators converge on one chat.
    """
    caller_id = str(caller["_id"])
    if other_user_id == caller_id:
        raise BadRequestError("Cannot open a chat with yourself", code="SELF_CHAT")

    other = await require_user(other_user_id)
    pair_id = pair_id_for(caller_id, other_user_id)

    document = ChatDocument(
        name=f"{caller.get('username')} & {other.get('username')}",
        pair_id=pair_id,
        members=[
            ChatMember(user_id=caller_id, username=caller.get("username", "")),
            ChatMember(user_id=other_user_id, username=other.get("username", "")),
        ],
    ).to_document()
    document.pop("pair_id")

    chats = get_chats_collection()
    try:
        chat = await chats.find_one_and_update(
            {"pair_id": pair_id},
            {"$setOnInsert": document},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        chat = await chats.find_one({"pair_id": pair_id})

    return chat


async def _create_chat(name: str, members: List[ChatMember], description: str = "") -> Dict[str, Any]:
    document = ChatDocument(name=name, description=description, members=members).to_document()
    await get_chats_collection().insert_one(document)
    logger.info("Chat created", extra={"chat_id": document["chat_id"], "members": len(members)})
    return document


async def _members_from_ids(ids: List[str], known: Optional[Dict[str, str]] = None) -> List[ChatMember]:
    """Builds members, falling back to the stored username when none was supplied."""
    known = known or {}
    members = []
    for user_id in ids:
        username = known.get(user_id)
        if not username:
            user = await get_user_by_id(user_id)
            if not user:
                raise ResourceNotFoundError("User not found", details={"user_id": user_id})
            username = user.get("username", "")
        members.append(ChatMember(user_id=user_id, username=username))
    return members


async def resolve_chat(caller: Dict[str, Any], request: Dict[str, Any]) -> Dict[str, Any]:
    """
    Finds or creates a chat.

    Resolution order:
      - chat_id: existing chat (caller must be a member)
      - member_ids: chat whose members are exactly these users; created when
        `members` is supplied and lists the same ids
      - other_user_id: direct chat with that user
      - name: new group chat with the caller plus `members`

    Returns:
        {"chat": ..., "created": bool}
    """
    caller_id = str(caller["_id"])
    chats = get_chats_collection()

    chat_id = request.get("chat_id")
    if chat_id:
        chat = await require_chat(chat_id)
        _require_member(chat, caller_id)
        return {"chat": public_chat(chat), "created": False}

    supplied = request.get("members") or []
    known = {str(m.get("user_id")): m.get("username") for m in supplied if m.get("user_id")}

    wanted = unique_ids(request.get("member_ids") or [])
    if wanted:
        if caller_id not in wanted:
            raise PermissionDeniedError("You must be one of the chat members", code="NOT_A_MEMBER")

        chat = await chats.find_one({
            "members.user_id": {"$all": wanted},
            "members": {"$size": len(wanted)},
        })
        if chat:
            return {"chat": public_chat(chat), "created": False}

        if not supplied:
            raise ResourceNotFoundError("Chat not found for these members")
        if set(known) != set(wanted):
            raise BadRequestError("members do not match member_ids", code="MEMBERS_MISMATCH")

        members = await _members_from_ids(wanted, known)
        name = request.get("name") or " & ".join(m.username for m in members)
        chat = await _create_chat(name, members, request.get("description") or "")
        return {"chat": public_chat(chat), "created": True}

    other_user_id = request.get("other_user_id")
    if other_user_id:
        existing = await chats.find_one({"pair_id": pair_id_for(caller_id, other_user_id)}, {"_id": 1})
        chat = await get_or_create_direct_chat(caller, other_user_id)
        return {"chat": public_chat(chat), "created": existing is None}

    name = (request.get("name") or "").strip()
    if name:
        ids = unique_ids([caller_id] + list(known))
        known.setdefault(caller_id, caller.get("username"))
        members = await _members_from_ids(ids, known)
        chat = await _create_chat(name, members, request.get("description") or "")
        return {"chat": public_chat(chat), "created": True}

    raise BadRequestError(
        "Provide chat_id, member_ids, other_user_id or name",
        code="CHAT_TARGET_REQUIRED"
    )


async def send_message(
    caller: Dict[str, Any],
    content: str,
    chat_id: Optional[str] = None,
    other_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Posts a message to a chat (by id) or to the direct chat with another user.

    Returns:
        {"chat_id", "message"}
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content is required")

    caller_id = str(caller["_id"])
    if not chat_id and not other_user_id:
        raise BadRequestError("Provide chat_id or other_user_id", code="CHAT_TARGET_REQUIRED")

    if not chat_id:
        chat = await get_or_create_direct_chat(caller, other_user_id)
        chat_id = chat["chat_id"]

    message = ChatMessage(user_id=caller_id, content=content).model_dump()

    with LogContext(user_id=caller_id, chat_id=chat_id):
        result = await get_chats_collection().update_one(
            {"chat_id": chat_id, "members.user_id": caller_id},
            {"$push": {"messages": message}, "$set": {"updated_at": utc_now()}}
        )
        if result.matched_count == 0:
            chat = await require_chat(chat_id)
            _require_member(chat, caller_id)

        logger.info("Message sent")

    return {"chat_id": chat_id, "message": serialize(message)}


async def delete_message(caller: Dict[str, Any], chat_id: str, message_id: str) -> bool:
    chat = await require_chat(chat_id)
    message = next((m for m in chat.get("messages", []) if m.get("message_id") == message_id), None)
    if not message:
        raise ResourceNotFoundError("Message not found", details={"message_id": message_id})
    if message.get("user_id") != str(caller["_id"]):
        raise PermissionDeniedError("Only the author can delete this message")

    await get_chats_collection().update_one(
        {"chat_id": chat_id},
        {"$pull": {"messages": {"message_id": message_id}}, "$set": {"updated_at": utc_now()}}
    )
    logger.info("Message deleted", extra={"chat_id": chat_id, "message_id": message_id})
    return True


async def add_member(caller: Dict[str, Any], chat_id: str, user_id: str, username: Optional[str] = None) -> Dict[str, Any]:
    chat = await require_chat(chat_id)
    _require_member(chat, str(caller["_id"]))

    if user_id in member_ids(chat):
        raise ConflictError("User is already a member", code="ALREADY_MEMBER")

    if not username:
        user = await require_user(user_id)
        username = user.get("username", "")

    member = ChatMember(user_id=user_id, username=username).model_dump()
    await get_chats_collection().update_one(
        {"chat_id": chat_id},
        {"$push": {"members": member}, "$set": {"updated_at": utc_now()}}
    )
    logger.info("Chat member added", extra={"chat_id": chat_id, "member": user_id})
    return serialize(member)


async def remove_member(caller: Dict[str, Any], chat_id: str, user_id: str) -> Dict[str, Any]:
    """
    Removes a member; the chat is deleted once nobody is left.

    Returns:
        {"removed": True, "chat_deleted": bool}
    """
    chat = await require_chat(chat_id)
    _require_member(chat, str(caller["_id"]))

    if user_id not in member_ids(chat):
        raise ResourceNotFoundError("User is not a member of this chat")

    chats = get_chats_collection()
    updated = await chats.find_one_and_update(
        {"chat_id": chat_id},
        {"$pull": {"members": {"user_id": user_id}}, "$set": {"updated_at": utc_now()}},
        return_document=ReturnDocument.AFTER
    )

    deleted = False
    if updated is not None and not updated.get("members"):
        await chats.delete_one({"chat_id": chat_id})
        deleted = True

    logger.info("Chat member removed", extra={"chat_id": chat_id, "member": user_id, "chat_deleted": deleted})
    return {"removed": True, "chat_deleted": deleted}


async def mark_seen(caller: Dict[str, Any], chat_id: str, message_ids: List[str]) -> Dict[str, Any]:
    """Adds the caller to `seen_by` of the given messages."""
    ids = unique_ids(message_ids or [])
    if not ids:
        raise ValidationError("message_ids must be a non-empty list")

    caller_id = str(caller["_id"])
    chat = await require_chat(chat_id)
    _require_member(chat, caller_id)

    result = await get_chats_collection().update_one(
        {"chat_id": chat_id},
        {"$addToSet": {"messages.$[m].seen_by": caller_id}},
        array_filters=[{"m.message_id": {"$in": ids}}]
    )
    return {"updated": result.modified_count > 0}
