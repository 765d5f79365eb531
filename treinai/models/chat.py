"""
treinai/models/chat.py

Purpose: Chat document model

- Direct chats keyed by a sorted pair id
- Group chats by name
- Embedded members and messages (with read receipts)
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from utils.time_utils import utc_now


def pair_id_for(user_a: str, user_b: str) -> str:
    """Order-independent key for the direct chat between two users."""
    return ":".join(sorted([str(user_a), str(user_b)]))


class ChatMember(BaseModel):
    user_id: str
    username: str = ""
    joined_at: datetime = Field(default_factory=utc_now)


class ChatMessage(BaseModel):
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    content: str
    seen_by: List[str] = Field(default_factory=list)
    published_at: datetime = Field(default_factory=utc_now)

    def model_post_init(self, __context: Any) -> None:
        # The author has always seen their own message
        if self.user_id not in self.seen_by:
            self.seen_by.insert(0, self.user_id)


class ChatDocument(BaseModel):
    chat_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    pair_id: Optional[str] = None
    members: List[ChatMember] = Field(default_factory=list)
    messages: List[ChatMessage] = Field(default_factory=list)
    reports: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_document(self) -> Dict[str, Any]:
        data = self.model_dump()
        # Partial unique index only covers string pair ids
        if data.get("pair_id") is None:
            data.pop("pair_id")
        return data


def member_ids(chat: Dict[str, Any]) -> List[str]:
    return [m.get("user_id") for m in chat.get("members", [])]


def unique_ids(ids: Iterable[str]) -> List[str]:
    seen = []
    for value in ids:
        value = str(value)
        if value and value not in seen:
            seen.append(value)
    return seen
