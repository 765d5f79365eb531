"""
treinai/schemas/community.py

Purpose: Request bodies for professionals, chats, support and admin
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class JoinRequest(BaseModel):
    message: str = ""
    force: bool = False


class ChatMemberIn(BaseModel):
    user_id: str
    username: Optional[str] = None


class ResolveChatRequest(BaseModel):
    chat_id: Optional[str] = None
    member_ids: List[str] = Field(default_factory=list)
    members: List[ChatMemberIn] = Field(default_factory=list)
    other_user_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class SendMessageRequest(BaseModel):
    content: str
    chat_id: Optional[str] = None
    other_user_id: Optional[str] = None


class AddMemberRequest(BaseModel):
    user_id: str
    username: Optional[str] = None


class SeenRequest(BaseModel):
    message_ids: List[str]


class SupportRequest(BaseModel):
    subject: str
    description: str


class AnswerRequest(BaseModel):
    answer: str


class VisibilityRequest(BaseModel):
    private: Any = Field(..., description="true/false, as a boolean or string")


class StatusRequest(BaseModel):
    status: str
