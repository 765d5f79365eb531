"""
treinai/api/chats.py

Purpose: Chat routes
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from treinai.api.deps import get_current_user
from treinai.schemas.community import AddMemberRequest, ResolveChatRequest, SeenRequest, SendMessageRequest
from treinai.schemas.response import MessageResponse
from treinai.services import chat_service

router = APIRouter(prefix="/chats")


@router.get("")
async def list_chats(user: Dict[str, Any] = Depends(get_current_user)):
    return {"chats": await chat_service.list_chats(str(user["_id"]))}


@router.post("/resolve")
async def resolve_chat(body: ResolveChatRequest, user: Dict[str, Any] = Depends(get_current_user)):
    """Returns 201 when a chat had to be created, 200 otherwise."""
    result = await chat_service.resolve_chat(user, body.model_dump())
    status_code = status.HTTP_201_CREATED if result["created"] else status.HTTP_200_OK
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return await chat_service.send_message(user, body.content, body.chat_id, body.other_user_id)


@router.delete("/{chat_id}/messages/{message_id}", response_model=MessageResponse)
async def delete_message(chat_id: str, message_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    await chat_service.delete_message(user, chat_id, message_id)
    return MessageResponse(msg="Message deleted")


@router.post("/{chat_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(chat_id: str, body: AddMemberRequest, user: Dict[str, Any] = Depends(get_current_user)):
    member = await chat_service.add_member(user, chat_id, body.user_id, body.username)
    return {"member": member}


@router.delete("/{chat_id}/members/{user_id}")
async def remove_member(chat_id: str, user_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return await chat_service.remove_member(user, chat_id, user_id)


@router.post("/{chat_id}/seen")
async def mark_seen(chat_id: str, body: SeenRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return await chat_service.mark_seen(user, chat_id, body.message_ids)
