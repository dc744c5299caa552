#!/usr/bin/env python3
"""
Saved chat conversations
Conversations are saved once, from the chat page, and can afterwards only be read or deleted
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from auth import require_user_id
from content_generation import conversations

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class Message(BaseModel):
    role: Literal['user', 'assistant']
    content: str
    timestamp: Optional[int] = None  # epoch ms; stamped on save when missing


class ConversationCreate(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    title: Optional[str] = None


def _check_owner(conversation_id: str, user_id: str):
    owner = conversations.get_conversation_owner(conversation_id)
    if owner is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if owner != user_id:
        raise HTTPException(status_code=403, detail="You do not have permission to access this conversation")


@router.get("")
@router.get("/", include_in_schema=False)
async def list_conversations(request: Request):
    try:
        user_id = require_user_id(request)
        return {"conversations": conversations.list_conversations(user_id)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
async def save_conversation(body: ConversationCreate, request: Request):
    try:
        user_id = require_user_id(request)
        if not body.messages:
            raise HTTPException(status_code=400, detail="Cannot save an empty conversation")

        saved = conversations.save_conversation(
            user_id,
            [m.model_dump() for m in body.messages],
            body.title,
        )
        if not saved:
            raise HTTPException(status_code=500, detail="Failed to save conversation")
        return saved
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, request: Request):
    try:
        user_id = require_user_id(request)
        _check_owner(conversation_id, user_id)

        conversation = conversations.get_conversation(conversation_id, user_id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(conversation_id: str, request: Request):
    try:
        user_id = require_user_id(request)
        _check_owner(conversation_id, user_id)

        if not conversations.delete_conversation(conversation_id, user_id):
            raise HTTPException(status_code=404, detail="Conversation not found")
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
