#!/usr/bin/env python3
"""
Chat API endpoint for conversational AI interactions
The provider is chosen by the URL (/api/anthropic/chat, /api/openai/chat); there is no fallback between them
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from auth import get_user_id
from content_generation import providers
from content_generation.errors import ConfigurationError, ProviderError
from content_generation.prompts import CHAT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class ConversationMessage(BaseModel):
    """A message in the conversation history"""
    role: Literal['user', 'assistant']
    content: str


class ChatRequest(BaseModel):
    """Chat request model"""
    messages: List[ConversationMessage] = Field(default_factory=list)
    systemPrompt: Optional[str] = None


class ChatResponse(BaseModel):
    """Chat response model"""
    content: str
    source: str
    usage: Optional[Dict[str, Any]] = None


@router.post("/{provider}/chat", response_model=ChatResponse)
def chat(provider: str, chat_request: ChatRequest, request: Request):
    """
    Send the conversation so far to the chosen provider and return its reply.
    """
    if provider not in providers.CHAT_PROVIDERS:
        raise HTTPException(status_code=404, detail=f"Unsupported provider: {provider}")
    if not chat_request.messages:
        raise HTTPException(status_code=400, detail="At least one message is required")
    if chat_request.messages[-1].role != 'user':
        raise HTTPException(status_code=400, detail="The last message must come from the user")

    try:
        result = providers.chat(
            provider,
            chat_request.systemPrompt or CHAT_SYSTEM_PROMPT,
            [m.model_dump() for m in chat_request.messages],
        )
        usage = result["usage"]
        logger.info(
            "[chat] %s (%s) user=%s input_tokens=%s output_tokens=%s",
            usage["provider"], usage["model"], get_user_id(request) or "anonymous",
            usage.get("input_tokens"), usage.get("output_tokens"),
        )
        return result
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ProviderError as e:
        logger.error("[chat] %s error: %s", provider, e)
        raise HTTPException(status_code=e.status_code or 500, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[chat] Error in chat endpoint: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
