#!/usr/bin/env python3
"""
Question and content generation endpoints
Questions come from Anthropic; content from Anthropic with an OpenAI fallback
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from content_generation import stages
from content_generation.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/anthropic", tags=["generation"])


class Question(BaseModel):
    id: str
    text: str
    answer: str = ""


class QuestionsRequest(BaseModel):
    idea: str = ""
    contentType: str = ""
    transcript: Optional[str] = None


class QuestionsResponse(BaseModel):
    questions: List[Question]


class GenerateRequest(BaseModel):
    idea: str = ""
    contentType: str = ""
    questions: List[Question] = Field(default_factory=list)
    research: str = ""
    transcript: Optional[str] = None
    feedback: Optional[str] = None  # Present when regenerating


class GenerateResponse(BaseModel):
    content: str
    source: str


def provider_http_error(e: ProviderError) -> HTTPException:
    """Upstream status when the provider reported one, otherwise 500."""
    return HTTPException(status_code=e.status_code or 500, detail=str(e))


@router.post("/questions", response_model=QuestionsResponse)
def generate_questions(request: QuestionsRequest):
    """3-5 follow-up questions for the idea. Unparseable output yields the fixed fallback set."""
    try:
        questions = stages.generate_questions(request.idea, request.contentType, request.transcript)
        return {"questions": questions}
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ProviderError as e:
        logger.error("[questions] Provider error: %s", e)
        raise provider_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[questions] Error generating questions: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/generate", response_model=GenerateResponse)
def generate_content(request: GenerateRequest):
    try:
        return stages.generate_content(
            request.idea,
            request.contentType,
            [q.model_dump() for q in request.questions],
            request.research,
            request.transcript,
            request.feedback,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[generate] Both providers failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
