#!/usr/bin/env python3
"""
Research endpoint
Served under /api/perplexity for the existing frontend; backed by OpenAI
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from content_generation import stages
from generation import Question

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/perplexity", tags=["research"])


class ResearchRequest(BaseModel):
    idea: str = ""
    contentType: str = ""
    questions: List[Question] = Field(default_factory=list)
    transcript: Optional[str] = None


class ResearchResponse(BaseModel):
    research: str


@router.post("/research", response_model=ResearchResponse)
def generate_research(request: ResearchRequest):
    """Research document. Provider failures yield a synthesized fallback; a missing key is a 500."""
    try:
        research = stages.generate_research(
            request.idea,
            request.contentType,
            [q.model_dump() for q in request.questions],
            request.transcript,
        )
        return {"research": research}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[research] Error generating research: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
