#!/usr/bin/env python3
"""
Content workflow endpoints
The browser addresses its in-progress run with an opaque client id; the steps run server-side.
Missing upstream state answers 409 with a redirect to the first step (see app.py).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from auth import get_user_id, require_user_id
from content_generation.errors import StaleRequest, WorkflowStateMissing
from content_generation.workflow import ContentWorkflow
from generation import Question

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflow", tags=["workflow"])

# One sequencer per process; transient state is lost on restart
content_workflow = ContentWorkflow()


class StartRequest(BaseModel):
    contentType: str = ""
    idea: str = ""
    transcript: Optional[str] = None


class AnswersRequest(BaseModel):
    questions: List[Question] = Field(default_factory=list)


class RegenerateRequest(BaseModel):
    feedback: str


@router.get("/{client_id}")
async def get_workflow_state(client_id: str):
    """Current step and transient state of the client's run."""
    return content_workflow.snapshot(client_id)


@router.post("/{client_id}/start")
async def start_workflow(client_id: str, body: StartRequest):
    try:
        return content_workflow.start(client_id, body.contentType, body.idea, body.transcript or "")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{client_id}/questions")
async def load_questions(client_id: str):
    try:
        return {"questions": await content_workflow.load_questions(client_id)}
    except (HTTPException, WorkflowStateMissing, StaleRequest):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{client_id}/answers")
async def submit_answers(client_id: str, body: AnswersRequest):
    """Store the answers and start fetching research in the background."""
    if not body.questions:
        raise HTTPException(status_code=400, detail="At least one question is required")
    return content_workflow.submit_answers(client_id, [q.model_dump() for q in body.questions])


@router.get("/{client_id}/research")
async def load_research(client_id: str):
    try:
        return {"research": await content_workflow.load_research(client_id)}
    except (HTTPException, WorkflowStateMissing, StaleRequest):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{client_id}/content")
async def generate_content(client_id: str, request: Request):
    """Final content. Saved to the caller's account when they are signed in."""
    try:
        return await content_workflow.generate_content(client_id, get_user_id(request))
    except (HTTPException, WorkflowStateMissing, StaleRequest):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{client_id}/regenerate")
async def regenerate_content(client_id: str, body: RegenerateRequest, request: Request):
    if not body.feedback.strip():
        raise HTTPException(status_code=400, detail="Please enter your feedback")
    try:
        return await content_workflow.regenerate(client_id, body.feedback, get_user_id(request))
    except (HTTPException, WorkflowStateMissing, StaleRequest):
        raise
    except Exception as e:
        logger.error("[workflow] Regeneration failed for %s: %s", client_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to regenerate content: {e}")


@router.post("/{client_id}/save")
async def save_content(client_id: str, request: Request):
    try:
        user_id = require_user_id(request)
        return await content_workflow.save(client_id, user_id)
    except (HTTPException, WorkflowStateMissing, StaleRequest):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{client_id}", status_code=204)
async def start_over(client_id: str):
    content_workflow.start_over(client_id)
    return Response(status_code=204)
