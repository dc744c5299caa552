#!/usr/bin/env python3
"""
Saved content sessions: CRUD plus the repair utility
Every endpoint requires an authenticated user and only touches that user's sessions
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from auth import require_user_id
from content_generation import sessions
from generation import Question

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

PERMISSION_DENIED = "You do not have permission to access this content"


class ContentSessionCreate(BaseModel):
    title: Optional[str] = None
    contentType: str
    idea: str
    questions: List[Question] = []
    transcript: Optional[str] = None
    research: Optional[str] = None
    generatedContent: Optional[str] = None
    contentSource: Optional[Literal['Anthropic', 'OpenAI']] = None


class ContentSessionUpdate(BaseModel):
    title: Optional[str] = None
    contentType: Optional[str] = None
    idea: Optional[str] = None
    questions: Optional[List[Question]] = None
    transcript: Optional[str] = None
    research: Optional[str] = None
    generatedContent: Optional[str] = None
    contentSource: Optional[Literal['Anthropic', 'OpenAI']] = None


def _check_owner(session_id: str, user_id: str, allow_unowned: bool = False):
    """404 for an unknown session, 403 for one owned by somebody else."""
    owner = sessions.get_session_owner(session_id)
    if owner is None:
        raise HTTPException(status_code=404, detail="Content session not found")
    if owner == "" and allow_unowned:
        return
    if owner != user_id:
        raise HTTPException(status_code=403, detail=PERMISSION_DENIED)


# --- Endpoints ---

@router.get("")
@router.get("/", include_in_schema=False)
def list_content_sessions(request: Request, retry: bool = False):
    """
    The user's sessions, newest first. Pass retry=true right after a save to
    wait out an empty result.
    """
    try:
        user_id = require_user_id(request)
        return {"sessions": sessions.list_content_sessions(user_id, retry_on_empty=retry)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
async def create_content_session(body: ContentSessionCreate, request: Request):
    try:
        user_id = require_user_id(request)
        return sessions.save_content_session(user_id, body.model_dump())
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/repair")
async def repair_all_content_sessions(request: Request):
    """Repair every session of the current user."""
    try:
        user_id = require_user_id(request)
        return {"repaired": sessions.repair_all_user_sessions(user_id)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{session_id}")
async def get_content_session(session_id: str, request: Request):
    try:
        user_id = require_user_id(request)
        _check_owner(session_id, user_id)

        session = sessions.get_content_session(session_id, user_id)
        if not session:
            raise HTTPException(status_code=404, detail="Content session not found")
        return session
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{session_id}")
async def update_content_session(session_id: str, body: ContentSessionUpdate, request: Request):
    try:
        user_id = require_user_id(request)
        _check_owner(session_id, user_id)

        updates: Dict[str, Any] = body.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")

        if not sessions.update_content_session(session_id, user_id, updates):
            raise HTTPException(status_code=404, detail="Content session not found")
        return sessions.get_content_session(session_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{session_id}", status_code=204)
async def delete_content_session(session_id: str, request: Request):
    try:
        user_id = require_user_id(request)
        _check_owner(session_id, user_id)

        if not sessions.delete_content_session(session_id, user_id):
            raise HTTPException(status_code=404, detail="Content session not found")
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{session_id}/repair")
async def repair_content_session(session_id: str, request: Request):
    """Fill in missing fields of one session. A session without an owner is adopted by the caller."""
    try:
        user_id = require_user_id(request)
        _check_owner(session_id, user_id, allow_unowned=True)

        if not sessions.repair_content_session(session_id, user_id):
            raise HTTPException(status_code=500, detail="Failed to repair content session")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
