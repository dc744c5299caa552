#!/usr/bin/env python3
"""
Transcript ingestion endpoints backed by Supadata
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from content_generation import transcripts
from content_generation.errors import ProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/supadata", tags=["transcripts"])


class TranscriptRequest(BaseModel):
    url: Optional[str] = None


class TranscriptResponse(BaseModel):
    content: str


def _require_url(request: TranscriptRequest) -> str:
    if not request.url or not request.url.strip():
        raise HTTPException(status_code=400, detail="URL is required")
    return request.url.strip()


@router.post("/youtube", response_model=TranscriptResponse)
def youtube_transcript(request: TranscriptRequest):
    """A video without captions still answers 200 with an explanatory message."""
    url = _require_url(request)
    try:
        return {"content": transcripts.fetch_youtube_transcript(url)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[supadata] Error fetching YouTube transcript: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/web", response_model=TranscriptResponse)
def web_content(request: TranscriptRequest):
    url = _require_url(request)
    try:
        return {"content": transcripts.scrape_web_page(url)}
    except ProviderError as e:
        raise HTTPException(status_code=e.status_code or 500, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[supadata] Error scraping web content: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/transcript", response_model=TranscriptResponse)
def any_transcript(request: TranscriptRequest):
    """Video links get their transcript, any other link its page content."""
    url = _require_url(request)
    try:
        return {"content": transcripts.fetch_transcript(url)}
    except ProviderError as e:
        raise HTTPException(status_code=e.status_code or 500, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("[supadata] Error fetching content for %s: %s", url, e)
        raise HTTPException(status_code=500, detail=str(e))
