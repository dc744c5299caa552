"""
Transcript ingestion via the Supadata API.

YouTube URLs go to the transcript endpoint, everything else to the web
scraper. Results are flattened into plain text with a few metadata headers
so they can be pasted straight into a prompt.
"""

import logging
import os
import re
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from content_generation.errors import ConfigurationError, ProviderError

load_dotenv()

logger = logging.getLogger(__name__)

VIDEO_HOSTS = ("youtube.com", "youtu.be")

YOUTUBE_ID_PATTERN = re.compile(
    r"^.*(?:(?:youtu\.be/|v/|vi/|u/\w/|embed/|shorts/)|(?:(?:watch)?\?v(?:i)?=|&v(?:i)?=))([^#&?]*).*"
)

NO_TRANSCRIPT_MESSAGE = """No transcript available for this YouTube video.

Possible reasons:
- The video doesn't have captions enabled
- The creator hasn't added captions
- YouTube auto-generated captions aren't available
- The video is too new and captions haven't been processed yet

Try a different video from an official channel (like news, education, etc.) that is more likely to have captions."""


def _api_key() -> str:
    api_key = os.getenv("SUPADATA_API_KEY")
    if not api_key:
        raise ConfigurationError("Supadata API key is not configured")
    return api_key


def _base_url() -> str:
    return os.getenv("SUPADATA_BASE_URL", "https://api.supadata.ai/v1").rstrip("/")


def _supadata_get(path: str, params: Dict[str, str], api_key: str) -> httpx.Response:
    return httpx.get(
        f"{_base_url()}{path}",
        params=params,
        headers={"x-api-key": api_key},
        timeout=60.0,
    )


def is_video_url(url: str) -> bool:
    lowered = (url or "").lower()
    return any(host in lowered for host in VIDEO_HOSTS)


def extract_youtube_id(url: str) -> Optional[str]:
    match = YOUTUBE_ID_PATTERN.match(url or "")
    if match and match.group(1):
        return match.group(1)
    return None


def format_youtube_transcript(url: str, video_id: Optional[str], data: Dict[str, Any]) -> str:
    lines = [f"YouTube Video: {url}"]
    if video_id:
        lines.append(f"Video ID: {video_id}")
    if data.get("lang"):
        lines.append(f"Transcript Language: {data['lang']}")
    if data.get("availableLangs"):
        lines.append(f"Available Languages: {', '.join(data['availableLangs'])}")

    formatted = "\n".join(lines) + "\n\nTRANSCRIPT:\n\n"
    formatted += data.get("content") or "No transcript content available."
    return formatted


def format_web_content(url: str, data: Dict[str, Any]) -> str:
    formatted = ""
    if data.get("name"):
        formatted += f"Title: {data['name']}\nSource: {url}\n\n"
    if data.get("content"):
        formatted += f"CONTENT:\n\n{data['content']}"
    else:
        formatted += "No content available from this website."
    return formatted


def fetch_youtube_transcript(url: str) -> str:
    """
    Transcript text for a YouTube URL.

    Tries the URL, then the extracted video id, then the URL with an explicit
    English language. When every attempt fails the explanatory
    NO_TRANSCRIPT_MESSAGE is returned as content instead of an error.
    """
    api_key = _api_key()
    video_id = extract_youtube_id(url)

    attempts = [("url", {"url": url, "text": "true"})]
    if video_id:
        attempts.append(("video id", {"videoId": video_id, "text": "true"}))
    attempts.append(("lang=en", {"url": url, "text": "true", "lang": "en"}))

    for label, params in attempts:
        try:
            response = _supadata_get("/youtube/transcript", params, api_key)
        except httpx.HTTPError as e:
            logger.warning("[supadata] Transcript request by %s failed: %s", label, e)
            continue
        if response.is_success:
            return format_youtube_transcript(url, video_id, response.json())
        logger.warning("[supadata] Transcript request by %s returned %s: %s", label, response.status_code, response.text)

    return NO_TRANSCRIPT_MESSAGE


def scrape_web_page(url: str) -> str:
    """Scraped page text with title/source headers. Raises ProviderError with the upstream status."""
    api_key = _api_key()
    try:
        response = _supadata_get("/web/scrape", {"url": url}, api_key)
    except httpx.HTTPError as e:
        raise ProviderError(f"Failed to fetch website content: {e}") from e

    if not response.is_success:
        logger.error("[supadata] Web scrape returned %s: %s", response.status_code, response.text)
        raise ProviderError(
            f"Failed to fetch website content: {response.reason_phrase}",
            status_code=response.status_code,
        )
    return format_web_content(url, response.json())


def fetch_transcript(url: str) -> str:
    """Route a URL to the video transcript or web scrape provider."""
    if is_video_url(url):
        return fetch_youtube_transcript(url)
    return scrape_web_page(url)
