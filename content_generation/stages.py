"""
The three AI stages of the content workflow.

- questions: Anthropic only; numbered-list parsing with a fixed fallback set
- research:  OpenAI only; template-filled fallback document on provider failure
- content:   Anthropic with OpenAI fallback (see providers.generate_with_fallback)
"""

import logging
import re
from typing import Any, Dict, List, Optional

from content_generation import prompts, providers
from content_generation.errors import ConfigurationError

logger = logging.getLogger(__name__)

# "<number><separator><text>" at the start of a line, up to the next numbered line or end of string
QUESTION_PATTERN = re.compile(r"^[ \t]*(\d+)[.)\s]+(.+?)(?=\n[ \t]*\d+[.)\s]|\Z)", re.DOTALL | re.MULTILINE)


def parse_questions(text: str) -> List[Dict[str, str]]:
    """Pull numbered questions out of free-form text. Ids are assigned in order: q-1, q-2, ..."""
    questions = []
    for match in QUESTION_PATTERN.finditer(text or ""):
        question_text = match.group(2).strip()
        if not question_text:
            continue
        questions.append({
            "id": f"q-{len(questions) + 1}",
            "text": question_text,
            "answer": "",
        })
    return questions


def generate_questions(idea: str, content_type: str, transcript: Optional[str] = None) -> List[Dict[str, str]]:
    """
    Ask Anthropic for 3-5 follow-up questions.

    Provider errors propagate (the route maps them to an error response); an
    answer that yields no parseable question is replaced by the fallback set.
    """
    system_prompt, user_prompt = prompts.build_questions_prompt(idea, content_type, transcript)
    text, _ = providers.anthropic_complete(
        system_prompt,
        [{"role": "user", "content": user_prompt}],
        max_tokens=1000,
        temperature=0.7,
    )

    questions = parse_questions(text)
    if not questions:
        logger.info("[questions] No numbered questions in provider answer, using fallback set")
        return prompts.fallback_questions(content_type)
    return questions


def generate_research(
    idea: str,
    content_type: str,
    questions: List[Dict[str, Any]],
    transcript: Optional[str] = None,
) -> str:
    """
    Research document for the content type.

    A missing OpenAI key is a configuration error and propagates. Any provider
    failure degrades to a synthesized research document so the workflow can
    continue to content generation.
    """
    providers.require_api_key("OPENAI_API_KEY", "OpenAI")
    system_prompt, user_prompt = prompts.build_research_prompt(idea, content_type, questions, transcript)

    try:
        research, _ = providers.openai_complete(
            system_prompt,
            [{"role": "user", "content": user_prompt}],
            max_tokens=2500,
            temperature=0.3,
        )
        return research
    except ConfigurationError:
        raise
    except Exception as e:
        logger.warning("[research] OpenAI research failed, using fallback document: %s", e)
        return prompts.build_fallback_research(idea, content_type)


def generate_content(
    idea: str,
    content_type: str,
    questions: List[Dict[str, Any]],
    research: str,
    transcript: Optional[str] = None,
    feedback: Optional[str] = None,
) -> Dict[str, str]:
    """Final content, or a regeneration of it when `feedback` is given. Returns {"content", "source"}."""
    system_prompt, user_prompt = prompts.build_generation_prompt(
        idea, content_type, questions, research, transcript=transcript, feedback=feedback
    )
    if feedback:
        logger.info("[generate] Regenerating %s with feedback: %s...", content_type, feedback[:50])
    return providers.generate_with_fallback(system_prompt, user_prompt)
