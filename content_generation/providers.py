"""
LLM provider adapters.

Anthropic is the primary text-generation provider, OpenAI the secondary one.
Both are reached through their official SDKs; API keys are read per call so a
missing key fails the request that needs it, not the process.
"""

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import anthropic
import openai
from dotenv import load_dotenv

from content_generation.errors import ConfigurationError, ProviderError

load_dotenv()

logger = logging.getLogger(__name__)

ANTHROPIC_SOURCE = "Anthropic"
OPENAI_SOURCE = "OpenAI"

CHAT_PROVIDERS = ("anthropic", "openai")


def get_model_name(provider: str) -> str:
    """Get the model name for each provider"""
    if provider == "anthropic":
        return os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    elif provider == "openai":
        return os.getenv("OPENAI_MODEL", "gpt-4o")
    return "unknown"


def require_api_key(env_name: str, label: str) -> str:
    """Return the configured key or raise ConfigurationError naming the provider."""
    value = os.getenv(env_name)
    if not value:
        raise ConfigurationError(f"{label} API key is not configured")
    return value


def _usage(input_tokens: int, output_tokens: int) -> Dict[str, int]:
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }


def anthropic_complete(
    system_prompt: str,
    messages: List[Dict[str, str]],
    max_tokens: int = 4000,
    temperature: Optional[float] = None,
) -> Tuple[str, Dict[str, int]]:
    """Single Anthropic Messages call. Returns (text, usage)."""
    api_key = require_api_key("ANTHROPIC_API_KEY", "Anthropic")
    client = anthropic.Anthropic(api_key=api_key)

    params: Dict[str, Any] = {
        "model": get_model_name("anthropic"),
        "max_tokens": max_tokens,
        "system": system_prompt,
        "messages": messages,
    }
    if temperature is not None:
        params["temperature"] = temperature

    try:
        response = client.messages.create(**params)
    except anthropic.APIStatusError as e:
        raise ProviderError(f"Anthropic API error: {e.message}", status_code=e.status_code) from e
    except anthropic.APIError as e:
        raise ProviderError(f"Anthropic API error: {e}") from e

    if not response.content:
        raise ProviderError("No content in Anthropic response")
    first = response.content[0]
    if getattr(first, "type", None) != "text":
        raise ProviderError("Unexpected content type in Anthropic response")

    usage = _usage(0, 0)
    if response.usage:
        usage = _usage(response.usage.input_tokens, response.usage.output_tokens)
    return first.text, usage


def openai_complete(
    system_prompt: str,
    messages: List[Dict[str, str]],
    max_tokens: int = 4000,
    temperature: float = 0.7,
) -> Tuple[str, Dict[str, int]]:
    """Single OpenAI chat completion. The system prompt is sent as the first message."""
    api_key = require_api_key("OPENAI_API_KEY", "OpenAI")
    client = openai.OpenAI(api_key=api_key)

    try:
        response = client.chat.completions.create(
            model=get_model_name("openai"),
            messages=[{"role": "system", "content": system_prompt}] + messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except openai.APIStatusError as e:
        raise ProviderError(f"OpenAI API error: {e.message}", status_code=e.status_code) from e
    except openai.APIError as e:
        raise ProviderError(f"OpenAI API error: {e}") from e

    if not response.choices or not response.choices[0].message.content:
        raise ProviderError("OpenAI did not generate any content")

    usage = _usage(0, 0)
    if response.usage:
        usage = _usage(response.usage.prompt_tokens, response.usage.completion_tokens)
    return response.choices[0].message.content, usage


def generate_with_fallback(system_prompt: str, user_prompt: str, max_tokens: int = 4000) -> Dict[str, str]:
    """
    Generate with Anthropic, falling back to OpenAI on any failure.

    Returns {"content", "source"}. Raises ProviderError (or ConfigurationError
    when the fallback key is missing) once both providers have failed.
    """
    messages = [{"role": "user", "content": user_prompt}]
    try:
        content, _ = anthropic_complete(system_prompt, messages, max_tokens=max_tokens)
        return {"content": content, "source": ANTHROPIC_SOURCE}
    except Exception as e:
        logger.warning("[generate] Anthropic failed, falling back to OpenAI: %s", e)

    try:
        content, _ = openai_complete(system_prompt, messages, max_tokens=max_tokens, temperature=0.7)
    except ConfigurationError:
        raise ConfigurationError("OpenAI API key is not configured for fallback") from None
    return {"content": content, "source": OPENAI_SOURCE}


def chat(provider: str, system_prompt: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
    """
    Chat provider switch. The caller picks the provider explicitly; there is
    no fallback between chat providers.
    """
    if provider == "anthropic":
        content, usage = anthropic_complete(system_prompt, messages, max_tokens=4096)
        source = ANTHROPIC_SOURCE
    elif provider == "openai":
        content, usage = openai_complete(system_prompt, messages, max_tokens=4096, temperature=0.7)
        source = OPENAI_SOURCE
    else:
        raise ValueError(f"Unsupported provider: {provider}")

    return {
        "content": content,
        "source": source,
        "usage": {"provider": provider, "model": get_model_name(provider), **usage},
    }
