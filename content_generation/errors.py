"""
Error taxonomy shared by the content generation stages and the routers.
"""

from typing import Optional


class ContentGenerationError(Exception):
    """Base class for errors raised by the content generation package."""


class ConfigurationError(ContentGenerationError):
    """A required setting (usually an API key) is missing."""


class ProviderError(ContentGenerationError):
    """An upstream provider failed: network error, non-2xx or malformed payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WorkflowStateMissing(ContentGenerationError):
    """A workflow step was entered without the state its upstream steps produce."""

    redirect = "/"

    def __init__(self, step: str, missing: str):
        super().__init__(f"Cannot enter '{step}': '{missing}' is not set. Start again from step 1.")
        self.step = step
        self.missing = missing


class StaleRequest(ContentGenerationError):
    """A stage result arrived after a newer request (or a start over) superseded it."""
