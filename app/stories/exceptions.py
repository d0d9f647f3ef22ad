"""
Story-specific exceptions.

Exception Hierarchy:
    StoriesError (base)
    ├── ChildNotFound - Unknown child, or another user's (404)
    ├── StoryNotFound - Unknown story, or another user's (404)
    ├── StoryNotReady - Operation needs a ready story with text (400)
    └── GenerationError - Text, speech or storage call failed (502)

InsufficientBalance from payments.ledger is raised unchanged when a story
or narration cannot be paid for.
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ExternalServiceError


class StoriesError(BaseApplicationError):
    default_error_code: str = "STORIES_ERROR"


class ChildNotFound(StoriesError):
    default_error_code: str = "CHILD_NOT_FOUND"
    http_status = 404


class StoryNotFound(StoriesError):
    default_error_code: str = "STORY_NOT_FOUND"
    http_status = 404


class StoryNotReady(StoriesError):
    default_error_code: str = "STORY_NOT_READY"


class GenerationError(StoriesError, ExternalServiceError):
    """
    Raised by the generation clients when a provider call fails or returns
    something unusable.

    Attributes:
        status_code: HTTP status of the provider response, when there was one
    """

    default_error_code: str = "GENERATION_FAILED"
    http_status = 502

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)
