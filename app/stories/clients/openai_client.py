"""
OpenAI text generation client.

Implements the TextGenerator contract with the Chat Completions API.

Configuration:
    OPENAI_API_KEY: required
    OPENAI_MODEL: model name (default gpt-5-mini)

Usage:
    from stories.clients import OpenAITextGenerator

    generator = OpenAITextGenerator()
    result = generator.generate(prompt)
    meta = generator.extract_meta(result.text)
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import openai
from django.conf import settings

from stories.exceptions import GenerationError
from stories.models import Mood
from stories.prompts import build_meta_prompt

from .base import GenerationResult, MetaResult, StoryMeta, Usage

logger = logging.getLogger(__name__)

STORY_SYSTEM_PROMPT = "You generate bedtime stories."
META_SYSTEM_PROMPT = "Extract structured metadata in Hungarian."
META_FIELDS = ("title", "summary", "setting", "conflict", "tone")

QUOTA_MESSAGE = "OpenAI kvóta elfogyott. Kérlek próbáld később."
INVALID_KEY_MESSAGE = "OpenAI API kulcs érvénytelen vagy hiányzik."
UNKNOWN_MESSAGE = "Ismeretlen hiba történt a mesegenerálás során."


def map_generation_error(exc: BaseException) -> str:
    """
    Message stored on a story that failed for good.

    Quota and key problems get a fixed Hungarian message; anything else
    keeps its own message.
    """
    status_code = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    if status_code == 429 or code == "insufficient_quota":
        return QUOTA_MESSAGE
    if status_code == 401:
        return INVALID_KEY_MESSAGE
    message = getattr(exc, "message", None) or str(exc)
    return message or UNKNOWN_MESSAGE


def _usage(response: Any) -> Usage:
    usage = getattr(response, "usage", None)
    if usage is None:
        return Usage()
    return Usage(
        total_tokens=usage.total_tokens or 0,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
    )


def parse_meta(raw: str) -> StoryMeta:
    """
    Validate the meta-extraction response.

    Raises:
        GenerationError: Not JSON, a field is missing, or the tone is not
            one of the moods
    """
    try:
        parsed = json.loads(raw or "{}")
    except ValueError as e:
        raise GenerationError(f"Failed to parse story metadata: {e}") from e
    if not isinstance(parsed, dict):
        raise GenerationError("Failed to parse story metadata: not an object")

    missing = [name for name in META_FIELDS if not parsed.get(name)]
    if missing:
        raise GenerationError(
            "Story metadata missing required fields",
            details={"missing": missing},
        )
    if parsed["tone"] not in Mood.values:
        raise GenerationError(f"Invalid tone: {parsed['tone']}")

    return StoryMeta(**{name: str(parsed[name]).strip() for name in META_FIELDS})


class OpenAITextGenerator:
    """
    TextGenerator backed by OpenAI chat completions.

    SDK errors (openai.APIError and subclasses) propagate unchanged so the
    worker can retry them and map_generation_error() can read their status.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self._client = client

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise GenerationError("OPENAI_API_KEY is missing", error_code="NOT_CONFIGURED")
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def _complete(self, operation: str, messages: list[dict], **kwargs: Any):
        start = time.monotonic()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **kwargs,
            )
        except openai.APIError:
            logger.error(
                "openai.failed",
                extra={
                    "operation": operation,
                    "model": self.model,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
                exc_info=True,
            )
            raise

        usage = _usage(response)
        logger.info(
            "openai.completed",
            extra={
                "operation": operation,
                "model": self.model,
                "duration_ms": int((time.monotonic() - start) * 1000),
                "total_tokens": usage.total_tokens,
            },
        )
        return response, usage

    @staticmethod
    def _content(response: Any) -> str:
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def generate(self, prompt: str) -> GenerationResult:
        response, usage = self._complete(
            "story.generate_text",
            [
                {"role": "system", "content": STORY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        text = self._content(response)
        if not text:
            raise GenerationError("Story generation failed")
        return GenerationResult(
            text=text,
            model=getattr(response, "model", None) or self.model,
            usage=usage,
            request_id=response.id or "",
            response_id=response.id or "",
        )

    def extract_meta(self, text: str) -> MetaResult:
        response, usage = self._complete(
            "story.extract_meta",
            [
                {"role": "system", "content": META_SYSTEM_PROMPT},
                {"role": "user", "content": build_meta_prompt(text)},
            ],
            response_format={"type": "json_object"},
        )
        return MetaResult(
            meta=parse_meta(self._content(response)),
            model=getattr(response, "model", None) or self.model,
            usage=usage,
            request_id=response.id or "",
            response_id=response.id or "",
        )
