"""
Contracts for the external services used by the generation pipeline.

Uses Protocol for structural subtyping so tests can pass any object with
the right methods.

Protocols:
    TextGenerator: generate(prompt), extract_meta(text)
    SpeechSynthesizer: convert(voice_id, text, model_id, output_format)
    ObjectStorage: upload_buffer(...), build_public_url(key), presign(key, ttl)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Usage:
    """
    Token usage of one call.

    input_tokens/output_tokens fall back to the chat-completion names so
    callers can read either.
    """

    total_tokens: int = 0
    prompt_tokens: int | None = None
    completion_tokens: int | None = None

    @property
    def input_tokens(self) -> int:
        return self.prompt_tokens or 0

    @property
    def output_tokens(self) -> int:
        return self.completion_tokens or 0


@dataclass(frozen=True)
class StoryMeta:
    title: str
    summary: str
    setting: str
    conflict: str
    tone: str


@dataclass(frozen=True)
class GenerationResult:
    text: str
    model: str
    usage: Usage = field(default_factory=Usage)
    request_id: str = ""
    response_id: str = ""


@dataclass(frozen=True)
class MetaResult:
    meta: StoryMeta
    model: str
    usage: Usage = field(default_factory=Usage)
    request_id: str = ""
    response_id: str = ""


@runtime_checkable
class TextGenerator(Protocol):
    def generate(self, prompt: str) -> GenerationResult:
        """Write the story for a prompt."""
        ...

    def extract_meta(self, text: str) -> MetaResult:
        """Extract title, summary, setting, conflict and tone from a story."""
        ...


@runtime_checkable
class SpeechSynthesizer(Protocol):
    def convert(self, voice_id: str, text: str, model_id: str, output_format: str) -> bytes:
        """Return the encoded audio for text."""
        ...


@runtime_checkable
class ObjectStorage(Protocol):
    def upload_buffer(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None: ...

    def build_public_url(self, key: str) -> str: ...

    def presign(self, key: str, ttl: int = 3600) -> str: ...
