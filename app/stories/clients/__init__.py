"""
External service clients used by the story pipeline.

Public API:
    Contracts:
        TextGenerator, SpeechSynthesizer, ObjectStorage

    Implementations:
        OpenAITextGenerator - Story text and metadata
        ElevenLabsClient - Narration
        S3Storage - Covers, previews and audio files

    Factories:
        get_text_generator(), get_speech_synthesizer(), get_storage()
        Tests patch these to swap in fakes.
"""

from .base import (
    GenerationResult,
    MetaResult,
    ObjectStorage,
    SpeechSynthesizer,
    StoryMeta,
    TextGenerator,
    Usage,
)
from .elevenlabs import ElevenLabsClient
from .openai_client import OpenAITextGenerator, map_generation_error
from .storage import IMMUTABLE_CACHE_CONTROL, S3Storage


def get_text_generator() -> TextGenerator:
    return OpenAITextGenerator()


def get_speech_synthesizer() -> SpeechSynthesizer:
    return ElevenLabsClient()


def get_storage() -> ObjectStorage:
    return S3Storage()


__all__ = [
    "GenerationResult",
    "MetaResult",
    "ObjectStorage",
    "SpeechSynthesizer",
    "StoryMeta",
    "TextGenerator",
    "Usage",
    "ElevenLabsClient",
    "OpenAITextGenerator",
    "S3Storage",
    "IMMUTABLE_CACHE_CONTROL",
    "map_generation_error",
    "get_text_generator",
    "get_speech_synthesizer",
    "get_storage",
]
