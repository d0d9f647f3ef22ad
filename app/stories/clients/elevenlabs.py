"""
ElevenLabs text-to-speech client.

Configuration (via settings):
- ELEVENLABS_API_KEY: API key (xi-api-key header)
- ELEVENLABS_API_TIMEOUT_SECONDS: API call timeout (default: 120)
"""

from __future__ import annotations

import logging
import time

import requests
from django.conf import settings

from stories.exceptions import GenerationError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.elevenlabs.io/v1"


class ElevenLabsClient:
    """Minimal ElevenLabs REST client, one call per narration."""

    def __init__(self, api_key: str | None = None, timeout: int | None = None):
        self.api_key = api_key if api_key is not None else settings.ELEVENLABS_API_KEY
        self.timeout = timeout or getattr(settings, "ELEVENLABS_API_TIMEOUT_SECONDS", 120)

    def convert(self, voice_id: str, text: str, model_id: str, output_format: str) -> bytes:
        if not self.api_key:
            raise GenerationError("ELEVENLABS_API_KEY is not configured", error_code="NOT_CONFIGURED")

        start_time = time.time()
        try:
            response = requests.post(
                f"{API_BASE_URL}/text-to-speech/{voice_id}",
                params={"output_format": output_format},
                json={"text": text, "model_id": model_id},
                headers={"xi-api-key": self.api_key, "Accept": "audio/mpeg"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise GenerationError(f"Failed to communicate with ElevenLabs: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        if not response.ok:
            logger.error(
                "elevenlabs.api_error",
                extra={
                    "voice_id": voice_id,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            raise GenerationError(
                f"ElevenLabs API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
                details={"status_code": response.status_code, "body": response.text[:500]},
            )
        if not response.content:
            raise GenerationError("ElevenLabs returned an empty audio body")

        logger.info(
            "elevenlabs.converted",
            extra={"voice_id": voice_id, "bytes": len(response.content), "duration_ms": duration_ms},
        )
        return response.content
