"""
Story and narration prices.

A story is paid in credits by length. Narration is paid either with one
audio star, whatever the length, or in credits by length.
"""

from __future__ import annotations

from stories.models import StoryLength

STORY_COSTS: dict[str, int] = {
    StoryLength.SHORT: 25,
    StoryLength.MEDIUM: 30,
    StoryLength.LONG: 35,
}

AUDIO_COSTS: dict[str, int] = {
    StoryLength.SHORT: 300,
    StoryLength.MEDIUM: 400,
    StoryLength.LONG: 500,
}

AUDIO_STAR_PRICE = 1


def story_cost(length: str) -> int:
    try:
        return STORY_COSTS[length]
    except KeyError:
        raise ValueError(f"Unknown story length: {length!r}") from None


def audio_cost(length: str) -> int:
    try:
        return AUDIO_COSTS[length]
    except KeyError:
        raise ValueError(f"Unknown story length: {length!r}") from None
