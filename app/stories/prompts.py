"""
Story prompt builder.

The prompt asks for a Hungarian bedtime story and lists the setting /
conflict pairs of the child's recent stories so the model does not repeat
them.

Usage:
    from stories.prompts import build_story_prompt

    prompt = build_story_prompt(
        child_age=6,
        mood="nyugodt",
        length="short",
        theme="erdő",
        avoid_pairs=[("tenger", "vihar")],
    )
"""

from __future__ import annotations

import random
from typing import Sequence

THEMES = [
    "csillagok",
    "erdő",
    "tenger",
    "űrutazás",
    "sárkánybarát",
    "állatkerti kaland",
    "varázskönyv",
    "szivárvány",
    "téli mese",
    "nyári tábor",
    "réti piknik",
    "őserdei felfedezés",
    "hópihe",
    "kisvasút",
    "légballon",
    "titkos kert",
    "mókusbarát",
    "tópart",
    "hegyi ösvény",
    "mesevonat",
    "csiga-postás",
    "felhősziget",
    "holdfény",
    "vulkán",
    "tündérfalu",
    "kincses térkép",
    "szélmalom",
    "kincskeresés",
    "bálnadala",
    "sivatagi oázis",
    "vihar után",
    "őszi lomb",
    "tavaszi rügyek",
    "kavicsgyűjtés",
    "kandalló melege",
    "vitorlázás",
    "gombák titka",
    "barlangi fények",
    "mesebeli híd",
    "űrbéli kert",
]

SURPRISE_THEME = "meglepetes"

LENGTH_LABELS = {"short": "rövid", "medium": "közepes", "long": "hosszú"}
WORD_RANGES = {"short": "400–520 words", "medium": "650–800 words", "long": "950–1100 words"}


def resolve_theme(theme: str, rng: random.Random | None = None) -> str:
    """Replace the "surprise me" theme with a random one."""
    if theme == SURPRISE_THEME:
        return (rng or random).choice(THEMES)
    return theme


def build_story_prompt(
    *,
    child_age: int,
    mood: str,
    length: str,
    theme: str,
    lesson: str | None = None,
    avoid_pairs: Sequence[tuple[str, str]] = (),
) -> str:
    if avoid_pairs:
        avoid_list = "\n".join(f"- {setting} / {conflict}" for setting, conflict in avoid_pairs)
    else:
        avoid_list = "None"

    return f"""
You are a senior children's story writer.
Write a UNIQUE Hungarian bedtime story.

OUTPUT LANGUAGE: Hungarian.
Style: warm, comforting, modern, short paragraphs.
Target age: {child_age} years.
Theme: {theme}.
Mood: {mood}.
Length: {LENGTH_LABELS.get(length, "hosszú")} ({WORD_RANGES.get(length, WORD_RANGES["long"])}).
Lesson (optional): {lesson or "none"}.

AVOID (do not reuse these setting/conflict pairs):
{avoid_list}

LANGUAGE RULES (STRICT):
- Use simple, natural Hungarian.
- Avoid abstract or literary expressions.
- Avoid unusual verb forms or rare words.
- Avoid future-reflective phrases like "majd később megismerte".
- Do NOT invent new locations or objects in the last paragraph.
- The final sentence must stay consistent with the setting.
- Never introduce modern or urban elements (shops, photos, devices).
- Prefer concrete, child-friendly words.

ENDING CONSTRAINT:
- The ending must repeat at least one concrete element already mentioned (e.g. park, mushrooms, trees).
- The ending must be calm, grounded, and not introduce anything new.
- The ending must feel like bedtime, not reflection.

Hard rules:
- Do not give the child a title/role name (no "király", "hős", "varázsló" titles).
- Avoid scary, aggressive, or threatening elements.
- Avoid classic fairy-tale clichés (e.g. evil witch, dark curse, wicked stepmother, magic wand shortcuts).
- Do not reuse any AVOID pair (even paraphrased).
- End calmly and safely with a bedtime-friendly closing.
- Use 6-10 short paragraphs.

Return only the story text.
""".strip()


META_PROMPT = """
Extract JSON with:
title (max 6 words),
summary (1 sentence),
setting (1-4 words),
conflict (1-6 words),
tone (nyugodt|vidam|kalandos).

Story:
{text}
""".strip()


def build_meta_prompt(text: str) -> str:
    return META_PROMPT.format(text=text)
