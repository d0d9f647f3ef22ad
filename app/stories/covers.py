"""
Cover art rendering.

Two renderers, both returning WebP bytes:
- render_preview: Simple title card saved as the story preview while the
  story pipeline runs
- render_cover: Full cover (1200x630) plus a square version (600x600) with
  a Barni pose on a themed background

Pose and background are picked deterministically from mood, theme and
length so the same story always gets the same art.

Assets (under settings.COVER_ASSETS_DIR):
    barni/{1..5}.png   Poses
    bgs/{name}.png     Backgrounds, see BACKGROUND_NAMES

Missing assets fall back to a gradient background and no pose, so a
fresh checkout still produces covers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from django.conf import settings
from PIL import Image, ImageDraw, ImageFilter, ImageFont

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

COVER_SIZE = (1200, 630)
COVER_SQUARE_SIZE = 600
PREVIEW_SIZE = (1200, 630)

WEBP_QUALITY = 90
WEBP_QUALITY_PREVIEW = 88

TITLE_MAX_LENGTH = 100
PREVIEW_TITLE_MAX_LENGTH = 60

BACKGROUND_NAMES = {
    1: "bg1_default",
    2: "bg2_warm",
    3: "bg3_starry",
    4: "bg4_forrest",
    5: "bg5_dark",
}

# Gradient used when a background asset is missing
BACKGROUND_PALETTE = {
    1: ((43, 16, 85), (61, 26, 115)),
    2: ((122, 52, 38), (201, 111, 60)),
    3: ((10, 14, 48), (44, 30, 94)),
    4: ((17, 58, 40), (54, 110, 66)),
    5: ((8, 8, 20), (30, 24, 52)),
}

THEME_LABELS = {
    "ur": "Űr",
    "varazslat": "Varázslat",
    "termeszet": "Természet",
    "allatok": "Állatok",
    "kaland": "Kaland",
    "baratsag": "Barátság",
    "csalad": "Család",
    "sport": "Sport",
    "muveszet": "Művészet",
    "tudomany": "Tudomány",
}

MOOD_LABELS = {
    "vidam": "Vidám",
    "kalandos": "Kalandos",
    "nyugodt": "Nyugodt",
}

LENGTH_LABELS = {
    "short": "Rövid (2–3p)",
    "medium": "Közepes (4–5p)",
    "long": "Hosszú (6–8p)",
}

WHITE = (255, 255, 255, 255)
CHIP_FILL = (255, 255, 255, 51)
CHIP_OUTLINE = (255, 255, 255, 77)


@dataclass(frozen=True)
class CoverImages:
    cover: bytes
    square: bytes


# =============================================================================
# Deterministic picks and labels
# =============================================================================


def pick_pose(mood: str, length: str) -> int:
    """Barni pose number (1-5) for a mood and length."""
    if mood == "vidam":
        return 3
    if mood == "kalandos":
        return 4
    if mood == "nyugodt" and length == "long":
        return 5
    if mood == "nyugodt":
        return 2
    return 1


def pick_background(theme: str, mood: str, length: str) -> int:
    """Background number (1-5) for a theme, mood and length."""
    if length == "long":
        return 5
    if theme in ("ur", "varazslat"):
        return 3
    if theme == "termeszet":
        return 4
    if mood == "vidam":
        return 2
    return 1


def theme_label(theme: str) -> str:
    return THEME_LABELS.get(theme, theme)


def mood_label(mood: str) -> str:
    return MOOD_LABELS.get(mood, mood)


def length_label(length: str) -> str:
    return LENGTH_LABELS.get(length, length)


def truncate(value: str, max_length: int, ellipsis: str = "...") -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - len(ellipsis)] + ellipsis


def wrap_title(title: str) -> tuple[str, str]:
    """Split a title into two lines at the middle word; the second may be empty."""
    truncated = truncate(title, TITLE_MAX_LENGTH)
    words = truncated.split(" ")
    if len(words) <= 1:
        return truncated, ""
    mid = (len(words) + 1) // 2
    return " ".join(words[:mid]), " ".join(words[mid:])


# =============================================================================
# Drawing helpers
# =============================================================================


def _assets_dir(assets_dir: Path | str | None) -> Path:
    return Path(assets_dir) if assets_dir is not None else Path(settings.COVER_ASSETS_DIR)


def _font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _gradient(size: tuple[int, int], top: tuple, bottom: tuple) -> Image.Image:
    mask = Image.linear_gradient("L").resize(size)
    return Image.composite(
        Image.new("RGBA", size, (*bottom, 255)),
        Image.new("RGBA", size, (*top, 255)),
        mask,
    )


def _load_background(number: int, size: tuple[int, int], assets_dir: Path) -> Image.Image:
    path = assets_dir / "bgs" / f"{BACKGROUND_NAMES.get(number, BACKGROUND_NAMES[1])}.png"
    if not path.exists():
        logger.warning("cover.background_missing", extra={"path": str(path)})
        return _gradient(size, *BACKGROUND_PALETTE.get(number, BACKGROUND_PALETTE[1]))

    with Image.open(path) as img:
        img = img.convert("RGBA")
        # Scale to fill then center-crop
        scale = max(size[0] / img.width, size[1] / img.height)
        resized = img.resize(
            (round(img.width * scale), round(img.height * scale)),
            Image.Resampling.LANCZOS,
        )
    left = (resized.width - size[0]) // 2
    top = (resized.height - size[1]) // 2
    return resized.crop((left, top, left + size[0], top + size[1]))


def _load_pose(number: int, height: int, assets_dir: Path) -> Image.Image | None:
    path = assets_dir / "barni" / f"{number}.png"
    if not path.exists():
        logger.warning("cover.pose_missing", extra={"path": str(path)})
        return None

    with Image.open(path) as img:
        img = img.convert("RGBA")
        width = max(1, round(img.width * height / img.height))
        return img.resize((width, height), Image.Resampling.LANCZOS)


def _blurred_ellipse(size: tuple[int, int], box: tuple, fill: tuple, radius: int) -> Image.Image:
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    ImageDraw.Draw(layer).ellipse(box, fill=fill)
    return layer.filter(ImageFilter.GaussianBlur(radius))


def _draw_chips(
    canvas: Image.Image,
    labels: list[str],
    *,
    x: int,
    y: int,
    height: int,
    widths: list[int],
    gap: int,
    radius: int,
    font_size: int,
) -> None:
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = _font(font_size)
    for label, width in zip(labels, widths):
        draw.rounded_rectangle(
            (x, y, x + width, y + height),
            radius=radius,
            fill=CHIP_FILL,
            outline=CHIP_OUTLINE,
            width=1,
        )
        draw.text((x + width // 2, y + height // 2), label, font=font, fill=WHITE, anchor="mm")
        x += width + gap
    canvas.alpha_composite(overlay)


def _draw_title(canvas: Image.Image, lines: tuple[str, str], *, x: int, y: int, size: int, spacing: int) -> None:
    shadow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    text = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    font = _font(size)
    for offset, line in enumerate(line for line in lines if line):
        top = y + offset * spacing
        ImageDraw.Draw(shadow).text((x, top + 2), line, font=font, fill=(0, 0, 0, 77), anchor="ls")
        ImageDraw.Draw(text).text((x, top), line, font=font, fill=WHITE, anchor="ls")
    canvas.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(2)))
    canvas.alpha_composite(text)


def _to_webp(canvas: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    canvas.convert("RGB").save(buffer, format="WEBP", quality=quality)
    return buffer.getvalue()


# =============================================================================
# Renderers
# =============================================================================


def _render_wide(title, labels, background_number, pose_number, assets_dir) -> bytes:
    width, height = COVER_SIZE
    canvas = _load_background(background_number, COVER_SIZE, assets_dir)

    canvas.alpha_composite(_blurred_ellipse(COVER_SIZE, (770, 330, 1130, 570), (255, 255, 255, 77), 30))
    canvas.alpha_composite(_blurred_ellipse(COVER_SIZE, (750, 540, 1150, 620), (0, 0, 0, 102), 15))

    pose = _load_pose(pose_number, round(height * 0.78), assets_dir)
    if pose is not None:
        canvas.alpha_composite(pose, (width - pose.width - 50, height - pose.height - 20))

    _draw_title(canvas, wrap_title(title), x=80, y=180, size=56, spacing=60)
    _draw_chips(
        canvas,
        labels,
        x=80,
        y=480,
        height=40,
        widths=[140, 140, 200],
        gap=20,
        radius=20,
        font_size=16,
    )
    return _to_webp(canvas, WEBP_QUALITY)


def _render_square(title, labels, background_number, pose_number, assets_dir) -> bytes:
    size = (COVER_SQUARE_SIZE, COVER_SQUARE_SIZE)
    canvas = _load_background(background_number, size, assets_dir)

    pose = _load_pose(pose_number, round(COVER_SQUARE_SIZE * 0.65), assets_dir)
    if pose is not None:
        canvas.alpha_composite(
            pose,
            (COVER_SQUARE_SIZE - pose.width - 30, COVER_SQUARE_SIZE - pose.height - 60),
        )

    _draw_title(canvas, wrap_title(title), x=40, y=100, size=36, spacing=40)
    _draw_chips(
        canvas,
        labels,
        x=40,
        y=520,
        height=32,
        widths=[90, 90, 130],
        gap=15,
        radius=12,
        font_size=12,
    )
    return _to_webp(canvas, WEBP_QUALITY)


def render_cover(
    title: str,
    theme: str,
    mood: str,
    length: str,
    assets_dir: Path | str | None = None,
) -> CoverImages:
    """
    Render the wide and square covers for a story.

    Raises:
        OSError: An asset exists but cannot be read
    """
    directory = _assets_dir(assets_dir)
    pose_number = pick_pose(mood, length)
    background_number = pick_background(theme, mood, length)
    labels = [theme_label(theme), mood_label(mood), length_label(length)]

    cover = _render_wide(title, labels, background_number, pose_number, directory)
    square = _render_square(title, labels, background_number, pose_number, directory)

    logger.info(
        "cover.rendered",
        extra={"pose": pose_number, "background": background_number, "bytes": len(cover) + len(square)},
    )
    return CoverImages(cover=cover, square=square)


def render_preview(title: str, theme: str, mood: str, length: str) -> bytes:
    """Title card on a purple gradient, labelled with the raw request values."""
    canvas = _gradient(PREVIEW_SIZE, (43, 16, 85), (61, 26, 115))

    overlay = Image.new("RGBA", PREVIEW_SIZE, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    draw.rounded_rectangle(
        (70, 95, 710, 455),
        radius=32,
        fill=(255, 255, 255, 31),
        outline=(255, 255, 255, 51),
    )
    draw.text(
        (100, 170),
        truncate(title or "Mese", PREVIEW_TITLE_MAX_LENGTH, "…"),
        font=_font(48),
        fill=WHITE,
        anchor="ls",
    )
    draw.text((100, 220), "Barni Meséi", font=_font(22), fill=(255, 255, 255, 191), anchor="ls")
    canvas.alpha_composite(overlay)

    _draw_chips(
        canvas,
        [theme or "Téma", mood or "Hangulat", length or "Hossz"],
        x=100,
        y=260,
        height=40,
        widths=[170, 150, 150],
        gap=20,
        radius=16,
        font_size=18,
    )
    return _to_webp(canvas, WEBP_QUALITY_PREVIEW)
