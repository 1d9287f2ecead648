"""Bitmap preview of a receipt's directive list, drawn the way a thermal printer would."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from posprint.config import PREVIEW_FONT_PATH, PREVIEW_FONT_SIZE, PREVIEW_LEFT_INDENT_PX, PREVIEW_WIDTH_PX
from posprint.directives import Cut, Directive, FeedLines, Initialize, SetAlignment, SetBold, Text
from posprint.errors import ConfigurationError, UnsupportedDirective

_FONT_OVERRIDE_ENV = "POSPRINT_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
)
_LINE_EXTRA_PX = 6
_CUT_LINE_HEIGHT_PX = 16
_CUT_DASH_PX = 10


def resolve_preview_font_path(font_path: str | None = None) -> str:
    """
    Resolve a monospace font for previews.

    Resolution order:
    1. font_path argument (from settings)
    2. POSPRINT_FONT_PATH (if set)
    3. PREVIEW_FONT_PATH
    4. Known Linux fallbacks
    """
    candidates: list[str] = []
    if font_path:
        candidates.append(font_path)
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    if env_override:
        candidates.append(env_override)
    candidates.append(PREVIEW_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise ConfigurationError(
        f"No usable preview font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def load_preview_font(font_path: str | None = None, size: int = PREVIEW_FONT_SIZE) -> object:
    from PIL import ImageFont

    return ImageFont.truetype(resolve_preview_font_path(font_path), size)


def check_preview_dependencies(font_path: str | None = None) -> tuple[bool, str]:
    """Check whether a preview can be drawn."""
    try:
        load_preview_font(font_path)
    except (ConfigurationError, OSError) as exc:
        return (False, f"Preview unavailable: {exc}")
    return (True, "Preview ready")


def _line_height(font: object) -> int:
    from PIL import Image, ImageDraw

    scratch = Image.new("1", (1, 1), color=1)
    bbox = ImageDraw.Draw(scratch).textbbox((0, 0), "Hg", font=font)
    return (bbox[3] - bbox[1]) + _LINE_EXTRA_PX


def _render_line(text: str, font: object, align: str, bold: bool, width_px: int, height_px: int) -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (width_px, height_px), color=1)
    draw = ImageDraw.Draw(img)
    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    text_height = bbox[3] - bbox[1]

    if align == "center":
        x = max(0, (width_px - text_width) // 2)
    elif align == "right":
        x = max(0, width_px - PREVIEW_LEFT_INDENT_PX - text_width)
    else:
        x = PREVIEW_LEFT_INDENT_PX
    # Offset by bbox top so descenders are not clipped.
    y = (height_px - text_height) // 2 - bbox[1]
    draw.text((x, y), text, font=font, fill=0)
    if bold:
        draw.text((x + 1, y), text, font=font, fill=0)
    return img


def _render_spacer(width_px: int, height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (width_px, max(1, height_px)), color=1)


def _render_cut(width_px: int, partial: bool) -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (width_px, _CUT_LINE_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    y = _CUT_LINE_HEIGHT_PX // 2
    # A partial cut leaves a bridge of paper on the right.
    end = width_px - 4 * _CUT_DASH_PX if partial else width_px
    for x in range(0, end, _CUT_DASH_PX * 2):
        draw.line((x, y, min(x + _CUT_DASH_PX, end), y), fill=0, width=2)
    return img


def render_preview(
    directives: Iterable[Directive],
    font: object | None = None,
    *,
    font_path: str | None = None,
    width_px: int = PREVIEW_WIDTH_PX,
) -> object:
    """Draw the directives as a 1-bit image the width of the paper roll."""
    from PIL import Image

    if font is None:
        font = load_preview_font(font_path)
    line_height = _line_height(font)

    align = "left"
    bold = False
    parts = []
    for directive in directives:
        if isinstance(directive, Initialize):
            align, bold = "left", False
        elif isinstance(directive, SetAlignment):
            align = directive.align
        elif isinstance(directive, SetBold):
            bold = directive.on
        elif isinstance(directive, Text):
            parts.append(_render_line(directive.value, font, align, bold, width_px, line_height))
        elif isinstance(directive, FeedLines):
            if directive.count:
                parts.append(_render_spacer(width_px, line_height * directive.count))
        elif isinstance(directive, Cut):
            parts.append(_render_cut(width_px, directive.mode == "partial"))
        else:
            raise UnsupportedDirective(directive, "preview")

    total_height = max(1, sum(part.height for part in parts))
    sheet = Image.new("1", (width_px, total_height), color=1)
    y = 0
    for part in parts:
        sheet.paste(part, (0, y))
        y += part.height
    return sheet


def save_preview(directives: Iterable[Directive], path: str | Path, font: object | None = None, **kwargs) -> Path:
    """Render a preview and write it as PNG."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    render_preview(directives, font, **kwargs).save(target, format="PNG")
    return target
