"""Global stylesheet merge for design tokens and per-view styles.

``src/app/globals.css`` carries two marker-delimited regions::

    /* BLUEPRINT IMPORTS */ ... /* END BLUEPRINT IMPORTS */
    /* BLUEPRINT CSS */ ... /* END BLUEPRINT CSS */

Only the text between the markers is replaced, so hand-written CSS outside
them survives and re-running with the same blueprint yields a byte-identical
file.  A missing region is appended once.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from pathlib import Path

from ..blueprint.models import Design
from ..utils import debug_log
from .media import parse_media_identifier
from .templates import write_if_changed


IMPORTS_START = "/* BLUEPRINT IMPORTS */"
IMPORTS_END = "/* END BLUEPRINT IMPORTS */"
CSS_START = "/* BLUEPRINT CSS */"
CSS_END = "/* END BLUEPRINT CSS */"

GLOBALS_CSS = Path("src") / "app" / "globals.css"

FONT_SIZES: dict[str, str] = {
    "text-xs": "0.75rem",
    "text-sm": "0.875rem",
    "text-base": "1rem",
    "text-lg": "1.125rem",
    "text-xl": "1.25rem",
    "text-2xl": "1.5rem",
    "text-3xl": "1.875rem",
    "text-4xl": "2.25rem",
    "text-5xl": "3rem",
    "text-6xl": "3.75rem",
    "text-7xl": "4.5rem",
    "text-8xl": "6rem",
    "text-9xl": "8rem",
}

BUTTON_RADII: dict[str, str] = {
    "rounded-none": "0px",
    "rounded": "4px",
    "rounded-md": "6px",
    "rounded-lg": "8px",
    "rounded-xl": "12px",
    "rounded-2xl": "16px",
    "rounded-full": "9999px",
}

DEFAULT_FONT = "Roboto"
_DATA_URL_PREFIX = re.compile(r"data:image/[^;]+;base64,")


def font_size(tailwind_class: str, default: str = "text-base") -> str:
    return FONT_SIZES.get(tailwind_class or default, "1rem")


def button_radius(roundedness: str) -> str:
    return BUTTON_RADII.get(roundedness or "rounded", "4px")


def build_font_import(design: Design) -> str:
    families = "&".join(
        f"family={font or DEFAULT_FONT}"
        for font in (design.text_font, design.title_font, design.logo_font)
    )
    return f"@import url('https://fonts.googleapis.com/css2?{families}&display=swap');"


def build_design_css(design: Design, view_styles: list[str] | None = None) -> str:
    """CSS for the design tokens followed by any per-view fragments."""
    title_size = font_size(design.title_font_size, "text-3xl")
    text_size = font_size(design.text_font_size)
    title_font = design.title_font or DEFAULT_FONT
    text_font = design.text_font or DEFAULT_FONT

    blocks = [
        "body {\n"
        f"  background: {design.background_color or 'white'};\n"
        f"  color: {design.text_color or 'black'};\n"
        f"  font-family: {text_font}, sans-serif;\n"
        f"  font-size: {text_size};\n"
        "}",
        "h1 {\n"
        f"  color: {design.title_color or 'inherit'};\n"
        f"  font-family: {title_font}, sans-serif;\n"
        f"  font-size: {title_size};\n"
        "}",
        "h2 {\n"
        f"  font-size: calc({title_size} * 0.85);\n"
        "  font-weight: 800;\n"
        "}",
        "h3 {\n"
        f"  font-size: calc({title_size} * 0.7);\n"
        "  font-weight: 600;\n"
        "}",
        "button {\n"
        f"  background-color: {design.accent_color or '#516ab8'};\n"
        f"  color: {design.accent_text_color or 'white'};\n"
        f"  font-family: {title_font}, sans-serif;\n"
        f"  border-radius: {button_radius(design.button_roundedness)};\n"
        "}",
    ]
    if view_styles:
        blocks.append("/* PER-VIEW STYLES */\n" + "\n".join(view_styles) + "\n/* END PER-VIEW STYLES */")
    return "\n\n".join(blocks)


def replace_marked_region(css: str, start: str, end: str, body: str) -> str:
    """Replace the text between *start* and *end*, appending the region if absent."""
    region = f"{start}\n{body}\n{end}"
    pattern = re.compile(re.escape(start) + r".*?" + re.escape(end), re.DOTALL)
    if pattern.search(css):
        return pattern.sub(lambda _: region, css, count=1)
    separator = "" if not css or css.endswith("\n") else "\n"
    return f"{css}{separator}{region}\n"


def merge_global_css(css: str, design: Design, view_styles: list[str] | None = None) -> str:
    css = replace_marked_region(css, IMPORTS_START, IMPORTS_END, build_font_import(design))
    return replace_marked_region(css, CSS_START, CSS_END, build_design_css(design, view_styles))


def decode_inline_favicon(favicon: str) -> bytes | None:
    """Decode a favicon given inline as base64 or a data URL.

    Media identifiers and public paths are not inline and yield ``None``.
    """
    if not favicon or parse_media_identifier(favicon) or favicon.lstrip("/").startswith(("images/", "favicon")):
        return None
    if "base64" not in favicon and len(favicon) <= 1000:
        return None
    try:
        return base64.b64decode(_DATA_URL_PREFIX.sub("", favicon))
    except (binascii.Error, ValueError):
        debug_log("[design] favicon is not valid base64, skipping")
        return None


class DesignWriter:
    """Merges design tokens into ``globals.css`` and writes inline favicons."""

    async def write(
        self,
        target_dir: Path,
        design: Design,
        view_styles: list[str] | None = None,
    ) -> list[Path]:
        written: list[Path] = []
        css_path = target_dir / GLOBALS_CSS
        current = css_path.read_text(encoding="utf-8") if css_path.is_file() else ""
        merged = merge_global_css(current, design, view_styles)
        if await asyncio.to_thread(write_if_changed, css_path, merged):
            written.append(css_path)

        if design.generatefavicon:
            icon = decode_inline_favicon(design.favicon)
            if icon:
                icon_path = target_dir / "public" / "favicon.ico"
                if await asyncio.to_thread(write_if_changed, icon_path, icon):
                    written.append(icon_path)
        return written
