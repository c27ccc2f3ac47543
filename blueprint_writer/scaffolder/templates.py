"""Jinja2 template rendering and file helpers for the tree writers.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``scaffolder/templates/`` directory, plus the small write helpers every
writer shares.  Static files copied verbatim into generated projects live
under ``scaffolder/assets/``.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..utils import pascal_case, safe_slug


# ---------------------------------------------------------------------------
# Template and asset directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
ASSETS_DIR = Path(__file__).parent / "assets"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for generated projects.

    Templates are ``.j2`` files under a configurable template directory,
    rendered with a context dictionary (project name, dialect, views, ...).
    Generated sources are TypeScript/TSX, so templates that contain JSX
    object literals wrap them in ``{% raw %}`` blocks.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["slug"] = safe_slug
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["js_string"] = _js_string_filter

    # -- Rendering ---------------------------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"skeleton/next.config.ts.j2"``).
            context: Dictionary of variables available inside the template.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    async def render_to_file(
        self,
        template_path: str,
        output_path: str | Path,
        context: dict[str, Any],
        *,
        only_if_absent: bool = False,
    ) -> Path | None:
        """Render a template and write it to *output_path*.

        Returns the path when the file was created or its content changed,
        ``None`` when nothing was written.  With ``only_if_absent`` an
        existing file is never touched.
        """
        out = Path(output_path)
        if only_if_absent and out.exists():
            return None
        content = self.render(template_path, context)
        changed = await asyncio.to_thread(write_if_changed, out, content)
        return out if changed else None


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _js_string_filter(value: Any) -> str:
    """Render *value* as a double-quoted JS string literal."""
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def write_if_changed(path: Path, content: str | bytes) -> bool:
    """Write *content* unless the file already holds exactly that.

    Parent directories are created as needed.  Returns ``True`` if the file
    was written.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    if path.is_file() and path.read_bytes() == data:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True


def copy_tree_if_absent(
    source: Path,
    destination: Path,
    exclude: set[str] | frozenset[str] = frozenset(),
) -> list[Path]:
    """Recursively copy *source* into *destination* without overwriting.

    Files whose name is in *exclude* are skipped at every depth.  Returns the
    destination paths that were created.
    """
    created: list[Path] = []
    destination.mkdir(parents=True, exist_ok=True)
    for entry in sorted(source.iterdir()):
        target = destination / entry.name
        if entry.is_dir():
            created.extend(copy_tree_if_absent(entry, target, exclude))
        elif entry.is_file() and entry.name not in exclude and not target.exists():
            shutil.copyfile(entry, target)
            created.append(target)
    return created
