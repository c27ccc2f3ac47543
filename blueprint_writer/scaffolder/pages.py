"""Page writer: lays views out on a 12-column grid per page.

Page views are grouped into rows by ``rowpos``.  A row whose ``colpos``
spans add up to 12 keeps them; any other row splits the width evenly.
The home page is written to ``src/app/page.tsx``; every other page to
``src/app/<slug>/page.tsx``.
"""

from __future__ import annotations

import asyncio
from itertools import groupby
from pathlib import Path

from ..blueprint.models import Blueprint, Page, PageView
from ..collaborators import ViewComponent
from ..utils import safe_slug
from .templates import TemplateRenderer, write_if_changed
from .views import responsive_col_classes, style_attr, style_props


class PageWriter:
    """Writes one ``page.tsx`` per blueprint page."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    def _rows(
        self,
        page: Page,
        blueprint: Blueprint,
        view_map: dict[str, ViewComponent],
        is_home: bool,
    ) -> tuple[list[str], list[list[dict[str, str]]]]:
        views_by_id = {v.id: v for v in blueprint.views}
        imports: list[str] = []
        rows: list[list[dict[str, str]]] = []

        ordered = sorted(page.views, key=lambda pv: pv.rowpos or 0)
        for _, group in groupby(ordered, key=lambda pv: pv.rowpos or 0):
            placed: list[PageView] = list(group)
            total = sum(pv.colpos or 1 for pv in placed)
            equal_span = None if total == 12 else 12 // len(placed)

            cells: list[dict[str, str]] = []
            for pv in placed:
                info = view_map.get(pv.id)
                if info is None:
                    continue
                rel_import = info.rel_import.replace("../../", "../", 1) if is_home else info.rel_import
                line = f"import {info.component_name} from '{rel_import}';"
                if line not in imports:
                    imports.append(line)

                view = views_by_id.get(pv.id)
                cols = responsive_col_classes(pv.colpos, pv.colposmd, pv.colpossm, equal_span)
                cells.append({
                    "component": info.component_name,
                    "classes": f"h-full w-full {cols}",
                    "style": style_attr(style_props(view)) if view is not None else "",
                    "props": " isContainer={false}" if view is not None and view.type.lower() == "text" else "",
                })
            if cells:
                rows.append(cells)
        return imports, rows

    async def write(
        self,
        target_dir: Path,
        blueprint: Blueprint,
        view_map: dict[str, ViewComponent],
    ) -> list[Path]:
        app_dir = target_dir / "src" / "app"
        written: list[Path] = []

        for page in blueprint.pages:
            slug = safe_slug(page.name or page.id)
            page_dir = app_dir if page.is_home else app_dir / slug
            imports, rows = self._rows(page, blueprint, view_map, page.is_home)
            content = self.renderer.render(
                "pages/page.tsx.j2",
                {
                    "title": page.name or slug,
                    "description": page.description,
                    "imports": imports,
                    "rows": rows,
                },
            )
            path = page_dir / "page.tsx"
            if await asyncio.to_thread(write_if_changed, path, content):
                written.append(path)

        if not any(p.is_home for p in blueprint.pages):
            home = await self.renderer.render_to_file(
                "pages/home.tsx.j2", app_dir / "page.tsx", {}, only_if_absent=True
            )
            if home is not None:
                written.append(home)
        return written
