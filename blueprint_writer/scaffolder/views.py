"""Default view renderer: one React component per blueprint view.

Each view becomes ``src/views/<slug>.tsx``.  Generated code supplied in
``code.views`` (``{"id": ..., "code": ...}``) is written verbatim; otherwise
the component is rendered from the template for the view's type.  Container
views are rendered last because they import the components of their
sub-views.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from pydantic.alias_generators import to_camel

from ..blueprint.models import AuthProviders, Blueprint, Code, Page, View
from ..collaborators import RenderedViews, ViewComponent
from ..utils import pascal_case, safe_slug
from .templates import TemplateRenderer, write_if_changed


# view type -> (component import name, module under src/components)
SHARED_COMPONENT_VIEWS: dict[str, tuple[str, str]] = {
    "loginbutton": ("LoginSection", "headerlogin"),
    "headerlogin": ("LoginSection", "headerlogin"),
    "logincallback": ("LoginCallback", "logincallback"),
    "login": ("Login", "login"),
    "profile": ("Profile", "profile"),
    "loggedinmenu": ("LoggedInMenu", "loggedinmenu"),
    "adminmenu": ("AdminMenu", "adminmenu"),
    "useradmin": ("Admin", "admin"),
}

VIDEO_TYPES = frozenset({"youtubevideo", "youtube", "video"})

_PLACE_ITEMS: dict[tuple[str, str], str] = {
    ("Top", "Left"): "start start",
    ("Top", "Center"): "start center",
    ("Top", "Right"): "start end",
    ("Center", "Left"): "center start",
    ("Center", "Center"): "center center",
    ("Center", "Right"): "center end",
    ("Bottom", "Left"): "end start",
    ("Bottom", "Center"): "end center",
    ("Bottom", "Right"): "end end",
}

_TEXT_ALIGN: dict[str, tuple[str, str]] = {
    "Left": ("left", "start"),
    "Center": ("center", "center"),
    "Right": ("right", "end"),
}


# ---------------------------------------------------------------------------
# Layout helpers (shared with the page writer)
# ---------------------------------------------------------------------------


def clamp_span(value: int) -> int:
    return max(1, min(12, value))


def responsive_col_classes(
    colpos: int | None,
    colposmd: int | None,
    colpossm: int | None,
    equal_span: int | None = None,
) -> str:
    """Tailwind ``col-span`` classes for small, medium and large screens.

    When *equal_span* is given (a row whose spans do not add up to 12) every
    breakpoint uses it instead of the configured positions.
    """
    lg = colpos or 1
    md = colposmd or lg
    sm = colpossm or md
    if equal_span is not None:
        lg = md = sm = equal_span or 1
    return f"col-span-{clamp_span(sm)} md:col-span-{clamp_span(md)} lg:col-span-{clamp_span(lg)}"


def place_items(view: View) -> str:
    return _PLACE_ITEMS.get((view.vertical_align, view.align), "center center")


def style_props(view: View, *, include_background_color: bool = True) -> list[str]:
    """Inline JSX style properties for a view's wrapper."""
    props: list[str] = []
    if include_background_color and view.background_color:
        props.append(f"backgroundColor: '{view.background_color}'")
    if view.background_image:
        props.append(f"backgroundImage: 'url({view.background_image})'")
        props.append("backgroundSize: 'cover'")
        props.append("backgroundPosition: 'center'")
        props.append("backgroundRepeat: 'no-repeat'")
    if view.text_color:
        props.append(f"color: '{view.text_color}'")
    for name in ("padding_left", "padding_right", "padding_top", "padding_bottom", "min_height", "max_width"):
        value = getattr(view, name)
        if value:
            props.append(f"{to_camel(name)}: '{value}px'")
    props.append("display: 'grid'")
    props.append(f"placeItems: '{place_items(view)}'")
    if view.align in _TEXT_ALIGN:
        text_align, justify = _TEXT_ALIGN[view.align]
        props.append(f"textAlign: '{text_align}'")
        props.append(f"justifyContent: '{justify}'")
    return props


def style_attr(props: list[str]) -> str:
    if not props:
        return ""
    return " style={{ " + ", ".join(props) + " }}"


def view_base_name(view: View) -> str:
    return safe_slug(view.name or view.id, default="view")


def component_name(base: str) -> str:
    return f"{pascal_case(base)}View"


def parse_container_subviews(description: Any) -> list[dict[str, Any]]:
    """Sub-view placements of a container; bad input yields ``[]``."""
    if isinstance(description, str):
        try:
            description = json.loads(description) if description.strip() else []
        except json.JSONDecodeError:
            return []
    if not isinstance(description, list):
        return []
    placements: list[dict[str, Any]] = []
    for item in description:
        if isinstance(item, str):
            placements.append({"viewId": item})
        elif isinstance(item, dict):
            placements.append(item)
    return placements


def _menu_items(menu: dict[str, Any] | None, pages: list[Page]) -> list[dict[str, str]]:
    if not menu:
        return []
    by_id = {p.id: p for p in pages}
    items: list[dict[str, str]] = []
    for item in menu.get("items") or []:
        page = by_id.get(item.get("page") or item.get("page_id") or "")
        if page is not None:
            href = "/" if page.is_home else f"/{safe_slug(page.name or page.id)}"
        else:
            href = item.get("link") or item.get("url") or "#"
        items.append({"name": str(item.get("name") or item.get("title") or ""), "href": href})
    return items


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class DefaultViewRenderer:
    """Writes ``src/views/*.tsx`` and collects per-view CSS fragments."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    def _assign_bases(self, views: list[View]) -> dict[str, str]:
        bases: dict[str, str] = {}
        taken: set[str] = set()
        for view in views:
            base = view_base_name(view)
            candidate, n = base, 2
            while candidate in taken:
                candidate = f"{base}_{n}"
                n += 1
            taken.add(candidate)
            bases[view.id] = candidate
        return bases

    @staticmethod
    def _title_color_style(view: View) -> tuple[str | None, str | None]:
        color = (view.model_extra or {}).get("card_title_color")
        if not color:
            return None, None
        cls = f"view-{''.join(c if c.isalnum() else '_' for c in view.id)}-title"
        css = (
            f".{cls} h1,\n.{cls} h2,\n.{cls} h3,\n.{cls} .card h1,\n.{cls} .card h2,\n.{cls} .card h3 {{\n"
            f"    color: {color} !important;\n}}"
        )
        return cls, css

    def _render_leaf(
        self,
        view: View,
        component: str,
        blueprint: Blueprint,
        auth_providers: Optional[AuthProviders],
    ) -> str:
        kind = view.type.lower()
        description = view.custom_view_description if isinstance(view.custom_view_description, str) else ""
        ctx: dict[str, Any] = {
            "component": component,
            "background_color": view.background_color,
        }

        if kind == "text":
            return self.renderer.render("views/text.tsx.j2", {**ctx, "html": description})
        if kind == "image":
            return self.renderer.render(
                "views/image.tsx.j2", {**ctx, "src": description or view.background_image}
            )
        if kind == "logo":
            src = view.background_image or description
            return self.renderer.render(
                "views/logo.tsx.j2", {**ctx, "src": src if src.startswith("/logo.") else "/logo.png"}
            )
        if kind == "menu":
            menu = next((m for m in blueprint.menus if m.id == description), None)
            items = _menu_items(menu.model_dump() if menu else None, blueprint.pages)
            return self.renderer.render(
                "views/menu.tsx.j2",
                {**ctx, "items_json": json.dumps(items), "vertical": view.flow_vertical},
            )
        if kind in VIDEO_TYPES:
            return self.renderer.render("views/video.tsx.j2", {**ctx, "link": description})
        if kind in SHARED_COMPONENT_VIEWS:
            import_name, module = SHARED_COMPONENT_VIEWS[kind]
            props = ""
            if kind == "login" and auth_providers is not None:
                enabled = [
                    name for name in ("google", "github", "facebook", "apple")
                    if getattr(auth_providers, name)
                ]
                props = f" providers={{{json.dumps(enabled)}}}"
            return self.renderer.render(
                "views/shared.tsx.j2",
                {**ctx, "import_name": import_name, "module": module, "props": props},
            )
        return self.renderer.render(
            "views/placeholder.tsx.j2",
            {**ctx, "label": "Integration" if kind == "integration" else "Prompt",
             "prompt": view.prompt or f"{view.type} view"},
        )

    def _render_container(
        self,
        view: View,
        component: str,
        by_id: dict[str, View],
        bases: dict[str, str],
        extra_classes: list[str],
    ) -> str:
        placements = parse_container_subviews(view.custom_view_description)
        total = sum(int(p.get("colpos") or 1) for p in placements)
        equal_span = 12 // len(placements) if placements and total != 12 else None

        imports: list[str] = []
        children: list[dict[str, str]] = []
        for placement in placements:
            sub = by_id.get(placement.get("viewId") or placement.get("id") or "")
            if sub is None or sub.type.lower() == "container":
                continue
            sub_component = component_name(bases[sub.id])
            line = f"import {sub_component} from './{bases[sub.id]}';"
            if line not in imports:
                imports.append(line)
            cols = responsive_col_classes(
                placement.get("colpos"), placement.get("colposmd"), placement.get("colpossm"), equal_span
            )
            children.append({
                "component": sub_component,
                "classes": f"h-full w-full {cols}",
                "style": style_attr(style_props(sub, include_background_color=False)),
                "props": " isContainer={true}" if sub.type.lower() == "text" else "",
            })

        grid = ["h-full", "gap-4", "grid"]
        grid += ["grid-cols-12", "grid-flow-row"] if view.flow_vertical else ["grid-flow-col"]
        grid += ["relative", *extra_classes]
        return self.renderer.render(
            "views/container.tsx.j2",
            {
                "component": component,
                "imports": imports,
                "children": children,
                "classes": " ".join(grid),
                "style": style_attr(style_props(view)),
            },
        )

    async def render(
        self,
        target_dir: Path,
        blueprint: Blueprint,
        code: Optional[Code],
        auth_providers: Optional[AuthProviders],
    ) -> RenderedViews:
        views_dir = target_dir / "src" / "views"
        views_dir.mkdir(parents=True, exist_ok=True)

        generated = {
            str(item.get("id")): item.get("code")
            for item in (code.views if code else [])
            if isinstance(item, dict) and item.get("code")
        }
        by_id = {v.id: v for v in blueprint.views}
        bases = self._assign_bases(blueprint.views)
        result = RenderedViews()

        leaves = [v for v in blueprint.views if v.type.lower() != "container"]
        containers = [v for v in blueprint.views if v.type.lower() == "container"]
        for view in leaves + containers:
            base = bases[view.id]
            component = component_name(base)
            title_class, title_css = self._title_color_style(view)
            if title_css:
                result.styles.append(title_css)

            if view.id in generated:
                source = str(generated[view.id])
            elif view.type.lower() == "container":
                source = self._render_container(
                    view, component, by_id, bases, [title_class] if title_class else []
                )
            else:
                source = self._render_leaf(view, component, blueprint, auth_providers)

            path = views_dir / f"{base}.tsx"
            if write_if_changed(path, source):
                result.files.append(path)
            result.view_map[view.id] = ViewComponent(
                component_name=component, rel_import=f"../../views/{base}"
            )
        return result
