"""``ARCHITECTURE.md``: schema, relationships, APIs, views and data flow.

The document is derived only from the blueprint, so regenerating from an
unchanged blueprint leaves the file untouched.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import Any

from ..blueprint.models import Blueprint, ObjectDefinition, ObjectProperty, View
from .templates import TemplateRenderer, write_if_changed


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def display_type(prop: ObjectProperty, blueprint: Blueprint) -> str:
    if prop.type == "object" and prop.object_id:
        obj = blueprint.find_object(prop.object_id)
        return f"object ({obj.name if obj else prop.object_id})"
    if prop.type == "array":
        if prop.array_item_type == "object" and prop.array_item_object_id:
            obj = blueprint.find_object(prop.array_item_object_id)
            return f"array<{obj.name}>" if obj else "array<object>"
        return f"array<{prop.array_item_type or 'any'}>"
    return prop.type


def object_table(obj: ObjectDefinition, blueprint: Blueprint, _seen: frozenset[str] = frozenset()) -> str:
    """Markdown table of *obj*'s properties, followed by nested object tables."""
    seen = _seen | {obj.id}
    lines = [
        "| Property | Type | Required | Description |",
        "|----------|------|----------|-------------|",
    ]
    for prop in obj.properties:
        lines.append(
            f"| {prop.name} | {display_type(prop, blueprint)} | {_yes_no(prop.required)} "
            f"| {prop.description or '-'} |"
        )
    lines.append("")

    for prop in obj.properties:
        if prop.type == "object":
            nested, label = blueprint.find_object(prop.object_id), "Structure"
        elif prop.type == "array" and prop.array_item_type == "object":
            nested, label = blueprint.find_object(prop.array_item_object_id), "Item Structure"
        else:
            continue
        if nested is None or nested.id in seen:
            continue
        lines.append(f"**{prop.name} {label} ({nested.name}):**")
        if nested.description:
            lines.append(f"*{nested.description}*")
        lines.append("")
        lines.append(object_table(nested, blueprint, seen))
    return "\n".join(lines)


def view_api_ids(view: View) -> list[str]:
    apis = (view.model_extra or {}).get("apis") or []
    return [str(a) for a in apis] if isinstance(apis, list) else []


def format_view_type(kind: str) -> str:
    return " ".join(part.capitalize() for part in kind.replace("_", " ").split()) + " Views"


def build_context(blueprint: Blueprint) -> dict[str, Any]:
    models_by_id = {m.id: m for m in blueprint.models}
    apis_by_id = {a.id: a for a in blueprint.apis}
    pages_by_id = {p.id: p for p in blueprint.pages}

    models = []
    for model in blueprint.models:
        fields = []
        for f in model.fields:
            notes = [label for flag, label in ((f.is_image, "Image"), (f.is_file, "File"), (f.untouchable, "System")) if flag]
            fields.append({
                "name": f.name,
                "datatype": f.datatype,
                "size": f.size or "-",
                "required": _yes_no(f.required),
                "key": f.key or "-",
                "searchable": _yes_no(f.is_searchable),
                "notes": ", ".join(notes) or "-",
            })
        models.append({"model": model, "fields": fields})

    relationships = []
    for diagram in blueprint.er_diagram:
        owner = models_by_id.get(diagram.model_id)
        if owner is None or not diagram.relationships:
            continue
        relationships.append({
            "name": owner.name,
            "lines": [
                f"**{owner.name}.{rel.prop_a}** -> "
                f"**{models_by_id[rel.to].name if rel.to in models_by_id else rel.to}.{rel.prop_b}** ({rel.type})"
                for rel in diagram.relationships
            ],
        })

    apis = []
    for api in blueprint.apis:
        input_obj = blueprint.find_object(api.input_object_id)
        output_obj = blueprint.find_object(api.output_object_id)
        callback = pages_by_id.get(api.redirect_callback_page_id)
        apis.append({
            "api": api,
            "callback": (callback.name if callback else api.redirect_callback_page_id),
            "input": input_obj,
            "input_table": object_table(input_obj, blueprint) if input_obj else "",
            "output": output_obj,
            "output_table": object_table(output_obj, blueprint) if output_obj else "",
        })

    views_by_type: dict[str, list[dict[str, Any]]] = defaultdict(list)
    usage: dict[str, list[str]] = defaultdict(list)
    for view in blueprint.views:
        consumes = []
        for api_id in view_api_ids(view):
            usage[api_id].append(view.name)
            api = apis_by_id.get(api_id)
            consumes.append(
                f"{api.method} /api/{api.name} ({'Auth Required' if api.requires_auth else 'Public'})"
                if api else api_id
            )
        description = view.custom_view_description
        views_by_type[format_view_type(view.type or "other")].append({
            "view": view,
            "consumes": consumes,
            "description": description if isinstance(description, str) else "",
        })

    return {
        "models": models,
        "relationships": relationships,
        "apis": apis,
        "views_by_type": dict(views_by_type),
        "api_usage": [(a, usage[a.id]) for a in blueprint.apis if usage.get(a.id)],
        "unused_apis": [a for a in blueprint.apis if not usage.get(a.id)],
        "pages": [
            {
                "page": p,
                "access": (p.model_extra or {}).get("access") or "public",
                "tier": (p.model_extra or {}).get("user_tier") or "all",
            }
            for p in blueprint.pages
        ],
    }


class ArchitectureWriter:
    """Writes ``ARCHITECTURE.md`` at the project root."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    def render(self, blueprint: Blueprint) -> str:
        return self.renderer.render("docs/ARCHITECTURE.md.j2", build_context(blueprint))

    async def write(self, target_dir: Path, blueprint: Blueprint) -> list[Path]:
        path = target_dir / "ARCHITECTURE.md"
        changed = await asyncio.to_thread(write_if_changed, path, self.render(blueprint))
        return [path] if changed else []
