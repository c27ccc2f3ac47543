"""API route writer: ``src/app/api/<slug>/route.ts`` per blueprint API.

When generated code exists for an API, it is written behind a fixed import
header with the authentication preamble substituted for the
``/* AUTH CODE (NOT AI GENERATED) */`` placeholder.  Otherwise a typed stub
is produced from the API's input/output object definitions.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from ..blueprint.models import Api, Blueprint, Code, ObjectDefinition, ObjectProperty
from ..utils import safe_slug
from .templates import TemplateRenderer, write_if_changed


AUTH_PLACEHOLDER = "/* AUTH CODE (NOT AI GENERATED) */"

# Ordered; a user's tier index must be >= the API's required tier index.
USER_TIERS: tuple[str, ...] = ("Free", "Basic", "Pro", "Enterprise")

AUTH_LEVELS = frozenset({"admin", "registereduser"})

HTTP_HANDLERS = frozenset({"GET", "POST", "PUT", "DELETE"})


def tier_index(name: str) -> int:
    """Index of tier *name*; unknown tiers count as Free."""
    try:
        return USER_TIERS.index(name)
    except ValueError:
        return 0


def handler_for(method: str) -> str:
    method = (method or "GET").upper()
    return method if method in HTTP_HANDLERS else "DELETE"


# ---------------------------------------------------------------------------
# Types and dummy values
# ---------------------------------------------------------------------------


def ts_type(prop: ObjectProperty, blueprint: Blueprint) -> str:
    kind = prop.type
    if kind in ("string", "number", "boolean"):
        return kind
    if kind == "object":
        obj = blueprint.find_object(prop.object_id)
        return obj.name if obj else "any"
    if kind == "array":
        if prop.array_item_type == "object" and prop.array_item_object_id:
            obj = blueprint.find_object(prop.array_item_object_id)
            return f"{obj.name}[]" if obj else "any[]"
        return f"{prop.array_item_type or 'any'}[]"
    return "any"


def ts_interface(obj: ObjectDefinition, blueprint: Blueprint) -> str:
    lines: list[str] = []
    for prop in obj.properties:
        if prop.description:
            lines.append(f"  // {prop.description}")
        optional = "" if prop.required else "?"
        lines.append(f"  {prop.name}{optional}: {ts_type(prop, blueprint)};")
    return "interface " + obj.name + " {\n" + "\n".join(lines) + "\n}"


def dummy_value(prop: ObjectProperty, blueprint: Blueprint, _seen: frozenset[str] = frozenset()) -> str:
    kind = prop.type
    if kind == "string":
        return f'"sample {prop.name}"'
    if kind == "number":
        return "0"
    if kind == "boolean":
        return "false"
    if kind == "object":
        obj = blueprint.find_object(prop.object_id)
        if obj is not None and obj.id not in _seen:
            return dummy_object(obj, blueprint, _seen)
        return "{}"
    if kind == "array":
        return "[]"
    return "null"


def dummy_object(obj: ObjectDefinition, blueprint: Blueprint, _seen: frozenset[str] = frozenset()) -> str:
    """Object literal filling every required property of *obj*."""
    seen = _seen | {obj.id}
    props = [
        f"    {p.name}: {dummy_value(p, blueprint, seen)}"
        for p in obj.properties
        if p.required
    ]
    return "{\n" + ",\n".join(props) + "\n  }" if props else "{}"


def collect_interfaces(api: Api, blueprint: Blueprint) -> list[str]:
    """Interfaces for the API's input/output objects and everything they nest."""
    interfaces: list[str] = []
    seen: set[str] = set()

    def visit(obj: ObjectDefinition | None) -> None:
        if obj is None or obj.name in seen:
            return
        seen.add(obj.name)
        interfaces.append(ts_interface(obj, blueprint))
        for prop in obj.properties:
            if prop.type == "object":
                visit(blueprint.find_object(prop.object_id))
            elif prop.type == "array" and prop.array_item_type == "object":
                visit(blueprint.find_object(prop.array_item_object_id))

    visit(blueprint.find_object(api.input_object_id))
    visit(blueprint.find_object(api.output_object_id))
    return interfaces


# ---------------------------------------------------------------------------
# Auth preamble
# ---------------------------------------------------------------------------


def build_auth_code(api: Api) -> str:
    """Authorisation checks injected into generated route code."""
    if api.requires_auth not in AUTH_LEVELS:
        return ""
    code = (
        "\n    const UserInfo = await check_auth(db, db_query);\n"
        '    if (UserInfo.userid.length === 0) { return NextResponse.json({ error: "Forbidden" }, { status: 403 }); }\n'
        "    const user_id = UserInfo.userid;\n"
    )
    if api.requires_auth == "admin":
        code += '\n    if (UserInfo.IsAdmin !== true) { return NextResponse.json({ error: "Forbidden" }, { status: 403 }); }\n'
    if api.user_tier:
        code += (
            f"\n    if (UserInfo.UserTier < {tier_index(api.user_tier)}) "
            '{ return NextResponse.json({ error: "Forbidden" }, { status: 403 }); }\n'
        )
    return code


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class ApiWriter:
    """Writes route handlers for every API in the blueprint."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    def render_stub(self, api: Api, blueprint: Blueprint) -> str:
        input_obj = blueprint.find_object(api.input_object_id)
        output_obj = blueprint.find_object(api.output_object_id)
        return self.renderer.render(
            "apis/stub.ts.j2",
            {
                "handler": handler_for(api.method),
                "name": api.name or "api",
                "prompt_lines": api.prompt.splitlines() if api.prompt else [],
                "interfaces": collect_interfaces(api, blueprint),
                "input_type": input_obj.name if input_obj else "",
                "output_type": output_obj.name if output_obj else "",
                "response_body": dummy_object(output_obj, blueprint) if output_obj else "",
            },
        )

    def render_generated(self, api: Api, source: str) -> str:
        body = source.replace(AUTH_PLACEHOLDER, build_auth_code(api), 1)
        return self.renderer.render("apis/route.ts.j2", {"root": "../../", "body": body})

    async def write(self, target_dir: Path, blueprint: Blueprint, code: Code | None) -> list[Path]:
        api_dir = target_dir / "src" / "app" / "api"
        written: list[Path] = []
        for api in blueprint.apis:
            source = code.api_code(api.id) if code else ""
            content = self.render_generated(api, source) if source else self.render_stub(api, blueprint)
            path = api_dir / safe_slug(api.name or api.id, default="api") / "route.ts"
            if await asyncio.to_thread(write_if_changed, path, content):
                written.append(path)
        return written
