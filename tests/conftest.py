"""Shared pytest fixtures for the blueprint writer test suite.

Provides reusable fixtures for:
- Temporary target directories and allow-listed configs
- A realistic sample blueprint and project payload
- A scripted in-memory media fetcher
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from blueprint_writer.blueprint import ProjectInput, normalize_project_payload
from blueprint_writer.collaborators import MediaPayload
from blueprint_writer.config import Config
from blueprint_writer.errors import CollaboratorError
from blueprint_writer.jobs import JobRegistry


LOGO_ID = "11111111-1111-4111-8111-111111111111"
HERO_ID = "22222222-2222-4222-8222-222222222222"
MISSING_ID = "33333333-3333-4333-8333-333333333333"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 24

ORDER_ROUTE_CODE = (
    "export async function POST(request: Request) {\n"
    "  /* AUTH CODE (NOT AI GENERATED) */\n"
    "  return NextResponse.json({ ok: true });\n"
    "}\n"
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeMediaFetcher:
    """In-memory :class:`MediaFetcher`; unknown identifiers fail with HTTP 404."""

    def __init__(self, payloads: dict[str, MediaPayload] | None = None) -> None:
        self.payloads = payloads or {}
        self.calls: list[str] = []

    async def fetch(self, identifier: str) -> MediaPayload:
        self.calls.append(identifier)
        if identifier not in self.payloads:
            raise CollaboratorError("media", identifier, "HTTP 404")
        return self.payloads[identifier]


# ---------------------------------------------------------------------------
# Paths & configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Empty output directory inside the temporary allowed root."""
    out = tmp_path / "site"
    out.mkdir()
    return out


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config whose only allowed root is the test's ``tmp_path``."""
    return Config(allowed_roots=[tmp_path], project_name="Demo Shop")


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


# ---------------------------------------------------------------------------
# Blueprint data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_blueprint_dict() -> dict[str, Any]:
    """A small shop blueprint touching every stage of the pipeline."""
    return {
        "models": [
            {
                "id": "m-orders",
                "name": "Orders",
                "userSpecific": "true",
                "fields": [
                    {"name": "id", "datatype": "UUID", "key": "primary", "required": "true"},
                    {"name": "total", "datatype": "DOUBLE"},
                ],
            },
            {
                "id": "m-products",
                "name": "Products",
                "fields": [
                    {"name": "id", "datatype": "UUID", "key": "primary", "required": True},
                    {"name": "title", "datatype": "VARCHAR", "size": 120, "required": True},
                    {"name": "photo", "datatype": "TEXT", "is_image": True},
                ],
            },
        ],
        "migrations": [
            {
                "id": "mig-1",
                "modelName": "products",
                "action": "update",
                "changes": [
                    {
                        "type": "field",
                        "operation": "add",
                        "newValue": {"name": "price", "datatype": "DOUBLE"},
                    },
                    {"type": "field", "operation": "remove", "field": "photo"},
                ],
            }
        ],
        "views": [
            {
                "id": "v-logo",
                "name": "Logo",
                "type": "logo",
                "background_image": f"image|{LOGO_ID}",
            },
            {
                "id": "v-menu",
                "name": "Main Menu",
                "type": "menu",
                "custom_view_description": "menu-1",
            },
            {
                "id": "v-hero",
                "name": "Hero",
                "type": "image",
                "custom_view_description": f"image|{HERO_ID}",
            },
            {
                "id": "v-intro",
                "name": "Intro",
                "type": "text",
                "custom_view_description": "<h1>Welcome</h1>",
                "card_title_color": "#ff0000",
                "align": "Center",
            },
            {
                "id": "v-box",
                "name": "Feature Box",
                "type": "container",
                "flowVertical": True,
                "custom_view_description": json.dumps([
                    {"viewId": "v-intro", "colpos": 6},
                    {"viewId": "v-hero", "colpos": 6},
                ]),
            },
        ],
        "pages": [
            {
                "id": "p-home",
                "name": "Home",
                "is_home": "true",
                "views": [
                    {"id": "v-logo", "rowpos": 0, "colpos": 3},
                    {"id": "v-menu", "rowpos": 0, "colpos": 9},
                    {"id": "v-hero", "rowpos": 1, "colpos": 12},
                ],
            },
            {
                "id": "p-about",
                "name": "About Us",
                "views": [
                    {"id": "v-box", "rowpos": 0, "colpos": 12},
                    {"id": "v-intro", "rowpos": 1, "colpos": 4},
                    {"id": "v-hero", "rowpos": 1, "colpos": 4},
                ],
            },
        ],
        "menus": [
            {
                "id": "menu-1",
                "name": "Main",
                "items": [
                    {"name": "Home", "page": "p-home"},
                    {"name": "About", "page": "p-about"},
                ],
            }
        ],
        "objects": [
            {
                "id": "obj-in",
                "name": "OrderInput",
                "properties": [
                    {"name": "product_id", "type": "string", "required": True},
                    {"name": "quantity", "type": "number", "required": True},
                ],
            },
            {
                "id": "obj-out",
                "name": "OrderOutput",
                "properties": [
                    {"name": "order_id", "type": "string", "required": True},
                    {
                        "name": "items",
                        "type": "array",
                        "array_item_type": "object",
                        "array_item_object_id": "obj-in",
                    },
                ],
            },
        ],
        "apis": [
            {
                "id": "api-create-order",
                "name": "Create Order",
                "method": "POST",
                "requires_auth": "registereduser",
                "user_tier": "Pro",
                "input_object_id": "obj-in",
                "output_object_id": "obj-out",
            },
            {
                "id": "api-list-products",
                "name": "List Products",
                "method": "GET",
                "output_object_id": "obj-out",
                "prompt": "Return every product",
            },
        ],
        "sample_data": [
            {
                "table_name": "products",
                "sql": f"INSERT INTO products (id, photo) VALUES ('p1', 'image|{MISSING_ID}');",
            }
        ],
        "er_diagram": [
            {
                "model_id": "m-orders",
                "relationships": [
                    {"to": "m-products", "propA": "id", "propB": "id", "type": "many-to-many"}
                ],
            }
        ],
        "design": {
            "logo": f"image|{LOGO_ID}",
            "title_color": "#111111",
            "accent_color": "#0055ff",
            "title_font": "Lato",
            "text_font_size": "text-lg",
            "button_roundedness": "rounded-lg",
        },
    }


@pytest.fixture
def sample_code_dict() -> dict[str, Any]:
    return {
        "views": [],
        "apis": [{"id": "api-create-order", "apis": [{"code": ORDER_ROUTE_CODE}]}],
    }


@pytest.fixture
def sample_payload(
    sample_blueprint_dict: dict[str, Any], sample_code_dict: dict[str, Any]
) -> dict[str, Any]:
    """Project payload in the nested ``data`` shape returned by the project service."""
    return {
        "data": {
            "blueprint": sample_blueprint_dict,
            "code": sample_code_dict,
            "name": "Demo Shop",
        },
        "AuthProviders": {"google": "true", "github": False},
    }


@pytest.fixture
def sample_project(sample_payload: dict[str, Any]) -> ProjectInput:
    return normalize_project_payload(sample_payload)


@pytest.fixture
def media_fetcher() -> FakeMediaFetcher:
    """Fetcher that knows the logo and hero images but not ``MISSING_ID``."""
    return FakeMediaFetcher({
        LOGO_ID: MediaPayload(content=PNG_BYTES, content_type="image/png"),
        HERO_ID: MediaPayload(content=JPEG_BYTES, content_type=""),
    })


@pytest.fixture
def media_ids() -> dict[str, str]:
    return {"logo": LOGO_ID, "hero": HERO_ID, "missing": MISSING_ID}


@pytest.fixture
def fake_fetcher_cls() -> type[FakeMediaFetcher]:
    return FakeMediaFetcher
