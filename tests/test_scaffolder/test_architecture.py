"""Unit tests for ARCHITECTURE.md generation."""

from __future__ import annotations

from pathlib import Path

import pytest

from blueprint_writer.blueprint import Blueprint, ProjectInput
from blueprint_writer.scaffolder import ArchitectureWriter, TemplateRenderer
from blueprint_writer.scaffolder.architecture import display_type, format_view_type, object_table


@pytest.fixture
def writer() -> ArchitectureWriter:
    return ArchitectureWriter(TemplateRenderer())


class TestHelpers:
    @pytest.mark.unit
    def test_display_type(self, sample_project: ProjectInput):
        blueprint = sample_project.blueprint
        items = blueprint.find_object("obj-out").properties[1]
        assert display_type(items, blueprint) == "array<OrderInput>"
        assert display_type(blueprint.find_object("obj-in").properties[0], blueprint) == "string"

    @pytest.mark.unit
    def test_format_view_type(self):
        assert format_view_type("text") == "Text Views"
        assert format_view_type("youtube_video") == "Youtube Video Views"

    @pytest.mark.unit
    def test_object_table_nests_item_structure(self, sample_project: ProjectInput):
        blueprint = sample_project.blueprint
        table = object_table(blueprint.find_object("obj-out"), blueprint)

        assert "| order_id | string | Yes | - |" in table
        assert "| items | array<OrderInput> | No | - |" in table
        assert "**items Item Structure (OrderInput):**" in table
        assert "| quantity | number | Yes | - |" in table


class TestArchitectureWriter:
    @pytest.mark.unit
    def test_render_sections(self, writer: ArchitectureWriter, sample_project: ProjectInput):
        doc = writer.render(sample_project.blueprint)

        assert doc.startswith("# Architecture Documentation")
        assert "#### Orders" in doc
        assert "- **User-specific data**: Yes" in doc
        assert "| title | VARCHAR | 120 | Yes | - | No | - |" in doc
        assert "| photo | TEXT | - | No | - | No | Image |" in doc
        assert "- **Orders.id** -> **Products.id** (many-to-many)" in doc
        assert "### POST /api/Create Order" in doc
        assert "- **User Tier**: Pro" in doc
        assert "**Implementation Notes:**\nReturn every product" in doc
        assert "### Container Views" in doc
        assert "- POST /api/Create Order" in doc
        assert "| Home (Home) | public | all | - |" in doc

    @pytest.mark.unit
    def test_empty_blueprint(self, writer: ArchitectureWriter):
        doc = writer.render(Blueprint())
        assert "*No database models defined*" in doc
        assert "*No API endpoints defined*" in doc
        assert "*No views defined*" in doc

    @pytest.mark.unit
    def test_view_api_usage(self, writer: ArchitectureWriter):
        blueprint = Blueprint.model_validate({
            "apis": [{"id": "a1", "name": "orders", "method": "GET", "requires_auth": "admin"}],
            "views": [{"id": "v1", "name": "Order List", "type": "table", "apis": ["a1"]}],
        })
        doc = writer.render(blueprint)

        assert "  - GET /api/orders (Auth Required)" in doc
        assert "- **GET /api/orders** is used by:\n  - Order List" in doc
        assert "### Unused APIs" not in doc

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_write_is_stable(self, writer: ArchitectureWriter, sample_project: ProjectInput, target_dir: Path):
        path = target_dir / "ARCHITECTURE.md"
        assert await writer.write(target_dir, sample_project.blueprint) == [path]
        assert await writer.write(target_dir, sample_project.blueprint) == []
