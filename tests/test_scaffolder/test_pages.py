"""Unit tests for PageWriter (blueprint_writer.scaffolder.pages)."""

from __future__ import annotations

from pathlib import Path

import pytest

from blueprint_writer.blueprint import Blueprint, ProjectInput
from blueprint_writer.collaborators import ViewComponent
from blueprint_writer.scaffolder import DefaultViewRenderer, PageWriter, TemplateRenderer


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


async def _write_pages(renderer: TemplateRenderer, target: Path, blueprint: Blueprint) -> list[Path]:
    rendered = await DefaultViewRenderer(renderer).render(target, blueprint, None, None)
    return await PageWriter(renderer).write(target, blueprint, rendered.view_map)


class TestPageWriter:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_page_locations(self, renderer, sample_project: ProjectInput, target_dir: Path):
        written = await _write_pages(renderer, target_dir, sample_project.blueprint)
        app = target_dir / "src" / "app"
        assert written == [app / "page.tsx", app / "about_us" / "page.tsx"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_home_imports_are_one_level_up(self, renderer, sample_project, target_dir: Path):
        await _write_pages(renderer, target_dir, sample_project.blueprint)
        home = (target_dir / "src" / "app" / "page.tsx").read_text(encoding="utf-8")

        assert "import LogoView from '../views/logo';" in home
        assert "import MainMenuView from '../views/main_menu';" in home
        assert "import HeroView from '../views/hero';" in home
        assert 'title: "Home"' in home

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rows_that_fill_twelve_keep_spans(self, renderer, sample_project, target_dir: Path):
        await _write_pages(renderer, target_dir, sample_project.blueprint)
        home = (target_dir / "src" / "app" / "page.tsx").read_text(encoding="utf-8")

        assert home.count('<div className="h-full gap-4 grid grid-cols-12 relative">') == 2
        assert "col-span-3 md:col-span-3 lg:col-span-3" in home
        assert "col-span-9 md:col-span-9 lg:col-span-9" in home
        assert "col-span-12 md:col-span-12 lg:col-span-12" in home

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_short_rows_split_evenly(self, renderer, sample_project, target_dir: Path):
        await _write_pages(renderer, target_dir, sample_project.blueprint)
        about = (target_dir / "src" / "app" / "about_us" / "page.tsx").read_text(encoding="utf-8")

        assert "import FeatureBoxView from '../../views/feature_box';" in about
        assert about.count("col-span-6 md:col-span-6 lg:col-span-6") == 2
        assert "col-span-4" not in about
        assert "<IntroView isContainer={false} />" in about
        assert about.index("<FeatureBoxView />") < about.index("<IntroView")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_views_are_skipped(self, renderer, target_dir: Path):
        blueprint = Blueprint.model_validate({
            "pages": [{"id": "p", "name": "Empty", "views": [{"id": "ghost", "colpos": 12}]}]
        })
        written = await PageWriter(renderer).write(target_dir, blueprint, {})

        page = (target_dir / "src" / "app" / "empty" / "page.tsx").read_text(encoding="utf-8")
        assert "/views/" not in page
        assert "<div />" in page
        assert "grid-cols-12" not in page
        assert target_dir / "src" / "app" / "page.tsx" in written

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_page_without_views_renders_empty_main(self, renderer, target_dir: Path):
        blueprint = Blueprint.model_validate({"pages": [{"id": "p", "name": "Blank", "is_home": True}]})
        await PageWriter(renderer).write(target_dir, blueprint, {})
        page = (target_dir / "src" / "app" / "page.tsx").read_text(encoding="utf-8")
        assert "<div />" in page

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_placeholder_home_only_when_missing(self, renderer, target_dir: Path):
        blueprint = Blueprint.model_validate({"pages": [{"id": "p", "name": "Contact"}]})
        home = target_dir / "src" / "app" / "page.tsx"
        home.parent.mkdir(parents=True)
        home.write_text("// my home\n", encoding="utf-8")

        written = await PageWriter(renderer).write(target_dir, blueprint, {})

        assert written == [target_dir / "src" / "app" / "contact" / "page.tsx"]
        assert home.read_text(encoding="utf-8") == "// my home\n"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rewrite_is_noop(self, renderer, target_dir: Path):
        blueprint = Blueprint.model_validate({
            "views": [{"id": "v", "name": "Note", "type": "text"}],
            "pages": [{"id": "p", "name": "Notes", "views": [{"id": "v", "colpos": 12}]}],
        })
        view_map = {"v": ViewComponent(component_name="NoteView", rel_import="../../views/note")}
        writer = PageWriter(renderer)
        first = await writer.write(target_dir, blueprint, view_map)
        assert target_dir / "src" / "app" / "notes" / "page.tsx" in first
        assert await writer.write(target_dir, blueprint, view_map) == []
