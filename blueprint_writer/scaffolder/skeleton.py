"""package.json merge and static project skeleton.

``package.json`` is merged, never replaced: an existing name, scripts and
dependency versions win over our defaults, so user customisations survive
regeneration.  The remaining skeleton files (Next.js, Tailwind and PostCSS
configs) are written only when absent.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from ..migrations.dialects import Dialect, get_dialect
from ..utils import debug_log, package_name
from .templates import TemplateRenderer, write_if_changed


DEFAULT_SCRIPTS: dict[str, str] = {
    "dev": "next dev",
    "build": "next build",
    "start": "next start",
}

DEFAULT_DEPENDENCIES: dict[str, str] = {
    "next": "latest",
    "react": "latest",
    "react-dom": "latest",
    "lucide-react": "latest",
    "mime-types": "^3.0.0",
    "tsx": "4.20.6",
    "tailwindcss": "^3.4.1",
    "postcss": "latest",
    "autoprefixer": "latest",
    "typescript": "latest",
    "@types/node": "latest",
    "@types/react": "latest",
    "@types/react-dom": "latest",
    "@types/mime-types": "^2.1.4",
}

# (template, output path relative to the project root)
SKELETON_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("skeleton/next.config.ts.j2", "next.config.ts"),
    ("skeleton/tailwind.config.js.j2", "tailwind.config.js"),
    ("skeleton/postcss.config.js.j2", "postcss.config.js"),
)


def merge_package_json(
    existing: dict[str, Any],
    project_name: str | None,
    dialect: Dialect | str,
) -> dict[str, Any]:
    """Return *existing* merged with the defaults for *dialect*.

    Keys already present in *existing* always take precedence.
    """
    pkg = dict(existing)
    pkg["name"] = package_name(pkg.get("name") or project_name)
    pkg["private"] = True
    pkg["scripts"] = {**DEFAULT_SCRIPTS, **(pkg.get("scripts") or {})}

    driver, version = get_dialect(dialect).driver_package
    defaults = {**DEFAULT_DEPENDENCIES, driver: version}
    pkg["dependencies"] = {**defaults, **(pkg.get("dependencies") or {})}
    pkg.setdefault("devDependencies", {})
    return pkg


class SkeletonWriter:
    """Writes ``package.json`` and the static configuration files."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    async def write_package_json(
        self,
        target_dir: Path,
        project_name: str | None,
        dialect: Dialect | str,
    ) -> Path | None:
        """Create or merge ``package.json``; returns its path if it changed."""
        pkg_path = target_dir / "package.json"
        existing: dict[str, Any] = {}
        if pkg_path.is_file():
            try:
                loaded = json.loads(pkg_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                debug_log(f"[skeleton] unreadable {pkg_path}, starting from defaults")
                loaded = {}
            if isinstance(loaded, dict):
                existing = loaded

        merged = merge_package_json(existing, project_name, dialect)
        content = json.dumps(merged, indent=2) + "\n"
        changed = await asyncio.to_thread(write_if_changed, pkg_path, content)
        return pkg_path if changed else None

    async def write(self, target_dir: Path) -> list[Path]:
        """Create ``src/app`` and ``public`` plus any missing config files."""
        (target_dir / "src" / "app").mkdir(parents=True, exist_ok=True)
        (target_dir / "public").mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        for template, rel in SKELETON_TEMPLATES:
            path = await self.renderer.render_to_file(
                template, target_dir / rel, {}, only_if_absent=True
            )
            if path is not None:
                written.append(path)
        return written
