"""Default application files: database layer, auth, middleware, env docs.

Everything here is written only when absent.  Once a generated project
exists, these files belong to its owner.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from ..migrations.dialects import DIALECTS, Dialect, get_dialect
from ..utils import package_name
from .templates import ASSETS_DIR, TemplateRenderer, copy_tree_if_absent


DEFAULT_APP_ASSETS = ASSETS_DIR / "defaultapp"

# Handled individually below rather than by the bulk copy.
_DB_IMPLEMENTATIONS = frozenset(f"db-{d.value}.ts" for d in DIALECTS)
_EXCLUDED = _DB_IMPLEMENTATIONS | {"middleware.ts"}


class DefaultAppWriter:
    """Copies the default app into ``src/app`` and renders its database glue."""

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    async def write(
        self,
        target_dir: Path,
        dialect: Dialect | str,
        project_name: str | None = None,
    ) -> list[Path]:
        """Write the default application for *dialect*.

        Returns:
            Paths created by this call (existing files are left alone).
        """
        spec = get_dialect(dialect)
        app_dir = target_dir / "src" / "app"
        written = await asyncio.to_thread(
            copy_tree_if_absent, DEFAULT_APP_ASSETS, app_dir, _EXCLUDED
        )

        copies = (
            (DEFAULT_APP_ASSETS / f"db-{spec.name}.ts", app_dir / f"db-{spec.name}.ts"),
            (DEFAULT_APP_ASSETS / "middleware.ts", target_dir / "src" / "middleware.ts"),
        )
        for source, dest in copies:
            if not dest.exists():
                await asyncio.to_thread(shutil.copyfile, source, dest)
                written.append(dest)

        context = {
            "dialect": spec.name,
            "dialect_label": spec.label,
            "driver": spec.driver_package[0],
            "supports_drop_column": spec.supports_drop_column,
            "project_name": package_name(project_name).replace("-", "_"),
        }
        rendered = (
            ("defaultapp/db.ts.j2", app_dir / "db.ts"),
            ("defaultapp/env.example.j2", target_dir / ".env.example"),
            ("defaultapp/DATABASE_SETUP.md.j2", target_dir / "DATABASE_SETUP.md"),
        )
        for template, dest in rendered:
            path = await self.renderer.render_to_file(template, dest, context, only_if_absent=True)
            if path is not None:
                written.append(path)
        return written
