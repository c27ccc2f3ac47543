"""Shared React components copied into ``src/components``."""

from __future__ import annotations

import asyncio
from pathlib import Path

from .templates import ASSETS_DIR, write_if_changed


COMPONENT_ASSETS = ASSETS_DIR / "components"


class ComponentWriter:
    """Keeps ``src/components`` in sync with the bundled components.

    Unlike the default app, components are refreshed on every run; a file is
    rewritten only when its content differs.
    """

    def __init__(self, source_dir: Path = COMPONENT_ASSETS) -> None:
        self.source_dir = source_dir

    def component_files(self) -> list[Path]:
        return sorted(p for p in self.source_dir.glob("*.tsx") if p.is_file())

    async def write(self, target_dir: Path) -> list[Path]:
        dest_dir = target_dir / "src" / "components"
        written: list[Path] = []
        for source in self.component_files():
            dest = dest_dir / source.name
            if await asyncio.to_thread(write_if_changed, dest, source.read_bytes()):
                written.append(dest)
        return written
