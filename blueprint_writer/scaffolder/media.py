"""Media resolution: fetch every image a blueprint references, once.

Identifiers are UUIDs, written either bare or as ``image|<uuid>``.  They
come from the design (logo, favicon), from image/logo views, and from seed
SQL (``'image|<uuid>'`` or ``="image|<uuid>"``).  Each distinct identifier
is fetched concurrently, saved under ``public/`` and every occurrence in the
blueprint is rewritten to the public path.  A failed fetch only leaves that
identifier unresolved.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..blueprint.models import Blueprint
from ..collaborators import MediaFetcher, MediaPayload
from ..errors import CollaboratorError
from ..utils import debug_log
from .templates import write_if_changed


IMAGE_PREFIX = "image|"

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_UUID_RE = re.compile(rf"^{_UUID}$", re.IGNORECASE)
_SQL_PATTERNS = (
    re.compile(rf"'image\|({_UUID})'", re.IGNORECASE),
    re.compile(rf'="image\|({_UUID})"', re.IGNORECASE),
)
_EMBEDDED_RE = re.compile(rf"image\|({_UUID})", re.IGNORECASE)

_CONTENT_TYPE_EXTENSIONS = (
    ("image/png", ".png"),
    ("image/jpeg", ".jpg"),
    ("image/jpg", ".jpg"),
    ("image/webp", ".webp"),
    ("image/gif", ".gif"),
    ("image/svg", ".svg"),
)


@dataclass(frozen=True)
class MediaRef:
    """A media identifier and where it must be stored."""

    identifier: str
    is_logo: bool = False
    is_favicon: bool = False


class MediaOutcome(BaseModel):
    """Result of resolving one identifier."""

    identifier: str = Field(...)
    resolved: bool = Field(default=False)
    public_path: Optional[str] = Field(default=None, description="e.g. /images/<uuid>.png")
    reason: Optional[str] = Field(default=None, description="Why resolution failed")


class MediaResolution(BaseModel):
    """Derived blueprint plus one outcome per identifier."""

    blueprint: Blueprint = Field(...)
    outcomes: list[MediaOutcome] = Field(default_factory=list)
    files: list[Path] = Field(default_factory=list)

    @property
    def resolved(self) -> dict[str, str]:
        return {o.identifier: o.public_path for o in self.outcomes if o.resolved and o.public_path}

    @property
    def unresolved(self) -> dict[str, str]:
        return {o.identifier: o.reason or "unknown error" for o in self.outcomes if not o.resolved}


# ---------------------------------------------------------------------------
# Identifier collection
# ---------------------------------------------------------------------------


def parse_media_identifier(value: Any) -> str | None:
    """Return the UUID in *value* (``image|<uuid>`` or bare), else ``None``."""
    if not isinstance(value, str) or not value:
        return None
    candidate = value[len(IMAGE_PREFIX):] if value.startswith(IMAGE_PREFIX) else value
    return candidate if _UUID_RE.match(candidate) else None


def collect_media_refs(blueprint: Blueprint) -> dict[str, MediaRef]:
    """Collect every media identifier in *blueprint*, first occurrence wins."""
    refs: dict[str, MediaRef] = {}

    def add(value: Any, *, is_logo: bool = False, is_favicon: bool = False) -> None:
        identifier = parse_media_identifier(value)
        if identifier and identifier not in refs:
            refs[identifier] = MediaRef(identifier, is_logo=is_logo, is_favicon=is_favicon)

    add(blueprint.design.logo, is_logo=True)
    add(blueprint.design.favicon, is_favicon=True)

    for view in blueprint.views:
        kind = view.type.lower()
        is_logo_view = kind == "logo"
        add(view.background_image, is_logo=is_logo_view)
        if kind in ("image", "logo"):
            add(view.custom_view_description or view.background_image, is_logo=is_logo_view)

    for row in blueprint.sample_data:
        for pattern in _SQL_PATTERNS:
            for match in pattern.finditer(row.sql):
                add(match.group(1))
    return refs


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------


def extension_for_content_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    lowered = content_type.lower()
    for needle, ext in _CONTENT_TYPE_EXTENSIONS:
        if needle in lowered:
            return ext
    return None


def detect_extension(data: bytes) -> str:
    """Sniff PNG/JPEG/WebP magic bytes; defaults to ``.jpg``."""
    if len(data) >= 12:
        if data[:4] == b"\x89PNG":
            return ".png"
        if data[:3] == b"\xff\xd8\xff":
            return ".jpg"
        if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
            return ".webp"
    return ".jpg"


def public_path_for(ref: MediaRef, payload: MediaPayload) -> str:
    """Public URL path the media for *ref* is stored under."""
    ext = extension_for_content_type(payload.content_type) or detect_extension(payload.content)
    if ref.is_logo:
        return f"/logo{ext}"
    if ref.is_favicon:
        return "/favicon.ico"
    return f"/images/{ref.identifier}{ext}"


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------


def _replace_refs(value: Any, mapping: dict[str, str]) -> Any:
    if isinstance(value, dict):
        return {k: _replace_refs(v, mapping) for k, v in value.items()}
    if isinstance(value, list):
        return [_replace_refs(v, mapping) for v in value]
    if not isinstance(value, str):
        return value

    identifier = parse_media_identifier(value)
    if identifier is not None:
        return mapping.get(identifier, value)
    # Embedded references such as seed SQL values.
    return _EMBEDDED_RE.sub(lambda m: mapping.get(m.group(1), m.group(0)), value)


def rewrite_media_refs(blueprint: Blueprint, mapping: dict[str, str]) -> Blueprint:
    """Return a copy of *blueprint* with resolved identifiers replaced.

    Unresolved identifiers are left untouched; the input is not mutated.
    """
    if not mapping:
        return blueprint.model_copy(deep=True)
    data = _replace_refs(blueprint.model_dump(), mapping)
    return Blueprint.model_validate(data)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class MediaResolver:
    """Fetches, stores and rewrites the media a blueprint references."""

    def __init__(self, fetcher: MediaFetcher | None) -> None:
        self.fetcher = fetcher

    async def _resolve_one(
        self, target_dir: Path, ref: MediaRef
    ) -> tuple[MediaOutcome, Path | None]:
        if self.fetcher is None:
            return MediaOutcome(identifier=ref.identifier, reason="no media fetcher configured"), None
        try:
            payload = await self.fetcher.fetch(ref.identifier)
        except CollaboratorError as exc:
            return MediaOutcome(identifier=ref.identifier, reason=exc.reason), None
        except Exception as exc:  # noqa: BLE001
            return MediaOutcome(identifier=ref.identifier, reason=f"{type(exc).__name__}: {exc}"), None

        if not payload.content:
            return MediaOutcome(identifier=ref.identifier, reason="empty media payload"), None

        public_path = public_path_for(ref, payload)
        dest = target_dir / "public" / public_path.lstrip("/")
        changed = await asyncio.to_thread(write_if_changed, dest, payload.content)
        outcome = MediaOutcome(identifier=ref.identifier, resolved=True, public_path=public_path)
        return outcome, dest if changed else None

    async def resolve(self, target_dir: Path, blueprint: Blueprint) -> MediaResolution:
        """Resolve every identifier in *blueprint* into a derived blueprint."""
        refs = collect_media_refs(blueprint)
        if not refs:
            return MediaResolution(blueprint=blueprint)

        debug_log(f"[media] resolving {len(refs)} identifier(s)")
        results = await asyncio.gather(
            *(self._resolve_one(target_dir, ref) for ref in refs.values())
        )
        outcomes = [outcome for outcome, _ in results]
        files = [path for _, path in results if path is not None]
        for outcome in outcomes:
            if not outcome.resolved:
                debug_log(f"[media] unresolved {outcome.identifier}: {outcome.reason}")

        mapping = {o.identifier: o.public_path for o in outcomes if o.resolved and o.public_path}
        return MediaResolution(
            blueprint=rewrite_media_refs(blueprint, mapping),
            outcomes=outcomes,
            files=files,
        )
