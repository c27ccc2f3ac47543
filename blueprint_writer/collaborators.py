"""Interfaces of the external collaborators the pipeline talks to.

The pipeline depends only on these shapes.  ``MediaClient`` and
``DefaultViewRenderer`` are the shipped implementations of the first two;
session lookup and email delivery belong to the generated application and
are described here so hosts can type their adapters against them.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .blueprint.models import AuthProviders, Blueprint, Code


class MediaPayload(BaseModel):
    """Decoded media returned by a fetcher."""

    content: bytes = Field(..., description="Raw image bytes")
    content_type: str = Field(default="", description="MIME type hint, possibly empty")


class ViewComponent(BaseModel):
    """How a page imports the component generated for one view."""

    component_name: str = Field(...)
    rel_import: str = Field(..., description="Import path relative to src/app/<page>/page.tsx")


class RenderedViews(BaseModel):
    """Output of a view renderer: view id to component, plus CSS fragments."""

    view_map: dict[str, ViewComponent] = Field(default_factory=dict)
    styles: list[str] = Field(default_factory=list)
    files: list[Path] = Field(default_factory=list)


@runtime_checkable
class MediaFetcher(Protocol):
    """Turns a media identifier into bytes; raises on failure."""

    async def fetch(self, identifier: str) -> MediaPayload: ...


@runtime_checkable
class ViewRenderer(Protocol):
    """Renders blueprint views into component files under *target_dir*."""

    async def render(
        self,
        target_dir: Path,
        blueprint: "Blueprint",
        code: Optional["Code"],
        auth_providers: Optional["AuthProviders"],
    ) -> RenderedViews: ...


@runtime_checkable
class SessionLookup(Protocol):
    """Resolves a session token to a user record, or ``None``."""

    async def lookup(self, token: str) -> Optional[dict[str, Any]]: ...


@runtime_checkable
class EmailSender(Protocol):
    """Delivers one outbound message."""

    async def send(self, to: str, subject: str, body: str) -> None: ...
