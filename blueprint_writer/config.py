"""Blueprint writer configuration.

Centralised, typed configuration for the generation pipeline.  All settings
use Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .bundle.models import OverwriteMode
from .migrations.dialects import Dialect
from .utils import ALLOWED_ROOTS_ENV, is_debug_enabled, parse_allowed_roots


class MediaConfig(BaseModel):
    """Configuration for the remote media service."""

    base_url: str = Field(default="https://sitepaige.com")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")


class Config(BaseModel):
    """Global blueprint writer configuration.

    Instances are typically created once by the CLI entry point (or by
    :meth:`from_env`) and then handed to :class:`~blueprint_writer.pipeline.Pipeline`.
    """

    project_name: str = Field(default="")
    allowed_roots: list[Path] = Field(default_factory=lambda: [Path.cwd().resolve()])
    dialect: Dialect = Field(default=Dialect.SQLITE)
    overwrite_mode: OverwriteMode = Field(default=OverwriteMode.FAIL)
    debug: bool = Field(default=False)
    media: MediaConfig = Field(default_factory=MediaConfig)

    @field_validator("allowed_roots")
    @classmethod
    def _resolve_roots(cls, value: list[Path]) -> list[Path]:
        if not value:
            raise ValueError("at least one allowed root is required")
        return [Path(p).resolve() for p in value]

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            BLUEPRINT_ALLOWED_ROOTS, BLUEPRINT_DIALECT, BLUEPRINT_DEBUG,
            BLUEPRINT_OVERWRITE_MODE, BLUEPRINT_PROJECT_NAME,
            BLUEPRINT_MEDIA_URL, BLUEPRINT_MEDIA_TIMEOUT.
        """
        media_kwargs: dict[str, Any] = {}
        if os.environ.get("BLUEPRINT_MEDIA_URL"):
            media_kwargs["base_url"] = os.environ["BLUEPRINT_MEDIA_URL"]
        if os.environ.get("BLUEPRINT_MEDIA_TIMEOUT"):
            media_kwargs["timeout"] = float(os.environ["BLUEPRINT_MEDIA_TIMEOUT"])

        kwargs: dict[str, Any] = {
            "project_name": os.environ.get("BLUEPRINT_PROJECT_NAME", ""),
            "allowed_roots": parse_allowed_roots(os.environ.get(ALLOWED_ROOTS_ENV, "")),
            "debug": is_debug_enabled(),
            "media": MediaConfig(**media_kwargs),
        }
        if os.environ.get("BLUEPRINT_DIALECT"):
            kwargs["dialect"] = Dialect(os.environ["BLUEPRINT_DIALECT"].strip().lower())
        if os.environ.get("BLUEPRINT_OVERWRITE_MODE"):
            kwargs["overwrite_mode"] = OverwriteMode(
                os.environ["BLUEPRINT_OVERWRITE_MODE"].strip().lower()
            )
        return cls(**kwargs)
