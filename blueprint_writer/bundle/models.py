"""Pydantic models for file bundles and their application results."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..errors import ConflictError


class OverwriteMode(str, Enum):
    """Policy for an existing destination whose content differs."""
    FAIL = "fail"
    SKIP = "skip"
    BACKUP = "backup"
    OVERWRITE = "overwrite"


class ManifestEntry(BaseModel):
    """One path of the desired tree."""
    path: str = Field(..., description="Slash-separated path relative to the target directory")
    mode: Literal["file", "dir"] = Field(default="file")
    size: Optional[int] = Field(default=None, ge=0)


class BundleFile(BaseModel):
    """Content for one ``file`` manifest entry."""
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(...)
    contents_base64: str = Field(
        ..., validation_alias=AliasChoices("contents_base64", "contentsBase64")
    )
    hash: Optional[str] = Field(default=None, description="Hex SHA-256 of the decoded bytes")


class JobResultSummary(BaseModel):
    """Disjoint partition of the relative paths processed by one application."""
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    backups: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """``True`` if anything was written."""
        return bool(self.created or self.updated)

    def raise_for_conflicts(self) -> None:
        """Raise :class:`ConflictError` if any file conflicted."""
        if self.conflicts:
            raise ConflictError(self.conflicts)
