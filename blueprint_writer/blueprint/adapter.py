"""Normalise incoming project payloads into :class:`ProjectInput`.

Callers hand over project data in two shapes: the blueprint and code at the
top level, or nested under ``data`` as returned by the project service.  This
module folds both into one canonical model before anything reaches the core.
"""

from __future__ import annotations

from typing import Any

import pydantic

from ..errors import ValidationError
from .models import ProjectInput


def normalize_project_payload(payload: ProjectInput | dict[str, Any]) -> ProjectInput:
    """Return a validated :class:`ProjectInput` for *payload*.

    Top-level keys win over their ``data.*`` counterparts.

    Raises:
        ValidationError: If no blueprint is present or the payload does not
            validate against the blueprint models.
    """
    if isinstance(payload, ProjectInput):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError(f"Project payload must be a mapping, got {type(payload).__name__}")

    nested = payload.get("data") or {}
    if not isinstance(nested, dict):
        nested = {}

    blueprint = payload.get("blueprint") or nested.get("blueprint")
    if not blueprint:
        raise ValidationError("No blueprint found in project data")

    merged: dict[str, Any] = {
        "blueprint": blueprint,
        "code": payload.get("code") or nested.get("code"),
        "name": payload.get("name") or nested.get("name"),
        "auth_providers": payload.get("AuthProviders") or payload.get("auth_providers"),
    }

    try:
        return ProjectInput.model_validate(merged)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid project payload: {exc}") from exc
