"""Blueprint data model and payload normalisation.

Quick usage::

    from blueprint_writer.blueprint import normalize_project_payload

    project = normalize_project_payload({"data": {"blueprint": {...}, "code": {...}}})
    for model in project.blueprint.models:
        print(model.table_name)
"""

from blueprint_writer.blueprint.adapter import normalize_project_payload
from blueprint_writer.blueprint.models import (
    Api,
    Blueprint,
    Change,
    Code,
    Design,
    Migration,
    Model,
    ModelField,
    ObjectDefinition,
    Page,
    ProjectInput,
    View,
)

__all__ = [
    "Api",
    "Blueprint",
    "Change",
    "Code",
    "Design",
    "Migration",
    "Model",
    "ModelField",
    "ObjectDefinition",
    "Page",
    "ProjectInput",
    "View",
    "normalize_project_payload",
]
