"""Pydantic v2 models for blueprint payloads.

Defines the canonical data model for application blueprints: schema models
and their migration history, views, pages, menus, API definitions, object
definitions, design settings, and the generated code that accompanies them.

Blueprint payloads arrive as JSON written by another toolchain, so booleans
frequently appear as the strings ``"true"``/``"false"`` and keys are a mix of
snake_case and camelCase.  The models accept both spellings and keep unknown
keys so nothing a later stage might need is dropped.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Lenient scalar types
# ---------------------------------------------------------------------------

def _coerce_bool(value: Any) -> bool:
    """Accept real booleans as well as ``"true"``/``"false"`` style strings."""
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    if value is None:
        return False
    return bool(value)


def _coerce_str(value: Any) -> str:
    """``None`` becomes ``""``; numbers are stringified."""
    if value is None:
        return ""
    return str(value)


LooseBool = Annotated[bool, BeforeValidator(_coerce_bool)]
LooseStr = Annotated[str, BeforeValidator(_coerce_str)]


class _BlueprintModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, protected_namespaces=())


# ---------------------------------------------------------------------------
# Schema models
# ---------------------------------------------------------------------------

class ModelField(_BlueprintModel):
    """A single column of a schema model."""
    name: str = Field(..., description="Column name")
    datatype: LooseStr = Field(default="TEXT", description="Source type, e.g. 'UUID', 'VARCHAR'")
    size: LooseStr = Field(
        default="",
        validation_alias=AliasChoices("size", "datatypesize"),
        description="Size qualifier, only meaningful for VARCHAR",
    )
    required: LooseBool = Field(default=False)
    key: LooseStr = Field(default="", description="'primary', 'foreign', 'unique' or empty")
    is_image: LooseBool = Field(default=False)
    is_file: LooseBool = Field(default=False)
    is_searchable: LooseBool = Field(default=False)
    untouchable: LooseBool = Field(default=False)


class Model(_BlueprintModel):
    """A schema model, compiled to one table."""
    id: str = Field(..., description="Stable model identifier")
    name: str = Field(default="", description="Human name; lower-cased into the table name")
    fields: list[ModelField] = Field(default_factory=list)
    user_specific: LooseBool = Field(
        default=False,
        validation_alias=AliasChoices("user_specific", "userSpecific", "data_is_user_specific"),
        description="Rows belong to a user; adds a userid column and foreign key",
    )
    state: LooseStr = Field(default="persistent")
    has_db_crud: LooseStr = Field(default="")
    add_auth_required: LooseStr = Field(default="", validation_alias=AliasChoices("add_auth_required", "addAuthRequired"))
    get_auth_required: LooseStr = Field(default="", validation_alias=AliasChoices("get_auth_required", "getAuthRequired"))
    update_auth_required: LooseStr = Field(default="", validation_alias=AliasChoices("update_auth_required", "updateAuthRequired"))
    delete_auth_required: LooseStr = Field(default="", validation_alias=AliasChoices("delete_auth_required", "deleteAuthRequired"))

    @model_validator(mode="after")
    def _unique_field_names(self) -> "Model":
        seen: set[str] = set()
        for field in self.fields:
            lowered = field.name.lower()
            if lowered in seen:
                raise ValueError(f"duplicate field '{field.name}' in model '{self.id}'")
            seen.add(lowered)
        return self

    @property
    def table_name(self) -> str:
        return (self.name or self.id or "table").lower()


class Change(_BlueprintModel):
    """One entry of a migration's change-set."""
    type: Literal["model", "field", "constraint"] = Field(...)
    operation: Literal["add", "remove", "modify"] = Field(...)
    field: Optional[str] = Field(default=None, description="Target field for remove/modify")
    old_value: Any = Field(default=None, validation_alias=AliasChoices("old_value", "oldValue"))
    new_value: Any = Field(default=None, validation_alias=AliasChoices("new_value", "newValue"))
    details: Optional[str] = Field(default=None)


class Migration(_BlueprintModel):
    """An ordered change-set against a single model."""
    id: LooseStr = Field(default="")
    timestamp: LooseStr = Field(default="")
    model_id: LooseStr = Field(default="", validation_alias=AliasChoices("model_id", "modelId"))
    model_name: LooseStr = Field(default="", validation_alias=AliasChoices("model_name", "modelName"))
    action: Literal["create", "update", "delete"] = Field(...)
    changes: list[Change] = Field(default_factory=list)

    @property
    def table_name(self) -> str:
        return (self.model_name or self.model_id).lower()


# ---------------------------------------------------------------------------
# Presentation models
# ---------------------------------------------------------------------------

class View(_BlueprintModel):
    """A renderable section of a page (text, image, menu, container, ...)."""
    id: str = Field(...)
    name: LooseStr = Field(default="")
    type: LooseStr = Field(default="text")
    background_image: LooseStr = Field(default="")
    background_color: LooseStr = Field(default="")
    text_color: LooseStr = Field(default="")
    custom_view_description: Any = Field(default="")
    prompt: LooseStr = Field(default="")
    padding_left: Optional[int] = Field(default=None, validation_alias=AliasChoices("padding_left", "paddingLeft"))
    padding_right: Optional[int] = Field(default=None, validation_alias=AliasChoices("padding_right", "paddingRight"))
    padding_top: Optional[int] = Field(default=None, validation_alias=AliasChoices("padding_top", "paddingTop"))
    padding_bottom: Optional[int] = Field(default=None, validation_alias=AliasChoices("padding_bottom", "paddingBottom"))
    min_height: Optional[int] = Field(default=None, validation_alias=AliasChoices("min_height", "minHeight"))
    max_width: Optional[int] = Field(default=None, validation_alias=AliasChoices("max_width", "maxWidth"))
    align: LooseStr = Field(default="")
    vertical_align: LooseStr = Field(default="", validation_alias=AliasChoices("vertical_align", "verticalAlign"))
    flow_vertical: LooseBool = Field(default=False, validation_alias=AliasChoices("flow_vertical", "flowVertical"))


class PageView(_BlueprintModel):
    """Placement of a view on a page's 12-column grid."""
    id: str = Field(...)
    rowpos: int = Field(default=0)
    colpos: int = Field(default=1)
    colposmd: Optional[int] = Field(default=None)
    colpossm: Optional[int] = Field(default=None)


class Page(_BlueprintModel):
    """A routable page composed of views."""
    id: str = Field(...)
    name: LooseStr = Field(default="")
    description: LooseStr = Field(default="")
    is_home: LooseBool = Field(default=False)
    views: list[PageView] = Field(default_factory=list)


class Menu(_BlueprintModel):
    """A navigation menu; items are kept as raw dicts for the renderer."""
    id: str = Field(...)
    name: LooseStr = Field(default="")
    items: list[dict[str, Any]] = Field(default_factory=list)


class Design(_BlueprintModel):
    """Global design tokens merged into the stylesheet."""
    model_config = ConfigDict(
        extra="allow", populate_by_name=True, alias_generator=to_camel, protected_namespaces=()
    )

    logo: LooseStr = ""
    favicon: LooseStr = ""
    generatefavicon: LooseBool = True
    title_color: LooseStr = ""
    text_color: LooseStr = ""
    accent_color: LooseStr = ""
    accent_text_color: LooseStr = ""
    background_color: LooseStr = ""
    title_font: LooseStr = ""
    text_font: LooseStr = ""
    logo_font: LooseStr = ""
    title_font_size: LooseStr = ""
    text_font_size: LooseStr = ""
    button_roundedness: LooseStr = ""


# ---------------------------------------------------------------------------
# API & object models
# ---------------------------------------------------------------------------

class ObjectProperty(_BlueprintModel):
    """A property of an API input/output object."""
    name: str = Field(...)
    type: LooseStr = Field(default="string")
    required: LooseBool = Field(default=False)
    description: LooseStr = Field(default="")
    object_id: Optional[str] = Field(default=None)
    array_item_type: Optional[str] = Field(default=None)
    array_item_object_id: Optional[str] = Field(default=None)


class ObjectDefinition(_BlueprintModel):
    """A named object shape referenced by APIs."""
    id: str = Field(...)
    name: str = Field(...)
    description: LooseStr = Field(default="")
    properties: list[ObjectProperty] = Field(default_factory=list)


class Api(_BlueprintModel):
    """An API route definition."""
    id: str = Field(...)
    name: LooseStr = Field(default="")
    method: LooseStr = Field(default="GET")
    requires_auth: LooseStr = Field(default="")
    user_tier: LooseStr = Field(default="")
    prompt: LooseStr = Field(default="")
    input_object_id: Optional[str] = Field(default=None)
    output_object_id: Optional[str] = Field(default=None)
    apikeys: list[str] = Field(default_factory=list)
    returns_redirect: LooseBool = Field(
        default=False, validation_alias=AliasChoices("returns_redirect", "returnsRedirect")
    )
    redirect_callback_page_id: LooseStr = Field(
        default="", validation_alias=AliasChoices("redirect_callback_page_id", "redirectCallbackPageId")
    )


class SampleData(_BlueprintModel):
    """Seed SQL for one table; may embed ``'image|<uuid>'`` media references."""
    table_name: LooseStr = Field(default="", validation_alias=AliasChoices("table_name", "tableName"))
    sql: LooseStr = Field(default="")


class ErRelationship(_BlueprintModel):
    to: str = Field(...)
    prop_a: LooseStr = Field(default="", validation_alias=AliasChoices("prop_a", "propA"))
    prop_b: LooseStr = Field(default="", validation_alias=AliasChoices("prop_b", "propB"))
    type: LooseStr = Field(default="")


class ErDiagram(_BlueprintModel):
    model_id: str = Field(...)
    relationships: list[ErRelationship] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Blueprint & project payload
# ---------------------------------------------------------------------------

class Blueprint(_BlueprintModel):
    """The full declarative application description."""
    models: list[Model] = Field(default_factory=list)
    migrations: list[Migration] = Field(default_factory=list)
    views: list[View] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    menus: list[Menu] = Field(default_factory=list)
    apis: list[Api] = Field(default_factory=list)
    objects: list[ObjectDefinition] = Field(default_factory=list)
    sample_data: list[SampleData] = Field(default_factory=list)
    er_diagram: list[ErDiagram] = Field(default_factory=list)
    design: Design = Field(default_factory=Design)

    @model_validator(mode="after")
    def _unique_model_ids(self) -> "Blueprint":
        seen: set[str] = set()
        for model in self.models:
            if model.id in seen:
                raise ValueError(f"duplicate model id '{model.id}'")
            seen.add(model.id)
        return self

    def find_object(self, object_id: str | None) -> ObjectDefinition | None:
        if not object_id:
            return None
        return next((o for o in self.objects if o.id == object_id), None)


class CodeSnippet(_BlueprintModel):
    code: LooseStr = Field(default="")


class CodeGroup(_BlueprintModel):
    """Generated code for one blueprint entity, keyed by its id."""
    id: str = Field(...)
    apis: list[CodeSnippet] = Field(default_factory=list)


class Code(_BlueprintModel):
    """Generated code payload accompanying a blueprint."""
    views: list[dict[str, Any]] = Field(default_factory=list)
    apis: list[CodeGroup] = Field(default_factory=list)

    def api_code(self, api_id: str) -> str:
        """Return the first generated snippet for *api_id*, or ``""``."""
        for group in self.apis:
            if group.id == api_id and group.apis:
                return group.apis[0].code
        return ""


class AuthProviders(_BlueprintModel):
    apple: LooseBool = False
    facebook: LooseBool = False
    github: LooseBool = False
    google: LooseBool = False


class ProjectInput(_BlueprintModel):
    """Canonical project payload entering the pipeline."""
    blueprint: Blueprint = Field(...)
    code: Optional[Code] = Field(default=None)
    name: Optional[str] = Field(default=None)
    auth_providers: Optional[AuthProviders] = Field(
        default=None, validation_alias=AliasChoices("auth_providers", "AuthProviders")
    )
