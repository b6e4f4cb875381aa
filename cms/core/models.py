"""Pydantic models for schema definitions, entries, media and settings.

Field definitions are a tagged union discriminated on ``type``: each variant
carries exactly the constraint members its field type understands, so a text
field can never carry a component reference. All models use snake_case
attributes with camelCase aliases, which is the persisted and exported form.
"""

import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .exceptions import InvalidFieldDefinitionError, UnknownFieldTypeError


# Version written into bundles; import always accepts it
BUNDLE_FORMAT_VERSION = "1.0.0"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware values pass through."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def generate_id() -> str:
    return uuid.uuid4().hex


class FieldType(str, Enum):
    """Field type tags understood by the schema registry."""

    TEXT = "text"
    LONGTEXT = "longtext"
    RICHTEXT = "richtext"
    NUMBER = "number"
    DECIMAL = "decimal"
    FLOAT = "float"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    BOOLEAN = "boolean"
    EMAIL = "email"
    PASSWORD = "password"
    ENUMERATION = "enumeration"
    MEDIA = "media"
    RELATION = "relation"
    JSON = "json"
    UID = "uid"
    COMPONENT = "component"
    REPEATABLE_COMPONENT = "repeatable-component"
    DYNAMIC_ZONE = "dynamic-zone"


COMPONENT_FIELD_TYPES = frozenset(
    {FieldType.COMPONENT.value, FieldType.REPEATABLE_COMPONENT.value}
)


class ContentTypeKind(str, Enum):
    SINGLE = "single"
    COLLECTION = "collection"


class EntryStatus(str, Enum):
    """Draft & Publish lifecycle states."""

    DRAFT = "draft"
    PUBLISHED = "published"
    MODIFIED = "modified"
    SCHEDULED = "scheduled"


class RelationType(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class CMSModel(BaseModel):
    """Base model with camelCase aliases for storage and export."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible, camelCase storage form."""
        return self.model_dump(mode="json", by_alias=True)


# Field definitions


class BaseFieldDefinition(CMSModel):
    """Members shared by every field type."""

    model_config = ConfigDict(extra="forbid")

    name: str
    required: bool = False
    unique: bool = False
    private: bool = False
    localized: bool = False
    default_value: Any = None


class TextFieldDefinition(BaseFieldDefinition):
    type: Literal["text", "longtext"]
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None


class RichTextFieldDefinition(BaseFieldDefinition):
    type: Literal["richtext"]
    max_length: int | None = Field(default=None, ge=0)


class PasswordFieldDefinition(BaseFieldDefinition):
    type: Literal["password"]
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)


class NumberFieldDefinition(BaseFieldDefinition):
    type: Literal["number", "decimal", "float"]
    min: float | None = None
    max: float | None = None


class DateFieldDefinition(BaseFieldDefinition):
    type: Literal["date", "datetime", "time"]


class BooleanFieldDefinition(BaseFieldDefinition):
    type: Literal["boolean"]


class EmailFieldDefinition(BaseFieldDefinition):
    type: Literal["email"]


class EnumerationFieldDefinition(BaseFieldDefinition):
    type: Literal["enumeration"]
    enumeration_values: list[str] = Field(default_factory=list)


class MediaFieldDefinition(BaseFieldDefinition):
    type: Literal["media"]
    media_type: Literal["image", "video", "file", "all"] = "all"
    multiple: bool = False


class RelationFieldDefinition(BaseFieldDefinition):
    type: Literal["relation"]
    relation_target: str | None = None
    relation_type: RelationType | None = None


class JsonFieldDefinition(BaseFieldDefinition):
    type: Literal["json"]


class UidFieldDefinition(BaseFieldDefinition):
    type: Literal["uid"]
    uid_target: str | None = None


class ComponentFieldDefinition(BaseFieldDefinition):
    type: Literal["component", "repeatable-component"]
    component_id: str | None = None
    min_components: int | None = Field(default=None, ge=0)
    max_components: int | None = Field(default=None, ge=0)


class DynamicZoneFieldDefinition(BaseFieldDefinition):
    type: Literal["dynamic-zone"]
    allowed_components: list[str] = Field(default_factory=list)
    min_components: int | None = Field(default=None, ge=0)
    max_components: int | None = Field(default=None, ge=0)


FieldDefinition = Annotated[
    TextFieldDefinition
    | RichTextFieldDefinition
    | PasswordFieldDefinition
    | NumberFieldDefinition
    | DateFieldDefinition
    | BooleanFieldDefinition
    | EmailFieldDefinition
    | EnumerationFieldDefinition
    | MediaFieldDefinition
    | RelationFieldDefinition
    | JsonFieldDefinition
    | UidFieldDefinition
    | ComponentFieldDefinition
    | DynamicZoneFieldDefinition,
    Field(discriminator="type"),
]

FIELD_DEFINITION_MODELS: tuple[type[BaseFieldDefinition], ...] = (
    TextFieldDefinition,
    RichTextFieldDefinition,
    PasswordFieldDefinition,
    NumberFieldDefinition,
    DateFieldDefinition,
    BooleanFieldDefinition,
    EmailFieldDefinition,
    EnumerationFieldDefinition,
    MediaFieldDefinition,
    RelationFieldDefinition,
    JsonFieldDefinition,
    UidFieldDefinition,
    ComponentFieldDefinition,
    DynamicZoneFieldDefinition,
)

_field_adapter: TypeAdapter[Any] = TypeAdapter(FieldDefinition)

_FIELD_TYPE_TAGS = frozenset(member.value for member in FieldType)


def parse_field_definition(raw: Any) -> Any:
    """Parse a raw mapping (or pass through a model) into a field definition.

    Raises:
        UnknownFieldTypeError: If ``type`` is absent or not a known tag
        InvalidFieldDefinitionError: If members do not fit the variant
    """
    if isinstance(raw, BaseFieldDefinition):
        return raw

    if not isinstance(raw, dict):
        raise InvalidFieldDefinitionError(
            f"Field definition must be a mapping, got {type(raw).__name__}"
        )

    field_type = raw.get("type")
    if not field_type:
        raise UnknownFieldTypeError("Field type is required")
    if field_type not in _FIELD_TYPE_TAGS:
        raise UnknownFieldTypeError(f"Unknown field type '{field_type}'")

    try:
        return _field_adapter.validate_python(raw)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidFieldDefinitionError(
            f"Invalid '{field_type}' field definition: {problems}", e
        ) from e


def to_attribute_names(
    data: Mapping[str, Any], *models: type[BaseModel]
) -> dict[str, Any]:
    """Rename camelCase alias keys in ``data`` to the models' attribute names.

    Keys that are already attribute names, or unknown to every model, pass
    through unchanged.
    """
    names: dict[str, str] = {}
    for model in models:
        for name, info in model.model_fields.items():
            names[info.alias or name] = name
    return {names.get(key, key): value for key, value in data.items()}


def referenced_component_id(field: BaseFieldDefinition) -> str | None:
    """Component targeted by a component/repeatable-component field, else None."""
    if isinstance(field, ComponentFieldDefinition):
        return field.component_id
    return None


# Schema records


class Component(CMSModel):
    """Reusable named group of field definitions."""

    id: str
    name: str
    display_name: str
    description: str | None = None
    category: str
    icon: str | None = None
    is_repeatable: bool = False
    min_instances: int | None = None
    max_instances: int | None = None
    default_instances: int | None = None
    fields: list[FieldDefinition] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    usage_count: int = Field(default=0, ge=0)
    used_in: list[str] = Field(default_factory=list)


class ContentType(CMSModel):
    """User-defined schema for a class of entries."""

    id: str
    name: str
    display_name: str
    description: str | None = None
    kind: ContentTypeKind = ContentTypeKind.COLLECTION
    api_id: str
    draft_and_publish: bool = True
    i18n: bool = False
    fields: list[FieldDefinition] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    entry_count: int = Field(default=0, ge=0)


# Content


class Entry(CMSModel):
    """One instance of data conforming to a content type."""

    id: str
    content_type_id: str
    status: EntryStatus = EntryStatus.DRAFT
    locale: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    created_by: str = "current-user"
    updated_by: str = "current-user"
    published_at: datetime | None = None
    scheduled_at: datetime | None = None

    @model_validator(mode="after")
    def _published_entries_carry_timestamp(self) -> "Entry":
        if self.status == EntryStatus.PUBLISHED and self.published_at is None:
            raise ValueError("Published entries must have publishedAt set")
        return self


class MediaFile(CMSModel):
    """Metadata of an uploaded asset."""

    id: str
    name: str
    filename: str
    mime_type: str
    size: int = Field(ge=0)
    width: int | None = None
    height: int | None = None
    url: str
    alt: str | None = None
    caption: str | None = None
    folder: str | None = None
    created_at: datetime
    updated_at: datetime


# Settings


class Locale(CMSModel):
    code: str
    name: str
    is_default: bool = False


class Settings(CMSModel):
    """Application-wide settings."""

    app_name: str = "My CMS"
    description: str = ""
    default_locale: str = "en"
    locales: list[Locale] = Field(
        default_factory=lambda: [Locale(code="en", name="English", is_default=True)]
    )
    timezone: str = "UTC"
    i18n_enabled: bool = False
    draft_and_publish_enabled: bool = True


class ApiToken(CMSModel):
    id: str
    name: str
    type: Literal["read-only", "full-access"] = "read-only"
    token: str
    expires_at: datetime | None = None
    created_at: datetime
    last_used_at: datetime | None = None


class Webhook(CMSModel):
    id: str
    name: str
    url: str
    events: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime
    last_triggered_at: datetime | None = None


# Export / import


class ExportBundle(CMSModel):
    """Complete snapshot of the CMS state."""

    content_types: list[ContentType] = Field(default_factory=list)
    components: list[Component] = Field(default_factory=list)
    entries: list[Entry] = Field(default_factory=list)
    media_files: list[MediaFile] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)
    version: str = BUNDLE_FORMAT_VERSION
    exported_at: datetime = Field(default_factory=utc_now)
