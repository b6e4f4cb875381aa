"""Field Type Catalog.

Static registry describing every field type tag: how the admin UI groups and
renders it, which structural members a definition of that type must carry,
and the default configuration used when a field is created with only a type
chosen. Pure lookup, no mutation.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .exceptions import UnknownFieldTypeError
from .models import FieldType, parse_field_definition


@dataclass(frozen=True)
class FieldShape:
    """Structural requirements a field definition of a given type must meet."""

    requires_enumeration_values: bool = False
    requires_component: bool = False
    requires_allowed_components: bool = False
    requires_relation: bool = False
    requires_uid_target: bool = False


@dataclass(frozen=True)
class FieldTypeSpec:
    """Catalog entry for one field type tag."""

    type: FieldType
    label: str
    description: str
    icon: str
    category: str
    has_advanced_settings: bool
    has_validation: bool
    is_complex: bool
    shape: FieldShape = field(default_factory=FieldShape)
    defaults: MappingProxyType = field(
        default_factory=lambda: MappingProxyType({"required": False})
    )


def _defaults(**values: Any) -> MappingProxyType:
    return MappingProxyType({"required": False, **values})


FIELD_CATEGORIES: dict[str, dict[str, str]] = {
    "text": {"label": "Text", "icon": "Type", "description": "Text-based fields"},
    "number": {"label": "Number", "icon": "Hash", "description": "Numeric fields"},
    "date": {"label": "Date", "icon": "Calendar", "description": "Date and time fields"},
    "media": {"label": "Media", "icon": "Image", "description": "File and media fields"},
    "relation": {
        "label": "Relation",
        "icon": "Link",
        "description": "Links to other content",
    },
    "component": {
        "label": "Component",
        "icon": "Puzzle",
        "description": "Reusable component fields",
    },
    "advanced": {
        "label": "Advanced",
        "icon": "Settings",
        "description": "Advanced field types",
    },
}


FIELD_TYPES: MappingProxyType = MappingProxyType(
    {
        FieldType.TEXT: FieldTypeSpec(
            type=FieldType.TEXT,
            label="Text",
            description="Short text input field",
            icon="Type",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
            defaults=_defaults(maxLength=255),
        ),
        FieldType.LONGTEXT: FieldTypeSpec(
            type=FieldType.LONGTEXT,
            label="Long Text",
            description="Multi-line text area",
            icon="AlignLeft",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
            defaults=_defaults(maxLength=1000),
        ),
        FieldType.RICHTEXT: FieldTypeSpec(
            type=FieldType.RICHTEXT,
            label="Rich Text",
            description="WYSIWYG editor with formatting",
            icon="FileText",
            category="text",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
        ),
        FieldType.NUMBER: FieldTypeSpec(
            type=FieldType.NUMBER,
            label="Number",
            description="Integer number input",
            icon="Hash",
            category="number",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
        ),
        FieldType.DECIMAL: FieldTypeSpec(
            type=FieldType.DECIMAL,
            label="Decimal",
            description="Decimal number with fixed precision",
            icon="Percent",
            category="number",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
        ),
        FieldType.FLOAT: FieldTypeSpec(
            type=FieldType.FLOAT,
            label="Float",
            description="Floating point number",
            icon="TrendingUp",
            category="number",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
        ),
        FieldType.DATE: FieldTypeSpec(
            type=FieldType.DATE,
            label="Date",
            description="Date picker (YYYY-MM-DD)",
            icon="Calendar",
            category="date",
            has_advanced_settings=False,
            has_validation=False,
            is_complex=False,
        ),
        FieldType.DATETIME: FieldTypeSpec(
            type=FieldType.DATETIME,
            label="Date & Time",
            description="Date and time picker",
            icon="Clock",
            category="date",
            has_advanced_settings=False,
            has_validation=False,
            is_complex=False,
        ),
        FieldType.TIME: FieldTypeSpec(
            type=FieldType.TIME,
            label="Time",
            description="Time picker (HH:MM)",
            icon="Timer",
            category="date",
            has_advanced_settings=False,
            has_validation=False,
            is_complex=False,
        ),
        FieldType.BOOLEAN: FieldTypeSpec(
            type=FieldType.BOOLEAN,
            label="Boolean",
            description="True/False toggle",
            icon="ToggleLeft",
            category="text",
            has_advanced_settings=False,
            has_validation=False,
            is_complex=False,
            defaults=_defaults(defaultValue=False),
        ),
        FieldType.EMAIL: FieldTypeSpec(
            type=FieldType.EMAIL,
            label="Email",
            description="Email address input",
            icon="Mail",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
        ),
        FieldType.PASSWORD: FieldTypeSpec(
            type=FieldType.PASSWORD,
            label="Password",
            description="Password input field",
            icon="Lock",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
        ),
        FieldType.ENUMERATION: FieldTypeSpec(
            type=FieldType.ENUMERATION,
            label="Enumeration",
            description="Dropdown with predefined options",
            icon="List",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
            shape=FieldShape(requires_enumeration_values=True),
            defaults=_defaults(enumerationValues=()),
        ),
        FieldType.MEDIA: FieldTypeSpec(
            type=FieldType.MEDIA,
            label="Media",
            description="File upload and selection",
            icon="Image",
            category="media",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
            defaults=_defaults(multiple=False, mediaType="all"),
        ),
        FieldType.RELATION: FieldTypeSpec(
            type=FieldType.RELATION,
            label="Relation",
            description="Link to other content entries",
            icon="Link",
            category="relation",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
            shape=FieldShape(requires_relation=True),
            defaults=_defaults(relationType="one-to-many"),
        ),
        FieldType.JSON: FieldTypeSpec(
            type=FieldType.JSON,
            label="JSON",
            description="JSON data structure",
            icon="Code",
            category="advanced",
            has_advanced_settings=False,
            has_validation=True,
            is_complex=True,
        ),
        FieldType.UID: FieldTypeSpec(
            type=FieldType.UID,
            label="UID",
            description="Unique identifier (slug)",
            icon="Hash",
            category="text",
            has_advanced_settings=True,
            has_validation=True,
            is_complex=False,
            shape=FieldShape(requires_uid_target=True),
        ),
        FieldType.COMPONENT: FieldTypeSpec(
            type=FieldType.COMPONENT,
            label="Component",
            description="Single reusable component",
            icon="Puzzle",
            category="component",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
            shape=FieldShape(requires_component=True),
        ),
        FieldType.REPEATABLE_COMPONENT: FieldTypeSpec(
            type=FieldType.REPEATABLE_COMPONENT,
            label="Repeatable Component",
            description="Multiple instances of a component",
            icon="Layers",
            category="component",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
            shape=FieldShape(requires_component=True),
        ),
        FieldType.DYNAMIC_ZONE: FieldTypeSpec(
            type=FieldType.DYNAMIC_ZONE,
            label="Dynamic Zone",
            description="Flexible content blocks",
            icon="Layout",
            category="component",
            has_advanced_settings=True,
            has_validation=False,
            is_complex=True,
            shape=FieldShape(requires_allowed_components=True),
            defaults=_defaults(allowedComponents=()),
        ),
    }
)


def get_field_type(field_type: str) -> FieldTypeSpec:
    """Look up the catalog entry for a type tag.

    Raises:
        UnknownFieldTypeError: If the tag is not in the catalog
    """
    try:
        return FIELD_TYPES[FieldType(field_type)]
    except ValueError as e:
        raise UnknownFieldTypeError(f"Unknown field type '{field_type}'") from e


def is_known_field_type(field_type: str | None) -> bool:
    return field_type in {member.value for member in FieldType}


def required_shape_for(field_type: str) -> FieldShape:
    """Structural requirements for definitions of ``field_type``."""
    return get_field_type(field_type).shape


def defaults_for(field_type: str) -> dict[str, Any]:
    """Default configuration (camelCase keys) for a new field of ``field_type``.

    Sequence defaults are returned as fresh lists so callers may mutate them.
    """
    defaults = dict(get_field_type(field_type).defaults)
    for key, value in defaults.items():
        if isinstance(value, tuple):
            defaults[key] = list(value)
    return defaults


def field_type_names() -> list[str]:
    """All type tags in catalog order."""
    return [spec.type.value for spec in FIELD_TYPES.values()]


def field_types_by_category(category: str) -> list[FieldTypeSpec]:
    return [spec for spec in FIELD_TYPES.values() if spec.category == category]


def create_default_field(name: str, field_type: str, **overrides: Any) -> Any:
    """Build a field definition from the catalog defaults plus ``overrides``.

    The result is not validated against the owner; pass it to
    ``SchemaRegistry.add_field`` for that.
    """
    raw = {"name": name, "type": field_type, **defaults_for(field_type), **overrides}
    return parse_field_definition(raw)
