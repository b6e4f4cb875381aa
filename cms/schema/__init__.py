"""Schema registry: components, content types and field definitions."""

from .field_validation import (
    IDENTIFIER_PATTERN,
    component_reaches,
    validate_field_definition,
    validate_field_name,
    would_create_cycle,
)
from .registry import (
    ComponentStats,
    ContentTypeStats,
    SchemaRegistry,
    is_valid_api_id,
    slugify_api_id,
)

__all__ = [
    "IDENTIFIER_PATTERN",
    "ComponentStats",
    "ContentTypeStats",
    "SchemaRegistry",
    "component_reaches",
    "is_valid_api_id",
    "slugify_api_id",
    "validate_field_definition",
    "validate_field_name",
    "would_create_cycle",
]
