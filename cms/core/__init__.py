"""Core models, errors, logging and the field type catalog."""

from .exceptions import (
    BundleError,
    CircularDependencyError,
    CMSError,
    ComponentNotFoundError,
    ContentTypeNotFoundError,
    DuplicateNameError,
    EntryNotFoundError,
    EntryValidationError,
    FieldNotFoundError,
    FieldTypeMismatchError,
    FileTooLargeError,
    InUseError,
    InvalidApiIdError,
    InvalidFieldDefinitionError,
    InvalidFileTypeError,
    InvalidScheduleError,
    InvalidUpdateError,
    MediaFileNotFoundError,
    MediaValidationError,
    NotFoundError,
    OutOfRangeError,
    PatternMismatchError,
    RequiredFieldError,
    UnknownFieldTypeError,
)
from .field_types import (
    FIELD_CATEGORIES,
    FIELD_TYPES,
    FieldShape,
    FieldTypeSpec,
    create_default_field,
    defaults_for,
    field_type_names,
    field_types_by_category,
    get_field_type,
    required_shape_for,
)
from .logging import (
    OperationLogger,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from .models import (
    ApiToken,
    Component,
    ContentType,
    ContentTypeKind,
    Entry,
    EntryStatus,
    ExportBundle,
    FieldDefinition,
    FieldType,
    Locale,
    MediaFile,
    RelationType,
    Settings,
    Webhook,
    parse_field_definition,
    utc_now,
)

__all__ = [
    # Models
    "ApiToken",
    "Component",
    "ContentType",
    "ContentTypeKind",
    "Entry",
    "EntryStatus",
    "ExportBundle",
    "FieldDefinition",
    "FieldType",
    "Locale",
    "MediaFile",
    "RelationType",
    "Settings",
    "Webhook",
    "parse_field_definition",
    "utc_now",
    # Field type catalog
    "FIELD_CATEGORIES",
    "FIELD_TYPES",
    "FieldShape",
    "FieldTypeSpec",
    "create_default_field",
    "defaults_for",
    "field_type_names",
    "field_types_by_category",
    "get_field_type",
    "required_shape_for",
    # Logging
    "OperationLogger",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    # Exceptions
    "BundleError",
    "CircularDependencyError",
    "CMSError",
    "ComponentNotFoundError",
    "ContentTypeNotFoundError",
    "DuplicateNameError",
    "EntryNotFoundError",
    "EntryValidationError",
    "FieldNotFoundError",
    "FieldTypeMismatchError",
    "FileTooLargeError",
    "InUseError",
    "InvalidApiIdError",
    "InvalidFieldDefinitionError",
    "InvalidFileTypeError",
    "InvalidScheduleError",
    "InvalidUpdateError",
    "MediaFileNotFoundError",
    "MediaValidationError",
    "NotFoundError",
    "OutOfRangeError",
    "PatternMismatchError",
    "RequiredFieldError",
    "UnknownFieldTypeError",
]
