"""Domain exceptions for schema, entry and media operations.

Every failure is scoped to the single requested operation: it is raised
before any state is mutated, so catching one leaves the registries exactly
as they were.
"""


class CMSError(Exception):
    """Base exception for all CMS domain errors.

    Allows callers (CLI, UI adapters) to catch every domain failure with a
    single except clause and surface ``code`` and the message to the user.
    """

    code = "cms_error"

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error description
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.cause = cause


# Lookup failures


class NotFoundError(CMSError):
    """An operation referenced an identity absent from its registry."""

    code = "not_found"


class ComponentNotFoundError(NotFoundError):
    code = "component_not_found"


class ContentTypeNotFoundError(NotFoundError):
    code = "content_type_not_found"


class EntryNotFoundError(NotFoundError):
    code = "entry_not_found"


class MediaFileNotFoundError(NotFoundError):
    code = "media_not_found"


class FieldNotFoundError(NotFoundError):
    code = "field_not_found"


# Schema integrity


class DuplicateNameError(CMSError):
    """Name or API ID collision on create or rename."""

    code = "duplicate_name"


class InUseError(CMSError):
    """Delete attempted on a component or content type that is still referenced."""

    code = "in_use"


class CircularDependencyError(CMSError):
    """Component nesting would create a cycle."""

    code = "circular_dependency"


class InvalidFieldDefinitionError(CMSError):
    """A field definition is structurally invalid for its type."""

    code = "invalid_field_definition"


class UnknownFieldTypeError(InvalidFieldDefinitionError):
    code = "unknown_field_type"


class InvalidApiIdError(InvalidFieldDefinitionError):
    code = "invalid_api_id"


# Entry data validation


class EntryValidationError(CMSError):
    """Entry data failed validation against its content type.

    Carries the name of the offending field so the UI can attach the
    message to the right input.
    """

    code = "entry_validation_error"

    def __init__(self, field: str, message: str, cause: Exception | None = None):
        super().__init__(message, cause)
        self.field = field


class RequiredFieldError(EntryValidationError):
    code = "required_field"


class FieldTypeMismatchError(EntryValidationError):
    code = "field_type_mismatch"


class OutOfRangeError(EntryValidationError):
    code = "out_of_range"


class PatternMismatchError(EntryValidationError):
    code = "pattern_mismatch"


# Lifecycle


class InvalidScheduleError(CMSError):
    """Scheduled publication time is not in the future."""

    code = "invalid_schedule"


# Media ingestion


class MediaValidationError(CMSError):
    """Uploaded file rejected at ingestion."""

    code = "media_validation_error"


class FileTooLargeError(MediaValidationError):
    code = "file_too_large"


class InvalidFileTypeError(MediaValidationError):
    code = "invalid_file_type"


# Export / import


class BundleError(CMSError):
    """Export bundle cannot be read or has an unsupported version."""

    code = "bundle_error"


# Updates


class InvalidUpdateError(CMSError):
    """An update names a read-only or unknown attribute, or yields an invalid record."""

    code = "invalid_update"
