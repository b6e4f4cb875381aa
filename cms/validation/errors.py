"""Finding and result structures for offline bundle validation.

Bundle validation aggregates every problem it finds instead of stopping at
the first, so problems are collected as plain records rather than raised.
"""

from dataclasses import dataclass, field
from typing import Any


def _describe(kind: str, message: str, record: str | None, path: str | None) -> str:
    parts = [f"{kind}: {message}"]
    if record:
        parts.append(f"(record: {record})")
    if path:
        parts.append(f"(field: {path})")
    return " ".join(parts)


@dataclass
class ValidationError:
    """A problem that makes the bundle unsafe to import.

    ``record`` names the offending record, e.g. ``component:seo`` or
    ``entry:abc123``; ``field`` is the field path within it, if any.
    """

    type: str
    message: str
    record: str | None = None
    field: str | None = None

    def __str__(self) -> str:
        return _describe(self.type, self.message, self.record, self.field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "record": self.record,
            "field": self.field,
        }


@dataclass
class ValidationWarning:
    """A non-fatal inconsistency, such as a stale denormalized count."""

    type: str
    message: str
    record: str | None = None
    field: str | None = None

    def __str__(self) -> str:
        return _describe(self.type, self.message, self.record, self.field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "record": self.record,
            "field": self.field,
        }


@dataclass
class ValidationResult:
    """Outcome of validating one bundle."""

    is_valid: bool = True
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    bundle: Any | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def add_error(self, error: ValidationError) -> None:
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: ValidationWarning) -> None:
        self.warnings.append(warning)

    def extend_errors(self, errors: list[ValidationError]) -> None:
        self.errors.extend(errors)
        if errors:
            self.is_valid = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }

    def __str__(self) -> str:
        if self.is_valid:
            status = (
                f"✅ Valid ({self.warning_count} warnings)"
                if self.warnings
                else "✅ Valid"
            )
        else:
            status = (
                f"❌ Invalid ({self.error_count} errors, {self.warning_count} warnings)"
            )

        lines = [status]
        if self.errors:
            lines.append("\nErrors:")
            lines.extend(f"  - {error}" for error in self.errors)
        if self.warnings:
            lines.append("\nWarnings:")
            lines.extend(f"  - {warning}" for warning in self.warnings)
        return "\n".join(lines)
