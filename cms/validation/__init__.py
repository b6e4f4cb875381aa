"""Offline validation of export bundles."""

from .bundle import BundleValidator
from .errors import ValidationError, ValidationResult, ValidationWarning

__all__ = [
    "BundleValidator",
    "ValidationError",
    "ValidationResult",
    "ValidationWarning",
]
