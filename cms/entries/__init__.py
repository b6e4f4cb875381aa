"""Content entries: data validation, lifecycle and queries."""

from .store import EntryStats, EntryStore, SearchFilters, SortOptions
from .validation import EMAIL_PATTERN, EntryDataValidator, is_empty

__all__ = [
    "EMAIL_PATTERN",
    "EntryDataValidator",
    "EntryStats",
    "EntryStore",
    "SearchFilters",
    "SortOptions",
    "is_empty",
]
