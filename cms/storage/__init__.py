"""Key-value persistence layer for the CMS registries."""

from .exceptions import (
    StorageConfigurationError,
    StorageCorruptionError,
    StorageError,
    StorageOperationError,
)
from .factory import create_store, validate_store_config
from .interface import KeyValueStore, StorageKey
from .json_file import JsonFileStore
from .memory import MemoryStore
from .persisted import BLOB_VERSION, PersistedCollection, PersistedDocument

__all__ = [
    # Core interface
    "KeyValueStore",
    "StorageKey",
    # Implementations
    "JsonFileStore",
    "MemoryStore",
    # Versioned collections
    "BLOB_VERSION",
    "PersistedCollection",
    "PersistedDocument",
    # Factory functions
    "create_store",
    "validate_store_config",
    # Exceptions
    "StorageError",
    "StorageConfigurationError",
    "StorageCorruptionError",
    "StorageOperationError",
]
