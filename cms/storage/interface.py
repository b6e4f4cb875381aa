"""Abstract key-value storage interface.

Every registry persists its whole collection under one well-known key. The
store is a plain mapping from key to JSON-compatible value; there are no
cross-key transactions.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class StorageKey(str, Enum):
    """Persistence namespaces, one per collection."""

    CONTENT_TYPES = "content-types"
    COMPONENTS = "components"
    ENTRIES = "entries"
    MEDIA_FILES = "media-files"
    SETTINGS = "settings"
    USERS = "users"
    API_TOKENS = "api-tokens"
    WEBHOOKS = "webhooks"
    UI_CONFIG = "ui-config"


class KeyValueStore(ABC):
    """Abstract interface for durable key-value persistence.

    All backends must implement this interface so registries can be
    constructed against an in-memory store in tests and a file-backed store
    in the CLI.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value stored under ``key``, or None if absent.

        Raises:
            StorageCorruptionError: If the stored value cannot be decoded
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible ``value`` under ``key``, replacing any prior value.

        Raises:
            StorageOperationError: If the value cannot be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is a no-op."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every key."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """Return the stored keys in sorted order."""
        pass

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self.keys()
