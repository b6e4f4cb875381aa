"""In-memory key-value store for testing and development.

Values are round-tripped through JSON on write so the memory store rejects
exactly what the file store rejects, and callers can never mutate stored
state through a retained reference.
"""

import json
from typing import Any

from ..core.logging import get_logger
from .exceptions import StorageOperationError
from .interface import KeyValueStore

logger = get_logger(__name__)


class MemoryStore(KeyValueStore):
    """Dictionary-backed store.

    Useful for:
    - Unit testing
    - Short-lived CLI sessions that only inspect a bundle
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageOperationError(
                f"Value for key '{key}' is not JSON serializable: {e}", e
            ) from e
        logger.debug("Stored key", key=key, backend="memory")

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return sorted(self._data)
