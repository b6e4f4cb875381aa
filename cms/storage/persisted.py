"""Versioned persistence of model collections on top of a KeyValueStore.

Each key holds a blob ``{"version": 1, "state": ...}`` where ``state`` is the
camelCase JSON form of the records. Subscribers are notified after every
successful persist, in registration order.
"""

from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.logging import get_logger
from .exceptions import StorageCorruptionError
from .interface import KeyValueStore, StorageKey

logger = get_logger(__name__)

BLOB_VERSION = 1

ModelT = TypeVar("ModelT", bound=BaseModel)


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


class _Persisted:
    """Shared blob handling and subscriber bookkeeping."""

    def __init__(self, store: KeyValueStore, key: StorageKey | str):
        self.store = store
        self.key = key.value if isinstance(key, StorageKey) else key
        self._listeners: list[Callable[[Any], None]] = []

    def subscribe(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        """Register ``listener`` to receive the new state after each persist.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _read_state(self) -> Any | None:
        blob = self.store.get(self.key)
        if blob is None:
            return None
        if not isinstance(blob, dict) or "state" not in blob:
            raise StorageCorruptionError(
                f"Key '{self.key}' does not hold a versioned blob"
            )
        version = blob.get("version")
        if version != BLOB_VERSION:
            raise StorageCorruptionError(
                f"Key '{self.key}' has unsupported blob version {version!r}"
            )
        return blob["state"]

    def _write_state(self, state: Any, notify_with: Any) -> None:
        self.store.set(self.key, {"version": BLOB_VERSION, "state": state})
        logger.debug("Persisted state", key=self.key)
        for listener in list(self._listeners):
            listener(notify_with)


class PersistedCollection(_Persisted, Generic[ModelT]):
    """An ordered list of records stored under one key."""

    def __init__(
        self, store: KeyValueStore, key: StorageKey | str, model: type[ModelT]
    ):
        super().__init__(store, key)
        self.model = model

    def load(self) -> list[ModelT]:
        """Decode the stored records, or return an empty list if none are stored.

        Raises:
            StorageCorruptionError: If the blob or any record fails to decode
        """
        state = self._read_state()
        if state is None:
            return []
        if not isinstance(state, list):
            raise StorageCorruptionError(f"Key '{self.key}' state is not a list")
        try:
            return [self.model.model_validate(item) for item in state]
        except PydanticValidationError as e:
            raise StorageCorruptionError(
                f"Key '{self.key}' holds an invalid {self.model.__name__}: {e}", e
            ) from e

    def save(self, records: Iterable[ModelT]) -> None:
        records = list(records)
        self._write_state([_dump(record) for record in records], records)


class PersistedDocument(_Persisted, Generic[ModelT]):
    """A single record stored under one key."""

    def __init__(
        self, store: KeyValueStore, key: StorageKey | str, model: type[ModelT]
    ):
        super().__init__(store, key)
        self.model = model

    def load(self) -> ModelT | None:
        state = self._read_state()
        if state is None:
            return None
        try:
            return self.model.model_validate(state)
        except PydanticValidationError as e:
            raise StorageCorruptionError(
                f"Key '{self.key}' holds an invalid {self.model.__name__}: {e}", e
            ) from e

    def save(self, record: ModelT) -> None:
        self._write_state(_dump(record), record)
