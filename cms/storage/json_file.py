"""File-backed key-value store.

Each key lives in ``<directory>/<key>.json``. Writes go to a temporary file
in the same directory which then replaces the target, so a reader never
observes a half-written value.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..core.logging import OperationLogger, get_logger
from .exceptions import StorageCorruptionError, StorageOperationError
from .interface import KeyValueStore

logger = get_logger(__name__)

_SUFFIX = ".json"


class JsonFileStore(KeyValueStore):
    """Store one JSON document per key under a directory."""

    def __init__(self, directory: str | Path):
        """Initialize the store, creating ``directory`` if needed.

        Args:
            directory: Directory holding the key files

        Raises:
            StorageOperationError: If the directory cannot be created
        """
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageOperationError(
                f"Cannot create data directory {self.directory}: {e}", e
            ) from e

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageOperationError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}{_SUFFIX}"

    def get(self, key: str) -> Any | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageCorruptionError(f"Invalid JSON in {path}: {e}", e) from e
        except OSError as e:
            raise StorageOperationError(f"Cannot read {path}: {e}", e) from e

    def set(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageOperationError(
                f"Value for key '{key}' is not JSON serializable: {e}", e
            ) from e

        with OperationLogger(logger, f"write:{key}"):
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                raise StorageOperationError(f"Cannot write {path}: {e}", e) from e

    def remove(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def clear(self) -> None:
        for key in self.keys():
            self.remove(key)

    def keys(self) -> list[str]:
        return sorted(
            path.stem
            for path in self.directory.glob(f"*{_SUFFIX}")
            if not path.name.startswith(".")
        )
