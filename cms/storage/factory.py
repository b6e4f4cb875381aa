"""Storage backend factory for creating key-value stores.

This module provides a factory function to create storage backends
based on configuration, supporting different backend types.
"""

from typing import TYPE_CHECKING

from ..core.logging import get_logger
from .exceptions import StorageConfigurationError
from .interface import KeyValueStore
from .json_file import JsonFileStore
from .memory import MemoryStore

if TYPE_CHECKING:
    from ..config import CMSConfig

logger = get_logger(__name__)

SUPPORTED_BACKENDS = ("memory", "file")


def create_store(config: "CMSConfig") -> KeyValueStore:
    """Create a storage backend instance based on configuration.

    Args:
        config: CMS configuration specifying backend type and data directory

    Returns:
        KeyValueStore: Configured storage backend instance

    Raises:
        StorageConfigurationError: If backend type is unsupported or config is invalid
    """
    validate_store_config(config)
    backend_type = config.storage_backend.lower()

    logger.info("Creating storage backend", backend=backend_type)

    if backend_type == "memory":
        return MemoryStore()

    return JsonFileStore(config.data_dir)


def validate_store_config(config: "CMSConfig") -> None:
    """Validate storage configuration.

    Args:
        config: Configuration to validate

    Raises:
        StorageConfigurationError: If configuration is invalid
    """
    if not config.storage_backend:
        raise StorageConfigurationError("Storage backend type is required")

    backend_type = config.storage_backend.lower()
    if backend_type not in SUPPORTED_BACKENDS:
        raise StorageConfigurationError(
            f"Unsupported storage backend: {backend_type}. "
            f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
        )

    if backend_type == "file" and not str(config.data_dir or "").strip():
        raise StorageConfigurationError("File backend requires a data directory")

    logger.debug("Storage configuration validated", backend=backend_type)
