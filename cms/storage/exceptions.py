"""Storage-specific exceptions for the CMS key-value layer."""


class StorageError(Exception):
    """Base exception for all storage operations.

    This is the parent class for all storage-related errors,
    allowing callers to catch all storage issues with a single except clause.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize storage error.

        Args:
            message: Human-readable error description
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class StorageOperationError(StorageError):
    """Error reading or writing a key.

    Raised when:
    - The backing file cannot be written or replaced
    - A stored value cannot be serialized to JSON
    """

    pass


class StorageCorruptionError(StorageError):
    """A stored blob cannot be decoded.

    Raised when:
    - A key file holds invalid JSON
    - A versioned blob lacks its ``state`` member
    - A blob carries an unsupported format version
    """

    pass


class StorageConfigurationError(StorageError):
    """Error in storage configuration.

    Raised when:
    - Unsupported backend type specified
    - Required configuration parameters are missing
    """

    pass
