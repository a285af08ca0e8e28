"""Custom exceptions for to-storage.

Every failure the upload clients surface is one of these types. Errors from
the storage SDK are translated at the store boundary and chained, so the
original exception stays available as ``__cause__``.
"""

from typing import Optional


class ToStorageError(RuntimeError):
    """Base class for all to-storage errors."""
    pass


class InvalidArgumentError(ToStorageError, ValueError):
    """Caller supplied an unusable argument (stream, path format, key)."""
    pass


class ConfigError(ToStorageError):
    """Settings could not be loaded or are invalid."""
    pass


# Storage Errors
class StorageError(ToStorageError):
    """Base class for storage backend errors."""
    pass


class NotFoundError(StorageError):
    """Container or object does not exist."""

    def __init__(self, container: str, key: Optional[str] = None):
        self.container = container
        self.key = key
        if key is None:
            message = f"Container '{container}' does not exist"
        else:
            message = f"Blob '{key}' does not exist in container '{container}'"
        super().__init__(message)


class ConcurrencyConflictError(StorageError):
    """Conditional write lost against a concurrent writer."""

    def __init__(
        self,
        container: str,
        key: str,
        expected: Optional[str] = None,
        already_exists: bool = False,
    ):
        self.container = container
        self.key = key
        self.expected = expected
        self.already_exists = already_exists
        if already_exists:
            message = f"Blob '{key}' in container '{container}' already exists; it was written concurrently."
        else:
            message = f"Blob '{key}' in container '{container}' was modified concurrently."
        if expected:
            message += f" Expected ETag: {expected}."
        message += " Re-run the upload against the new latest content."
        super().__init__(message)


class TransportError(StorageError):
    """Network or backend failure."""
    pass
