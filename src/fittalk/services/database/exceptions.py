"""Custom exceptions for the storage layer."""


class DatabaseError(Exception):
    """Base exception for all storage-related errors."""

    pass


class StorageUnavailable(DatabaseError):
    """Raised when the storage backend fails or cannot be reached."""

    pass


class DuplicateRecordError(DatabaseError):
    """Raised when an insert violates a unique constraint."""

    pass


class RecordNotFound(DatabaseError):
    """Raised when a record addressed by the caller does not exist."""

    pass


class UserNotFound(RecordNotFound):
    """Raised when a user row is missing on a direct lookup."""

    pass
