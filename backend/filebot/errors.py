"""Exception hierarchy shared by the catalog, ingestion and registration layers.

Local, recoverable conditions (duplicate registration, duplicate file id) are
never raised; the store reports them as booleans. Everything below is a
genuine failure that propagates to the caller, which answers the user with a
generic message and keeps the process running.
"""
from __future__ import annotations

__all__ = [
    "FileBotError",
    "CorruptCatalogError",
    "IngestError",
    "StorageError",
    "TransportError",
    "TransportTimeout",
    "CatalogWriteError",
    "RegistrationError",
    "NotRegisteredError",
]


class FileBotError(RuntimeError):
    """Base exception for catalog, ingestion and registration failures."""


class CorruptCatalogError(FileBotError):
    """Raised when the catalog snapshot exists but cannot be parsed.

    Only an explicit administrative repair recovers from this state; the
    store never discards the snapshot on its own.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Catalog snapshot {path} is unreadable: {reason}")
        self.path = path
        self.reason = reason


class IngestError(FileBotError):
    """Base class for failures while ingesting an uploaded file."""


class StorageError(IngestError):
    """Raised when a disk write (file bytes or catalog snapshot) fails."""


class TransportError(IngestError):
    """Raised when the chat transport or the file download fails."""


class TransportTimeout(TransportError):
    """Raised when a download stalls beyond the configured timeout."""


class CatalogWriteError(IngestError):
    """Raised when the bytes were written but the catalog commit failed.

    The stored file stays on disk as an orphan.
    """

    def __init__(self, remote_file_id: str, stored_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to record {remote_file_id} (bytes kept at {stored_path}): {reason}"
        )
        self.remote_file_id = remote_file_id
        self.stored_path = stored_path


class RegistrationError(FileBotError):
    """Raised when a user record cannot be written."""


class NotRegisteredError(RegistrationError):
    """Raised when an operation is attempted for an unknown user id."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} is not registered")
        self.user_id = user_id
