"""Unified exception hierarchy for focus-logger."""


class FocusLoggerError(Exception):
    """Base exception for all focus-logger errors."""


# Configuration
class ConfigError(FocusLoggerError):
    """A setting is missing or has an invalid value."""


# Tracking
class TrackerError(FocusLoggerError):
    """Base exception for session tracking."""


class DestinationUnavailableError(TrackerError):
    """A destination handle could not be resolved (closed or restricted)."""


# Metadata
class MetadataError(FocusLoggerError):
    """Failed to retrieve title/description for a destination."""


# Buffer
class BufferStoreError(FocusLoggerError):
    """Failed to read or write the local log buffer."""


# Sync
class SyncError(FocusLoggerError):
    """Base exception for remote synchronization."""


class TransientSyncError(SyncError):
    """Retryable delivery failure (network error, 429 or 5xx)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentSyncError(SyncError):
    """Delivery rejected by the server (4xx other than 429)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
