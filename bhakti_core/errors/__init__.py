# =============================================================================
# bhakti_core/errors/__init__.py
# Centralized Error Handling for Bhakti Vani
# =============================================================================

from .exceptions import (
    BhaktiVaniError,
    ConfigurationError,
    ContentValidationError,
    RemoteContentError,
    LocalStorageError,
    SnapshotError,
    SyncInProgressError,
    SyncTimeoutError,
)

from .handlers import (
    handle_error,
    error_boundary,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "BhaktiVaniError",
    "ConfigurationError",
    "ContentValidationError",
    "RemoteContentError",
    "LocalStorageError",
    "SnapshotError",
    "SyncInProgressError",
    "SyncTimeoutError",
    # Handlers
    "handle_error",
    "error_boundary",
    "ErrorContext",
]
