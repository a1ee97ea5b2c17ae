# =============================================================================
# bhakti_core/errors/exceptions.py
# Custom Exception Hierarchy for Bhakti Vani
# =============================================================================

from typing import Optional, Dict, Any


class BhaktiVaniError(Exception):
    """
    Base exception for all Bhakti Vani errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "SYNC_001")
        details: Additional context as a dictionary
        recoverable: Whether the app stays usable after the error
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "BV_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(BhaktiVaniError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected:
            details["expected"] = expected

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# CONTENT EXCEPTIONS
# =============================================================================

class ContentValidationError(BhaktiVaniError):
    """Raised when a record or a language value cannot be interpreted"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            code="CONTENT_001",
            details=details,
            **kwargs,
        )


class RemoteContentError(BhaktiVaniError):
    """Raised when the remote content source cannot be read"""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class LocalStorageError(BhaktiVaniError):
    """Raised when a local database write fails"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="STORAGE_001",
            details=details,
            **kwargs,
        )


class SnapshotError(BhaktiVaniError):
    """Raised when a cache snapshot cannot be written or restored"""

    def __init__(
        self,
        message: str,
        language: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if language:
            details["language"] = language
        if path:
            details["path"] = path

        super().__init__(
            message=message,
            code="CACHE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# SYNC EXCEPTIONS
# =============================================================================

class SyncInProgressError(BhaktiVaniError):
    """Raised when a sync operation starts while another one is running"""

    def __init__(self, message: str = "A sync operation is already running", operation: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


class SyncTimeoutError(BhaktiVaniError):
    """Raised when a download does not finish within the allowed time"""

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        details = kwargs.pop("details", {})
        if timeout is not None:
            details["timeout"] = timeout

        super().__init__(
            message=message,
            code="SYNC_TIMEOUT",
            details=details,
            **kwargs,
        )
