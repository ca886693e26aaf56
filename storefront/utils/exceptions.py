"""
Exception hierarchy for the recommendation service.

Every error carries an HTTP status code and a machine-readable code so the
route layer can map it without inspecting messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes surfaced in recommendation results."""
    INVALID_INPUT = "INVALID_INPUT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    INTERNAL = "INTERNAL"


class FailureKind(str, Enum):
    """Why an upstream call failed, as far as credential health is concerned."""
    RATE_LIMITED = "RATE_LIMITED"
    AUTH_ERROR = "AUTH_ERROR"
    UNKNOWN = "UNKNOWN"


class StorefrontError(Exception):
    """Base exception for recommendation service errors."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for server-side logs only
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class InputValidationError(StorefrontError):
    """Raised when the shopper's request is malformed. Message is shown verbatim."""

    code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=400,
            details={"field": field} if field else None,
        )


class UpstreamUnavailableError(StorefrontError):
    """Raised when the language model cannot be reached with any credential."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE

    def __init__(
        self,
        message: str = "The recommendation service is temporarily unavailable. Please try again shortly.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=500, details=details)


class NoHealthyCredentialError(UpstreamUnavailableError):
    """Raised when every credential in the pool is in cooldown or failed."""

    def __init__(self, total_keys: int = 0):
        super().__init__(
            message="All API keys are exhausted or rate-limited. Please try again later.",
            details={"total_keys": total_keys},
        )


class ConfigurationError(StorefrontError):
    """Raised when the credential pool cannot be built from configuration."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=500)


class UpstreamCallError(StorefrontError):
    """Raised by the LLM client when a single model call fails."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.UNKNOWN,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            details={"kind": kind.value, "upstream_status": upstream_status},
        )
        self.kind = kind
        self.upstream_status = upstream_status


class IntentParseError(StorefrontError):
    """Raised when the model reply cannot be parsed into an intent."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, raw_preview: str = ""):
        super().__init__(
            message=message,
            status_code=502,
            details={"raw_preview": raw_preview[:200]},
        )


class CatalogUnavailableError(StorefrontError):
    """Raised when the catalog query fails or times out."""

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(
            message=message,
            status_code=500,
            details={"error_type": type(error).__name__} if error else None,
        )


class PersistenceWarning(StorefrontError):
    """Product request write failed. Logged and swallowed, never shown to shoppers."""

    code = ErrorCode.PERSISTENCE_FAILURE

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(
            message=message,
            status_code=500,
            details={"error": str(error), "error_type": type(error).__name__} if error else None,
        )


class InternalError(StorefrontError):
    """Anything unexpected. Logged in full server-side, generic message to the caller."""

    def __init__(self, message: str = "An unexpected error occurred. Please try again."):
        super().__init__(message=message, status_code=500)
