"""Application exception hierarchy.

All custom exceptions inherit from AgriSearchError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "AGS-1000"
    CONFIGURATION_ERROR = "AGS-1001"
    VALIDATION_ERROR = "AGS-1002"

    # Document errors (2xxx)
    DOCUMENT_NOT_FOUND = "AGS-2000"
    DOCUMENT_INVALID = "AGS-2001"

    # Backend lifecycle errors (3xxx)
    BACKEND_NOT_READY = "AGS-3000"
    BACKEND_INIT_FAILED = "AGS-3001"

    # Embedding errors (4xxx)
    EMBEDDING_UNAVAILABLE = "AGS-4000"
    EMBEDDING_DIMENSION_MISMATCH = "AGS-4001"

    # Storage errors (5xxx)
    STORAGE_FAULT = "AGS-5000"
    STORAGE_QUOTA_EXCEEDED = "AGS-5001"

    # Search errors (6xxx)
    EMPTY_QUERY = "AGS-6000"

    # LLM errors (7xxx)
    LLM_SERVICE_ERROR = "AGS-7000"
    LLM_TIMEOUT = "AGS-7001"
    LLM_RATE_LIMIT = "AGS-7002"


class AgriSearchError(Exception):
    """Base exception for all agrisearch errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(AgriSearchError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(AgriSearchError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class DocumentError(AgriSearchError):
    """Document loading or validation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DOCUMENT_INVALID,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class BackendNotReadyError(AgriSearchError):
    """No inference backend is in the Ready state."""

    def __init__(
        self,
        message: str = "Inference backend is not ready",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.BACKEND_NOT_READY, details)


class BackendInitializationError(AgriSearchError):
    """Backend setup (model download, connectivity check) failed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.BACKEND_INIT_FAILED, details)


class EmbeddingUnavailableError(AgriSearchError):
    """The active embedding provider failed to produce a vector."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_UNAVAILABLE, details)


class DimensionMismatchError(AgriSearchError):
    """Vectors from different model configurations were compared."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_DIMENSION_MISMATCH, details)


class EmptyQueryError(AgriSearchError):
    """Search query is empty after trimming."""

    def __init__(
        self,
        message: str = "Search query must not be empty",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMPTY_QUERY, details)


class StorageError(AgriSearchError):
    """Vector record storage failure."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORAGE_FAULT,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class LLMError(AgriSearchError):
    """Text generation failure."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
