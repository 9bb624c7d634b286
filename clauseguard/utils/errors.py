"""
Custom exceptions for the ClauseGuard contract analysis service.

This module defines all custom exceptions used throughout the application
for better error handling and debugging.
"""

from typing import Any, Dict, List, Optional


class ClauseGuardError(Exception):
    """Base exception for all ClauseGuard-specific errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Upload Validation Exceptions
# =============================================================================


class ValidationError(ClauseGuardError):
    """Upload or question was rejected before any processing."""

    pass


# =============================================================================
# Extraction Exceptions
# =============================================================================


class ExtractionError(ClauseGuardError):
    """Base exception for document text extraction errors."""

    pass


class UnsupportedFormatError(ExtractionError):
    """File type is neither PDF nor DOCX."""

    def __init__(self, file_type: Optional[str], file_name: str) -> None:
        """Initialize with the detected type."""
        message = f"Unsupported file type: {file_type or 'unknown'}. Please upload a PDF or DOCX file."
        super().__init__(message, {"file_type": file_type, "file_name": file_name})


class EmptyFileError(ExtractionError):
    """File contains zero bytes."""

    pass


class NoTextExtractedError(ExtractionError):
    """Parsing succeeded but produced no readable text."""

    pass


class InvalidFormatError(ExtractionError):
    """File content does not match its declared format."""

    pass


class EmptyDocumentError(ExtractionError):
    """Document parsed but has no pages or body."""

    pass


class CorruptedFileError(ExtractionError):
    """Document structure is damaged."""

    pass


class PasswordProtectedError(ExtractionError):
    """Document is encrypted and cannot be read without a password."""

    pass


# =============================================================================
# Language Model Exceptions
# =============================================================================


class ModelError(ClauseGuardError):
    """Base exception for language-model calls."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        model: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize with transport information."""
        merged = dict(details or {})
        if status_code is not None:
            merged["status_code"] = status_code
        if model:
            merged["model"] = model
        super().__init__(message, merged)
        self.status_code = status_code
        self.model = model


class AuthenticationError(ModelError):
    """API key rejected (HTTP 401)."""

    pass


class RateLimitedError(ModelError):
    """Provider rate limit hit (HTTP 429)."""

    pass


class ServiceUnavailableError(ModelError):
    """Provider-side failure (HTTP 5xx)."""

    pass


class ModelNotFoundError(ModelError):
    """Model identifier unknown or retired (HTTP 404)."""

    pass


class AllModelsFailedError(ModelError):
    """Every candidate model failed."""

    def __init__(self, attempts: List[Dict[str, Any]]) -> None:
        """Initialize with the per-candidate failures."""
        message = f"All {len(attempts)} candidate model(s) failed"
        super().__init__(message, details={"attempts": attempts})
        self.attempts = attempts


# =============================================================================
# Response Handling Exceptions
# =============================================================================


class ResponseParseError(ClauseGuardError):
    """Model output could not be turned into a JSON object."""

    pass


class SchemaValidationError(ClauseGuardError):
    """Parsed model output lacks required analysis paths."""

    def __init__(self, violations: List[str]) -> None:
        """Initialize with the missing or mistyped paths."""
        message = f"Analysis failed schema check ({len(violations)} violation(s))"
        super().__init__(message, {"violations": violations[:10]})
        self.violations = violations


# =============================================================================
# Persistence Exceptions
# =============================================================================


class PersistenceError(ClauseGuardError):
    """Base exception for record store operations."""

    pass


class RecordNotFoundError(PersistenceError):
    """Requested record does not exist."""

    def __init__(self, table: str, record_id: str) -> None:
        """Initialize with table and id."""
        message = f"Record '{record_id}' not found in '{table}'"
        super().__init__(message, {"table": table, "record_id": record_id})


class InvalidStatusTransitionError(PersistenceError):
    """Contract status change violates the processing state machine."""

    def __init__(self, current: str, target: str) -> None:
        """Initialize with both states."""
        message = f"Cannot move contract status from '{current}' to '{target}'"
        super().__init__(message, {"current": current, "target": target})


class ObjectStorageError(PersistenceError):
    """Failed to store or fetch uploaded file bytes."""

    pass


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(ClauseGuardError):
    """Configuration error."""

    pass


class MissingConfigurationError(ConfigurationError):
    """Required configuration missing."""

    def __init__(self, config_name: str) -> None:
        """Initialize with config name."""
        message = f"Required configuration '{config_name}' is missing"
        super().__init__(message, {"config_name": config_name})
