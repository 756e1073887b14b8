"""
Custom Exceptions Module.

Every failure the pipeline can report maps to one exception class carrying a
stable error code, so callers can turn a failure into a user-facing status
without parsing messages.

Exception Hierarchy:
    InvoicePipelineError (base)
    ├── InputError
    │   ├── UnsupportedFileTypeError     INV-001
    │   ├── FileTooLargeError            INV-002
    │   ├── InvalidFileFormatError       INV-003
    │   └── InvalidRequestError          INV-012
    ├── OCRError
    │   └── ExtractionFailedError        INV-005 / INV-006
    ├── LlmError
    │   ├── LlmServiceUnavailableError   INV-015
    │   ├── LlmApiError                  INV-016
    │   ├── LlmTimeoutError              INV-017
    │   └── LlmInvalidResponseError      INV-018
    ├── OutputError
    │   ├── DatabaseError                INV-010
    │   └── FileStorageError             INV-011
    ├── NotFoundError
    │   ├── InvoiceNotFoundError         INV-007
    │   └── ExtractionNotFoundError      INV-009
    └── InternalError                    INV-999
"""

from typing import Any, Dict, Iterable, Optional


class ErrorCodes:
    """Stable error codes shared with API clients."""

    INVALID_FILE_TYPE = "INV-001"
    FILE_TOO_LARGE = "INV-002"
    FILE_NOT_READABLE = "INV-003"
    OCR_SERVICE_UNAVAILABLE = "INV-004"
    EXTRACTION_FAILED = "INV-005"
    OCR_TIMEOUT = "INV-006"
    INVOICE_NOT_FOUND = "INV-007"
    EXTRACTION_NOT_FOUND = "INV-009"
    DATABASE_ERROR = "INV-010"
    STORAGE_ERROR = "INV-011"
    INVALID_REQUEST = "INV-012"
    LLM_SERVICE_UNAVAILABLE = "INV-015"
    LLM_API_ERROR = "INV-016"
    LLM_TIMEOUT = "INV-017"
    LLM_INVALID_RESPONSE = "INV-018"
    INTERNAL_ERROR = "INV-999"


class InvoicePipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message.
        details: Dictionary with additional error context.
        error_code: Stable code from ErrorCodes.
    """

    error_code: str = ErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
            error_code: Overrides the class-level error code.
        """
        self.message = message
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)

    def add_detail(self, key: str, value: Any) -> 'InvoicePipelineError':
        """Attach one more piece of context and return self."""
        self.details[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used in failure events and CLI output."""
        return {
            "errorCode": self.error_code,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.error_code}] {self.message} | Details: {self.details}"
        return f"[{self.error_code}] {self.message}"


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoicePipelineError):
    """Base exception for upload and decoding errors."""
    pass


class UnsupportedFileTypeError(InputError):
    """
    Raised when no OCR engine supports the document's MIME type.

    Example:
        >>> raise UnsupportedFileTypeError("application/msword", ["application/pdf"])
    """

    error_code = ErrorCodes.INVALID_FILE_TYPE

    def __init__(self, mime_type: Optional[str], supported_types: Iterable[str] = ()):
        message = f"Unsupported file type: '{mime_type}'"
        details = {"mime_type": mime_type, "supported_types": sorted(supported_types)}
        super().__init__(message, details)


class FileTooLargeError(InputError):
    """Raised when an upload exceeds the configured size limit."""

    error_code = ErrorCodes.FILE_TOO_LARGE

    def __init__(self, file_name: str, size_bytes: int, limit_bytes: int):
        message = f"File too large: {file_name}"
        details = {"file_name": file_name, "size_bytes": size_bytes, "limit_bytes": limit_bytes}
        super().__init__(message, details)


class InvalidFileFormatError(InputError):
    """Raised when an image or PDF cannot be decoded."""

    error_code = ErrorCodes.FILE_NOT_READABLE

    def __init__(self, file_name: str, reason: Optional[str] = None):
        message = f"Invalid or unreadable file: {file_name}"
        details = {"file_name": file_name, "reason": reason}
        super().__init__(message, details)


class InvalidRequestError(InputError):
    """Raised when a request is missing required data."""

    error_code = ErrorCodes.INVALID_REQUEST

    def __init__(self, reason: str):
        super().__init__(f"Invalid request: {reason}", {"reason": reason})


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(InvoicePipelineError):
    """Base exception for OCR-related errors."""
    error_code = ErrorCodes.EXTRACTION_FAILED


class ExtractionFailedError(OCRError):
    """Raised when the OCR engine fails or produces no text."""

    def __init__(
        self,
        reason: str,
        file_name: Optional[str] = None,
        error_code: Optional[str] = None
    ):
        message = f"Extraction failed: {reason}"
        details = {"file_name": file_name} if file_name else {}
        super().__init__(message, details, error_code)


# =============================================================================
# LLM ERRORS
# =============================================================================

class LlmError(InvoicePipelineError):
    """Base exception for LLM extraction errors."""
    pass


class LlmServiceUnavailableError(LlmError):
    """Raised when the LLM client has no credential or model configured."""

    error_code = ErrorCodes.LLM_SERVICE_UNAVAILABLE

    def __init__(self, provider: str):
        super().__init__(
            f"LLM service not configured: {provider}", {"provider": provider}
        )


class LlmApiError(LlmError):
    """Raised on a non-2xx response or a transport failure."""

    error_code = ErrorCodes.LLM_API_ERROR

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["statusCode"] = status_code
        if body:
            details["body"] = body[:500]
        super().__init__(f"LLM API error: {reason}", details)
        self.status_code = status_code


class LlmTimeoutError(LlmError):
    """Raised when the LLM call exceeds its hard timeout."""

    error_code = ErrorCodes.LLM_TIMEOUT

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"LLM request timed out after {timeout_seconds:g}s",
            {"timeout_seconds": timeout_seconds}
        )


class LlmInvalidResponseError(LlmError):
    """Raised when the LLM reply cannot be used at all."""

    error_code = ErrorCodes.LLM_INVALID_RESPONSE

    def __init__(self, reason: str, content: Optional[str] = None):
        details = {"content": content[:500]} if content else {}
        super().__init__(f"Invalid LLM response: {reason}", details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoicePipelineError):
    """Base exception for persistence errors."""
    pass


class DatabaseError(OutputError):
    """Raised when a persistence operation fails."""

    error_code = ErrorCodes.DATABASE_ERROR

    def __init__(self, operation: str, reason: Optional[str] = None):
        message = f"Database operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


class FileStorageError(OutputError):
    """Raised when the file store cannot write, read or delete a file."""

    error_code = ErrorCodes.STORAGE_ERROR

    def __init__(self, operation: str, file_key: Optional[str] = None, reason: Optional[str] = None):
        message = f"File storage operation failed: {operation}"
        details = {"operation": operation, "file_key": file_key, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# LOOKUP ERRORS
# =============================================================================

class NotFoundError(InvoicePipelineError):
    """Base exception for missing records."""
    pass


class InvoiceNotFoundError(NotFoundError):
    """Raised when no active invoice has the given key."""

    error_code = ErrorCodes.INVOICE_NOT_FOUND

    def __init__(self, invoice_key: Any):
        super().__init__(f"Invoice not found: {invoice_key}", {"invoice_key": str(invoice_key)})


class ExtractionNotFoundError(NotFoundError):
    """Raised when no active extraction record matches."""

    error_code = ErrorCodes.EXTRACTION_NOT_FOUND

    def __init__(self, key: Any, key_name: str = "extraction_key"):
        super().__init__(f"Extraction not found: {key}", {key_name: str(key)})


class InternalError(InvoicePipelineError):
    """Raised for failures that fit no other category."""

    error_code = ErrorCodes.INTERNAL_ERROR

    def __init__(self, reason: str):
        super().__init__(f"Internal error: {reason}", {"reason": reason})


__all__ = [
    'ErrorCodes',
    'InvoicePipelineError',
    'InputError',
    'UnsupportedFileTypeError',
    'FileTooLargeError',
    'InvalidFileFormatError',
    'InvalidRequestError',
    'OCRError',
    'ExtractionFailedError',
    'LlmError',
    'LlmServiceUnavailableError',
    'LlmApiError',
    'LlmTimeoutError',
    'LlmInvalidResponseError',
    'OutputError',
    'DatabaseError',
    'FileStorageError',
    'NotFoundError',
    'InvoiceNotFoundError',
    'ExtractionNotFoundError',
    'InternalError',
]
