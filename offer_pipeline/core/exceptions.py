"""Exception hierarchy for the offer pipeline.

Components raise these at their I/O seams and catch them at their own
boundary, turning expected failures into result objects that carry an error
tag and a zero confidence score. Only programming errors escape to callers.
"""

from typing import Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification and monitoring."""

    INPUT = "input"
    EXTERNAL_SERVICE = "external_service"
    AUTHENTICATION = "authentication"
    PARSE = "parse"
    CONFIGURATION = "configuration"


class BaseError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        details: Additional context (dict)
        retryable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to a serializable diagnostics record."""
        return {
            "code": self.error_code,
            "title": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }

    def describe(self) -> str:
        """Short ``CODE: message`` form stored in result metadata."""
        return f"{self.error_code}: {self.message}"


class ExternalServiceError(BaseError):
    """Transient external service failure.

    Raised when the text-conversion, completion or vocabulary service times
    out, resets the connection or answers with a server-side error.

    Args:
        service_name: Name of the external service
        error_type: Type of error ("timeout", "unavailable", "rate_limit", "error")
        details: Additional error context
    """

    def __init__(self, service_name: str, error_type: str, **kwargs):
        additional_details = kwargs.pop("details", {})
        additional_details.update(
            {
                "service": service_name,
                "error_type": error_type,
            }
        )
        message = kwargs.pop("message", None) or f"{service_name} service {error_type}"

        super().__init__(
            message=message,
            error_code=f"{service_name.upper()}_{error_type.upper()}",
            category=ErrorCategory.EXTERNAL_SERVICE,
            retryable=kwargs.pop("retryable", True),
            details=additional_details,
            **kwargs,
        )
        self.service_name = service_name
        self.error_type = error_type

    @property
    def is_timeout_or_connection(self) -> bool:
        return self.error_type in {"timeout", "unavailable"}


class AuthenticationError(BaseError):
    """Credentials rejected by an external service (401/403).

    Terminal: retrying cannot help until the service is reconfigured.
    """

    def __init__(self, service_name: str, status_code: Optional[int] = None):
        super().__init__(
            message=f"{service_name} rejected credentials - check the API key",
            error_code=f"{service_name.upper()}_AUTHENTICATION_FAILED",
            category=ErrorCategory.AUTHENTICATION,
            details={"service": service_name, "status_code": status_code},
            retryable=False,
        )
        self.service_name = service_name


class MalformedResponseError(BaseError):
    """External service answered with a body we cannot interpret."""

    def __init__(self, service_name: str, reason: str):
        super().__init__(
            message=f"{service_name} returned a malformed response: {reason}",
            error_code=f"{service_name.upper()}_MALFORMED_RESPONSE",
            category=ErrorCategory.EXTERNAL_SERVICE,
            details={"service": service_name, "reason": reason},
            retryable=False,
        )


class ServiceProcessingError(BaseError):
    """External service reported that it could not process the document."""

    def __init__(self, service_name: str, reason: str):
        super().__init__(
            message=reason,
            error_code=f"{service_name.upper()}_PROCESSING_ERROR",
            category=ErrorCategory.EXTERNAL_SERVICE,
            details={"service": service_name},
            retryable=False,
        )


class ResponseParseError(BaseError):
    """Model reply did not contain a valid JSON object matching the schema.

    Args:
        reason: What went wrong while parsing
        preview: Leading part of the reply, kept for diagnostics
    """

    def __init__(self, reason: str, preview: str = ""):
        super().__init__(
            message=reason,
            error_code="RESPONSE_PARSE_ERROR",
            category=ErrorCategory.PARSE,
            details={"preview": preview},
            retryable=False,
        )


class InputTooShortError(BaseError):
    """Text is empty or too short for a meaningful extraction."""

    def __init__(self, length: int, min_length: int):
        super().__init__(
            message="Text too short or empty for meaningful extraction",
            error_code="INPUT_TOO_SHORT",
            category=ErrorCategory.INPUT,
            details={"length": length, "min_length": min_length},
            retryable=False,
        )


class ConfigurationError(BaseError):
    """A required setting (API key, base URL) is missing."""

    def __init__(self, setting: str):
        super().__init__(
            message=f"{setting} is not configured",
            error_code="CONFIGURATION_ERROR",
            category=ErrorCategory.CONFIGURATION,
            details={"setting": setting},
            retryable=False,
        )
