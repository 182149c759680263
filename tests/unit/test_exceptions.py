"""Unit tests for the exception hierarchy."""

from offer_pipeline.core.exceptions import (
    AuthenticationError,
    BaseError,
    ConfigurationError,
    ErrorCategory,
    ExternalServiceError,
    InputTooShortError,
    MalformedResponseError,
    ResponseParseError,
    ServiceProcessingError,
)


class TestBaseError:
    """Tests for BaseError."""

    def test_base_error_creation(self):
        error = BaseError(
            message="Test error",
            error_code="TEST_ERROR",
            category=ErrorCategory.INPUT,
            details={"field": "vehicle.make"},
            retryable=False,
        )
        assert str(error) == "Test error"
        assert error.error_code == "TEST_ERROR"
        assert error.category == ErrorCategory.INPUT
        assert error.details == {"field": "vehicle.make"}
        assert error.retryable is False

    def test_to_dict(self):
        error = BaseError("Broken", "BROKEN", ErrorCategory.PARSE)
        assert error.to_dict() == {
            "code": "BROKEN",
            "title": "Broken",
            "category": "parse",
            "retryable": False,
            "details": {},
        }

    def test_describe_prefixes_code(self):
        error = BaseError("Broken", "BROKEN", ErrorCategory.PARSE)
        assert error.describe() == "BROKEN: Broken"


class TestExternalServiceError:
    """Tests for transient service failures."""

    def test_code_and_defaults(self):
        error = ExternalServiceError("completion", "timeout")
        assert error.error_code == "COMPLETION_TIMEOUT"
        assert error.category == ErrorCategory.EXTERNAL_SERVICE
        assert error.retryable is True
        assert error.details == {"service": "completion", "error_type": "timeout"}
        assert error.is_timeout_or_connection

    def test_extra_details_and_message(self):
        error = ExternalServiceError(
            "vocabulary",
            "error",
            details={"http_code": 500},
            message="upstream exploded",
        )
        assert error.message == "upstream exploded"
        assert error.details["http_code"] == 500
        assert not error.is_timeout_or_connection

    def test_retryable_override(self):
        error = ExternalServiceError("completion", "error", retryable=False)
        assert error.retryable is False


class TestTerminalErrors:
    """Tests for errors that must not be retried."""

    def test_authentication_error(self):
        error = AuthenticationError("completion", status_code=401)
        assert error.error_code == "COMPLETION_AUTHENTICATION_FAILED"
        assert error.category == ErrorCategory.AUTHENTICATION
        assert error.retryable is False
        assert error.details["status_code"] == 401

    def test_malformed_response(self):
        error = MalformedResponseError("text_conversion", "body is not a string")
        assert error.error_code == "TEXT_CONVERSION_MALFORMED_RESPONSE"
        assert "body is not a string" in error.message
        assert error.retryable is False

    def test_service_processing_error(self):
        error = ServiceProcessingError("text_conversion", "Password protected")
        assert error.error_code == "TEXT_CONVERSION_PROCESSING_ERROR"
        assert error.describe() == "TEXT_CONVERSION_PROCESSING_ERROR: Password protected"

    def test_response_parse_error_keeps_preview(self):
        error = ResponseParseError("No JSON found", preview="Sorry, I cannot")
        assert error.error_code == "RESPONSE_PARSE_ERROR"
        assert error.details["preview"] == "Sorry, I cannot"

    def test_input_too_short(self):
        error = InputTooShortError(12, 50)
        assert error.describe() == (
            "INPUT_TOO_SHORT: Text too short or empty for meaningful extraction"
        )
        assert error.details == {"length": 12, "min_length": 50}

    def test_configuration_error(self):
        error = ConfigurationError("COMPLETION_API_KEY")
        assert error.category == ErrorCategory.CONFIGURATION
        assert "COMPLETION_API_KEY" in error.message
