"""
Exception hierarchy for canvasslog.

Categorized exceptions carrying user-facing messages, troubleshooting hints
and structured details for logging. Nothing in canvasslog retries on failure:
every error is terminal for the action that raised it.
"""

import time
from enum import Enum
from typing import Any

import httpx

from .logging import get_logger

logger = get_logger(__name__)

UNIQUE_VIOLATION_CODE = "23505"


class ErrorCategory(Enum):
    """Categories for error classification."""

    USER_ERROR = "user_error"
    CONFIGURATION_ERROR = "configuration_error"
    NETWORK_ERROR = "network_error"
    API_ERROR = "api_error"
    DATA_ERROR = "data_error"
    CONFLICT_ERROR = "conflict_error"
    SECURITY_ERROR = "security_error"
    SYSTEM_ERROR = "system_error"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CanvassLogError(Exception):
    """
    Base exception for all canvasslog errors.

    Carries a category, severity, optional user-facing message and hints
    that the CLI renders under the error line.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        category: ErrorCategory = ErrorCategory.SYSTEM_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        correlation_id: str | None = None,
        user_message: str | None = None,
        troubleshooting_hints: list[str] | None = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.category = category
        self.severity = severity
        self.correlation_id = correlation_id
        self.user_message = user_message or message
        self.troubleshooting_hints = troubleshooting_hints or []
        self.context = context
        self.timestamp = time.time()

        self._log_error()

    def _log_error(self) -> None:
        logger.debug(
            f"Exception created: {self.__class__.__name__}",
            reason=self.message,
            category=self.category.value,
            severity=self.severity.value,
            details=self.details,
            context=self.context,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "details": self.details,
            "troubleshooting_hints": self.troubleshooting_hints,
            "context": self.context,
        }


class ConfigurationError(CanvassLogError):
    """Raised when required external service settings are missing or invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_value: str | None = None,
        actual_value: str | None = None,
        **kwargs,
    ):
        hints = [
            "Check your .env file for missing or incorrect values",
            "Verify CANVASSLOG_* environment variables are set",
            "Run 'canvasslog config-validate' to see what is missing",
        ]

        details = kwargs.setdefault("details", {})
        if config_key:
            hints.append(f"Ensure '{config_key}' is configured")
            details["config_key"] = config_key
        if expected_value:
            details["expected_value"] = expected_value
        if actual_value:
            details["actual_value"] = actual_value

        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION_ERROR,
            troubleshooting_hints=hints,
            **kwargs,
        )


class APIError(CanvassLogError):
    """Error response from an external HTTP service."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: str | None = None,
        service: str | None = None,
        endpoint: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update(
            {
                "status_code": status_code,
                "response": response,
                "service": service,
                "endpoint": endpoint,
            }
        )
        self.status_code = status_code
        self.service = service

        kwargs.setdefault("category", ErrorCategory.API_ERROR)
        kwargs.setdefault("severity", self._determine_severity(status_code))
        kwargs.setdefault(
            "troubleshooting_hints",
            self._generate_troubleshooting_hints(status_code, service),
        )

        super().__init__(message, **kwargs)

    @staticmethod
    def _determine_severity(status_code: int | None) -> ErrorSeverity:
        if not status_code:
            return ErrorSeverity.MEDIUM
        if status_code >= 500:
            return ErrorSeverity.HIGH
        if status_code >= 400:
            return ErrorSeverity.LOW
        return ErrorSeverity.MEDIUM

    @staticmethod
    def _generate_troubleshooting_hints(
        status_code: int | None, service: str | None
    ) -> list[str]:
        name = service or "the service"

        if status_code == 401:
            return [
                "Check that the API key or access token is valid and not expired",
                f"Sign in to {name} again and refresh the access token",
            ]
        if status_code == 403:
            return [
                "The row-level policies rejected this request",
                "Check that the access token belongs to an authenticated user",
            ]
        if status_code == 404:
            return [
                "The requested collection or endpoint was not found",
                "Check that the store URL points at the project's REST endpoint",
            ]
        if status_code and status_code >= 500:
            return [
                f"{name} is experiencing server issues",
                "Repeat the action once the service has recovered",
            ]
        return [
            "Check the request values and try the action again",
            f"Verify {name} is reachable from this machine",
        ]


class StoreError(APIError):
    """Error object returned by the record store: ``{code, message}``."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        hint: str | None = None,
        **kwargs,
    ):
        self.code = code
        self.hint = hint
        details = kwargs.setdefault("details", {})
        details.update({"store_code": code, "store_hint": hint})
        kwargs.setdefault("service", "record store")
        super().__init__(message, **kwargs)


class DuplicateRecordError(StoreError):
    """Unique-constraint violation, e.g. a second home at the same address and city."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", UNIQUE_VIOLATION_CODE)
        super().__init__(
            message,
            category=ErrorCategory.CONFLICT_ERROR,
            severity=ErrorSeverity.LOW,
            troubleshooting_hints=[
                "A record with the same unique values already exists",
                "Search the existing records before adding it again",
            ],
            **kwargs,
        )


class AuthenticationError(StoreError):
    """Raised when the store rejects the credentials (401)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 401)
        super().__init__(
            message,
            category=ErrorCategory.SECURITY_ERROR,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class AuthorizationError(StoreError):
    """Raised when row-level policies reject a request (403)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 403)
        super().__init__(
            message,
            category=ErrorCategory.SECURITY_ERROR,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class NetworkError(CanvassLogError):
    """Raised when a service cannot be reached at all."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        timeout: float | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update({"host": host, "timeout": timeout})

        hints = [
            "Check your internet connection",
            "Verify the service URL is correct and accessible",
            "Try increasing CANVASSLOG_HTTP_TIMEOUT if the service is slow",
        ]
        if host:
            hints.append(f"Verify that {host} is reachable from your network")

        super().__init__(
            message,
            category=ErrorCategory.NETWORK_ERROR,
            troubleshooting_hints=hints,
            **kwargs,
        )


class ValidationError(CanvassLogError):
    """Raised when user input fails validation before submission."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        field_value: Any | None = None,
        validation_rule: str | None = None,
        field_errors: dict[str, str] | None = None,
        **kwargs,
    ):
        self.field_errors = dict(field_errors or {})
        if field_name and field_name not in self.field_errors:
            self.field_errors[field_name] = message

        details = kwargs.setdefault("details", {})
        details.update(
            {
                "field_name": field_name,
                "field_value": field_value,
                "validation_rule": validation_rule,
                "field_errors": self.field_errors,
            }
        )

        hints = [f"{name}: {error}" for name, error in self.field_errors.items()]
        if not hints:
            hints = ["Check the input values and try again"]

        super().__init__(
            message,
            category=ErrorCategory.USER_ERROR,
            severity=ErrorSeverity.LOW,
            troubleshooting_hints=hints,
            **kwargs,
        )


class FilterError(CanvassLogError):
    """Raised when a filter or sort option is not understood."""

    def __init__(
        self,
        message: str,
        filter_expression: str | None = None,
        filter_type: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update(
            {"filter_expression": filter_expression, "filter_type": filter_type}
        )

        super().__init__(
            message,
            category=ErrorCategory.USER_ERROR,
            severity=ErrorSeverity.LOW,
            troubleshooting_hints=["Run the command with --help to list valid options"],
            **kwargs,
        )


class DataMappingError(CanvassLogError):
    """Raised when a store row cannot be mapped to a domain model."""

    def __init__(
        self,
        message: str,
        source_data: dict[str, Any] | None = None,
        expected_format: str | None = None,
        **kwargs,
    ):
        details = kwargs.setdefault("details", {})
        details.update({"source_data": source_data, "expected_format": expected_format})

        super().__init__(
            message,
            category=ErrorCategory.DATA_ERROR,
            troubleshooting_hints=[
                "Check that the database schema matches the expected columns",
                "Apply any pending migrations to the record store",
            ],
            **kwargs,
        )


class ImportFileError(CanvassLogError):
    """Raised when an import file is missing, of the wrong type or has no rows."""

    def __init__(self, message: str, path: str | None = None, **kwargs):
        details = kwargs.setdefault("details", {})
        details["path"] = path

        super().__init__(
            message,
            category=ErrorCategory.USER_ERROR,
            severity=ErrorSeverity.LOW,
            troubleshooting_hints=[
                "Columns in order: address, street name, city, subdivision, notes",
                "The first line is treated as a header and skipped",
                "City names must match a city already in the database",
            ],
            **kwargs,
        )


def parse_store_error(response: httpx.Response, collection: str | None = None) -> StoreError:
    """Turn a PostgREST error response into the matching exception."""
    status_code = response.status_code
    text = response.text

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        return StoreError(
            f"Record store error (HTTP {status_code})",
            status_code=status_code,
            response=text,
            endpoint=collection,
        )

    code = payload.get("code")
    message = payload.get("message") or f"Record store error (HTTP {status_code})"
    common = {
        "code": code,
        "hint": payload.get("hint"),
        "status_code": status_code,
        "response": text,
        "endpoint": collection,
    }

    if code == UNIQUE_VIOLATION_CODE:
        return DuplicateRecordError(message, **common)
    if status_code == 401:
        return AuthenticationError(message, **common)
    if status_code == 403:
        return AuthorizationError(message, **common)
    return StoreError(message, **common)
