"""
Custom exception classes for the document change tracker.

Provides specific exception types for the failure modes of fetching,
persisting and notifying so callers can decide between failing fast,
retrying, and degrading to "try again next cycle".
"""

from typing import Any


class BaseError(Exception):
    """
    Base exception class for all document change tracker errors.

    All custom exceptions in the system inherit from this base class
    to enable consistent error handling and logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize the tracker error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"context={self.context})"
        )


class ConfigurationError(BaseError):
    """Raised when there are configuration or settings issues."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class ValidationError(BaseError):
    """Raised when a document reference fails validation. Never retried."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        expected_value: str | None = None,
        actual_value: Any | None = None,
        validation_rule: str | None = None,
    ):
        context = {}
        if field_name:
            context["field_name"] = field_name
        if expected_value:
            context["expected_value"] = expected_value
        if actual_value is not None:
            context["actual_value"] = str(actual_value)
        if validation_rule:
            context["validation_rule"] = validation_rule

        super().__init__(message, error_code="VALIDATION_ERROR", context=context)


class FetchError(BaseError):
    """Raised when document metadata could not be retrieved from the provider."""

    error_code_value = "FETCH_ERROR"

    def __init__(
        self,
        message: str,
        doc_id: str | None = None,
        attempts: int | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if doc_id:
            context["doc_id"] = doc_id
        if attempts is not None:
            context["attempts"] = attempts

        super().__init__(
            message,
            error_code=self.error_code_value,
            context=context,
            cause=underlying_error,
        )
        self.doc_id = doc_id


class TransientFetchError(FetchError):
    """Raised for network or provider hiccups that are worth retrying."""

    error_code_value = "TRANSIENT_FETCH_ERROR"


class RateLimitError(TransientFetchError):
    """Raised when the provider rejects a call because of rate limiting."""

    error_code_value = "RATE_LIMIT_ERROR"

    def __init__(
        self,
        message: str,
        doc_id: str | None = None,
        retry_after: float | None = None,
        underlying_error: Exception | None = None,
    ):
        super().__init__(message, doc_id=doc_id, underlying_error=underlying_error)
        self.retry_after = retry_after
        if retry_after is not None:
            self.context["retry_after"] = retry_after


class PersistenceError(BaseError):
    """Raised when a read or write against the tracking store fails."""

    error_code_value = "PERSISTENCE_ERROR"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        doc_id: str | None = None,
        tenant_id: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if operation:
            context["operation"] = operation
        if doc_id:
            context["doc_id"] = doc_id
        if tenant_id:
            context["tenant_id"] = tenant_id

        super().__init__(
            message,
            error_code=self.error_code_value,
            context=context,
            cause=underlying_error,
        )


class TenantScopeError(PersistenceError):
    """Raised when a store call is made without a tenant scope."""

    error_code_value = "TENANT_SCOPE_ERROR"


class NotifierError(BaseError):
    """Raised when a change notification could not be delivered."""

    def __init__(
        self,
        message: str,
        destination: str | None = None,
        status_code: int | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if destination:
            context["destination"] = destination
        if status_code is not None:
            context["status_code"] = status_code

        super().__init__(
            message,
            error_code="NOTIFIER_ERROR",
            context=context,
            cause=underlying_error,
        )


class PollingError(BaseError):
    """Raised when the polling scheduler cannot be started or stopped."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="POLLING_ERROR",
            context=context,
            cause=underlying_error,
        )


# Convenience functions for common error scenarios
def raise_config_error(
    message: str,
    config_key: str,
    expected_type: str | None = None,
    actual_value: Any | None = None,
) -> None:
    """Raise a configuration error with context."""
    raise ConfigurationError(
        message=message,
        config_key=config_key,
        expected_type=expected_type,
        actual_value=actual_value,
    )


def raise_tenant_scope_error(operation: str) -> None:
    """Raise a tenant scope error for a store operation."""
    raise TenantScopeError(
        f"Tenant scope is required for {operation}",
        operation=operation,
    )
