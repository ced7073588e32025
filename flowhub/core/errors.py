"""Engine error taxonomy shared by connectors, the trigger engine and the execution engine."""

from typing import Any


class IntegrationError(Exception):
    """Base exception for integration errors."""

    retryable: bool = False

    def __init__(self, message: str = "", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for step/execution error columns."""
        data: dict[str, Any] = {"message": self.message, "type": type(self).__name__}
        if self.details:
            data["details"] = self.details
        return data


class ValidationException(IntegrationError):
    """Raised for invalid flow or subscription configuration."""

    pass


class FlowValidationException(ValidationException):
    """Raised when a flow graph fails validation at activation."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class NotFoundException(IntegrationError):
    """Raised when a referenced record or handler does not exist."""

    pass


class ConnectorNotFoundException(NotFoundException):
    """Raised when a connector trigger or action is not registered."""

    pass


class FlowNotFoundException(NotFoundException):
    """Raised when a flow does not exist."""

    pass


class SubscriptionNotFoundException(NotFoundException):
    """Raised when a trigger subscription does not exist."""

    pass


class ExecutionNotFoundException(NotFoundException):
    """Raised when a flow execution does not exist."""

    pass


class WebhookVerificationException(IntegrationError):
    """Raised when a webhook signature does not verify."""

    pass


class FlowNotActiveException(IntegrationError):
    """Raised when dispatching against a flow that is not active."""

    pass


class ExecutionNotResumableException(FlowNotActiveException):
    """Raised when resuming an execution that is not waiting."""

    pass


class ExecutionLimitException(IntegrationError):
    """Raised when a provider-side execution limit is hit."""

    retryable = True

    def __init__(
        self,
        message: str = "",
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        return data


class RateLimitException(ExecutionLimitException):
    """Raised when a provider throttles requests."""

    pass


class TemporaryException(IntegrationError):
    """Explicit transient failure marker raised by connectors."""

    retryable = True


class ExecutionTimeoutException(IntegrationError):
    """Raised when a job exceeds its wall-clock budget."""

    retryable = True


class CredentialNotFoundException(IntegrationError):
    """Raised when a connection has no stored credentials."""

    pass


class TokenRefreshException(IntegrationError):
    """Raised when an OAuth token cannot be refreshed."""

    pass


class OAuthException(IntegrationError):
    """Raised for OAuth protocol failures."""

    pass


def is_retryable(error: BaseException) -> bool:
    """Check whether an exception may succeed on a later attempt."""
    return isinstance(error, IntegrationError) and error.retryable


def retry_after_of(error: BaseException) -> float | None:
    """Get the provider retry hint from an exception, if any."""
    return getattr(error, "retry_after", None)


def error_to_dict(error: BaseException) -> dict[str, Any]:
    """Serialize any exception as a message + type mapping."""
    if isinstance(error, IntegrationError):
        return error.to_dict()
    return {"message": str(error), "type": type(error).__name__}
