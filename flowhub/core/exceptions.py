"""Custom exceptions for API error handling."""

from typing import Any

from fastapi import HTTPException, status


class APIException(HTTPException):
    """Custom exception for API errors with standard format.

    Example:
        raise APIException(
            code="SUBSCRIPTION_NOT_FOUND",
            message="Subscription not found",
            status_code=status.HTTP_404_NOT_FOUND
        )
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API exception.

        Args:
            code: Error code (e.g., 'WEBHOOK_VERIFICATION_FAILED').
            message: Human-readable error message.
            status_code: HTTP status code (default: 400).
            details: Optional additional error details.
        """
        super().__init__(
            status_code=status_code,
            detail={"error": {"code": code, "message": message, "details": details}},
        )
        self.code = code
        self.message = message
        self.details = details


def raise_not_found(resource: str, resource_id: str | None = None) -> None:
    """Raise 404 Not Found exception.

    Args:
        resource: Resource type (e.g., 'Subscription', 'Execution').
        resource_id: Optional resource ID.

    Raises:
        APIException: 404 Not Found error.
    """
    message = f"{resource} not found"
    if resource_id:
        message += f" (ID: {resource_id})"
    raise APIException(
        code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
        message=message,
        status_code=status.HTTP_404_NOT_FOUND,
    )


def raise_bad_request(
    code: str, message: str, details: dict[str, Any] | None = None
) -> None:
    """Raise 400 Bad Request exception."""
    raise APIException(
        code=code,
        message=message,
        status_code=status.HTTP_400_BAD_REQUEST,
        details=details,
    )


def raise_unauthorized(
    code: str = "AUTH_UNAUTHORIZED", message: str = "Unauthorized"
) -> None:
    """Raise 401 Unauthorized exception."""
    raise APIException(
        code=code, message=message, status_code=status.HTTP_401_UNAUTHORIZED
    )


def raise_internal_server_error(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> None:
    """Raise 500 Internal Server Error exception.

    Providers retry deliveries that receive a 5xx, so only use this for
    failures that may succeed on a later attempt.
    """
    raise APIException(
        code=code,
        message=message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=details,
    )
