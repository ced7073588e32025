"""Common schemas for standard API responses."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class StandardResponse(BaseModel, Generic[T]):
    """Standard response wrapper for single resources."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"data": {}, "meta": None, "error": None}}
    )

    data: T = Field(..., description="Response data")
    meta: dict | None = Field(None, description="Optional metadata")
    error: None = Field(None, description="Error object (null on success)")


class ErrorDetail(BaseModel):
    """Error detail schema."""

    code: str = Field(..., description="Error code (e.g., 'WEBHOOK_VERIFICATION_FAILED')")
    message: str = Field(..., description="Human-readable error message")
    details: dict | None = Field(None, description="Additional error details")

    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "WEBHOOK_VERIFICATION_FAILED",
                "message": "Webhook signature verification failed",
                "details": None,
            }
        }
    }


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error: ErrorDetail = Field(..., description="Error details")
    data: None = Field(None, description="Data object (null on error)")
