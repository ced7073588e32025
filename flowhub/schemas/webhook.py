"""Schemas for the webhook intake endpoint."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WebhookAcceptedResponse(BaseModel):
    """Result of an accepted webhook delivery."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "accepted": True,
                "event_id": "2f1c9d3e-3b1a-4c55-9f0e-6a7d0b1c2e3f",
                "status": "created",
            }
        }
    )

    accepted: bool = Field(True, description="Delivery was verified and processed")
    event_id: UUID | None = Field(None, description="Created trigger event, if any")
    status: str = Field(..., description="'created' or 'ignored' (filtered, inactive or duplicate)")
