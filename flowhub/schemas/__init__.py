"""Pydantic schemas for API requests and responses."""

from flowhub.schemas.common import ErrorDetail, ErrorResponse, StandardResponse
from flowhub.schemas.flow import (
    EdgeSchema,
    FlowDefinition,
    FlowExport,
    NodeSchema,
    TriggerConfigSchema,
)
from flowhub.schemas.webhook import WebhookAcceptedResponse

__all__ = [
    "EdgeSchema",
    "ErrorDetail",
    "ErrorResponse",
    "FlowDefinition",
    "FlowExport",
    "NodeSchema",
    "StandardResponse",
    "TriggerConfigSchema",
    "WebhookAcceptedResponse",
]
