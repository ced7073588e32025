"""Flow definition schemas used for import and export."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NodeSchema(BaseModel):
    """Node of a flow definition."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "node_id": "check_amount",
                "type": "condition",
                "name": "Check amount",
                "config": {"expression": "amount > 100"},
            }
        },
    )

    node_id: str = Field(..., min_length=1, max_length=100, description="Flow-local node id")
    type: str = Field(..., min_length=1, max_length=50, description="Built-in NodeType value or a registered custom type")
    name: str | None = Field(None, max_length=255, description="Display name")
    config: dict[str, Any] = Field(default_factory=dict, description="Node configuration")
    position: dict[str, Any] | None = Field(None, description="Editor position {x, y}")


class EdgeSchema(BaseModel):
    """Edge of a flow definition."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "source_node": "check_amount",
                "source_handle": "true",
                "target_node": "notify_admin",
            }
        }
    )

    source_node: str = Field(..., min_length=1, max_length=100)
    target_node: str = Field(..., min_length=1, max_length=100)
    source_handle: str = Field("output", max_length=100)
    target_handle: str = Field("input", max_length=100)
    condition: Any = Field(None, description="Expression string or structured condition")


class TriggerConfigSchema(BaseModel):
    """Trigger binding of a flow."""

    connector: str = Field(..., min_length=1)
    trigger: str = Field(..., min_length=1)
    connection_id: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class FlowDefinition(BaseModel):
    """Portable flow definition."""

    slug: str | None = Field(None, max_length=255)
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    trigger: TriggerConfigSchema | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    nodes: list[NodeSchema] = Field(default_factory=list)
    edges: list[EdgeSchema] = Field(default_factory=list)


class FlowExport(BaseModel):
    """Export envelope of a flow definition."""

    version: str = "1.0"
    exported_at: datetime
    flow: FlowDefinition

