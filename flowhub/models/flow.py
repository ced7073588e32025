"""Flow models: versioned automation graphs of nodes and edges."""

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from flowhub.core.db.session import Base
from flowhub.core.db.types import UTCDateTime, utcnow


class FlowStatus(str, Enum):
    """Flow status."""

    DRAFT = "draft"
    ACTIVE = "active"
    DISABLED = "disabled"


class NodeType(str, Enum):
    """Built-in node types."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    SWITCH = "switch"
    DELAY = "delay"
    APPROVAL = "approval"
    SET = "set"
    TRANSFORM = "transform"
    MERGE = "merge"
    FILTER = "filter"
    END = "end"


class Flow(Base):
    """Flow model for automation definitions."""

    __tablename__ = "integration_flows"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    slug = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=FlowStatus.DRAFT.value)
    trigger_config = Column(JSON, nullable=True)  # connector, trigger, connection_id, config
    settings = Column(JSON, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    active_version = Column(Integer, nullable=True)  # Version validated by the last activation
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    nodes = relationship(
        "FlowNode", back_populates="flow", cascade="all, delete-orphan", order_by="FlowNode.created_at"
    )
    edges = relationship(
        "FlowEdge", back_populates="flow", cascade="all, delete-orphan", order_by="FlowEdge.created_at"
    )
    versions = relationship("FlowVersion", back_populates="flow", cascade="all, delete-orphan")
    subscriptions = relationship(
        "TriggerSubscription", back_populates="flow", cascade="all, delete-orphan"
    )
    executions = relationship("FlowExecution", back_populates="flow", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_integration_flows_tenant_status", "tenant_id", "status"),)

    def __repr__(self) -> str:
        return f"<Flow(id={self.id}, slug={self.slug}, status={self.status}, version={self.version})>"


class FlowNode(Base):
    """Node of a flow graph."""

    __tablename__ = "integration_flow_nodes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    flow_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_id = Column(String(100), nullable=False)  # Flow-local identifier
    type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    config = Column(JSON, nullable=True)
    position = Column(JSON, nullable=True)  # {x, y} for the editor
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    flow = relationship("Flow", back_populates="nodes")

    __table_args__ = (UniqueConstraint("flow_id", "node_id", name="uq_flow_nodes_flow_node"),)

    def to_definition(self) -> dict:
        return {
            "node_id": self.node_id,
            "type": self.type,
            "name": self.name,
            "config": self.config or {},
            "position": self.position,
        }

    def __repr__(self) -> str:
        return f"<FlowNode(node_id={self.node_id}, type={self.type})>"


class FlowEdge(Base):
    """Directed edge between two flow nodes."""

    __tablename__ = "integration_flow_edges"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    flow_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flows.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_node = Column(String(100), nullable=False)
    source_handle = Column(String(100), nullable=False, default="output")
    target_node = Column(String(100), nullable=False)
    target_handle = Column(String(100), nullable=False, default="input")
    condition = Column(JSON, nullable=True)  # Expression string or structured condition
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)

    flow = relationship("Flow", back_populates="edges")

    __table_args__ = (
        Index("idx_flow_edges_flow_source", "flow_id", "source_node"),
        Index("idx_flow_edges_flow_target", "flow_id", "target_node"),
    )

    def to_definition(self) -> dict:
        return {
            "id": str(self.id),
            "source_node": self.source_node,
            "source_handle": self.source_handle,
            "target_node": self.target_node,
            "target_handle": self.target_handle,
            "condition": self.condition,
        }

    def __repr__(self) -> str:
        return f"<FlowEdge({self.source_node}:{self.source_handle} -> {self.target_node})>"


class FlowVersion(Base):
    """Immutable snapshot of a flow graph at a given version."""

    __tablename__ = "integration_flow_versions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    flow_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version = Column(Integer, nullable=False)
    definition = Column(JSON, nullable=False)  # {"nodes": [...], "edges": [...]}
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)

    flow = relationship("Flow", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("flow_id", "version", name="uq_flow_versions_flow_version"),
    )
