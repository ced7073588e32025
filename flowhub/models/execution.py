"""Flow execution and step execution models."""

from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Column, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship

from flowhub.core.db.session import Base
from flowhub.core.db.types import UTCDateTime, utcnow


class ExecutionStatus(str, Enum):
    """Flow execution status.

    State transitions:
        RUNNING -> WAITING | PAUSED -> RUNNING
        RUNNING -> COMPLETED | FAILED | CANCELLED
        WAITING | PAUSED -> CANCELLED
    """

    RUNNING = "running"
    WAITING = "waiting"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED.value, ExecutionStatus.FAILED.value, ExecutionStatus.CANCELLED.value}
)


class StepStatus(str, Enum):
    """Status of one node's execution."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class FlowExecution(Base):
    """One run of a flow against one trigger event (or a manual trigger)."""

    __tablename__ = "integration_flow_executions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    flow_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flows.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    trigger_event_id = Column(Uuid(as_uuid=True), nullable=True, unique=True)
    flow_version = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ExecutionStatus.RUNNING.value)
    trigger_data = Column(JSON, nullable=True)
    context = Column(JSON, nullable=True)  # Accumulated trigger/node outputs
    state = Column(JSON, nullable=True)  # Traversal progress (completed/dead nodes, taken edges)
    output = Column(JSON, nullable=True)
    error = Column(JSON, nullable=True)
    nodes_executed = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Float, nullable=True)
    resume_at = Column(UTCDateTime(), nullable=True)
    started_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)
    revision = Column(Integer, nullable=False)

    # Relationships
    flow = relationship("Flow", back_populates="executions")
    steps = relationship(
        "FlowStepExecution",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="FlowStepExecution.started_at",
    )

    __mapper_args__ = {"version_id_col": revision}

    __table_args__ = (
        Index("idx_flow_executions_flow_status", "flow_id", "status"),
        Index("idx_flow_executions_tenant_status", "tenant_id", "status", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<FlowExecution(id={self.id}, flow_id={self.flow_id}, status={self.status})>"


class FlowStepExecution(Base):
    """Append-only record of one node's execution."""

    __tablename__ = "integration_flow_step_executions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    execution_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flow_executions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_id = Column(String(100), nullable=False)
    node_type = Column(String(50), nullable=False)
    node_name = Column(String(255), nullable=False)
    input = Column(JSON, nullable=True)
    output = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False)
    error = Column(JSON, nullable=True)
    attempt = Column(Integer, nullable=False, default=1)
    duration_ms = Column(Float, nullable=True)
    started_at = Column(UTCDateTime(), nullable=False)
    completed_at = Column(UTCDateTime(), nullable=True)

    execution = relationship("FlowExecution", back_populates="steps")

    def __repr__(self) -> str:
        return f"<FlowStepExecution(node_id={self.node_id}, status={self.status})>"
