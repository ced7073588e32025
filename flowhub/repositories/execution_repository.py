"""Execution repository for flow execution data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowhub.models.execution import FlowExecution, FlowStepExecution


class ExecutionRepository:
    """Repository for flow executions and their step records."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    # FlowExecution operations
    def create_execution(self, execution_data: dict) -> FlowExecution:
        """Create a new execution.

        Raises:
            IntegrityError: If an execution already exists for the trigger event
        """
        execution = FlowExecution(**execution_data)
        self.db.add(execution)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(execution)
        return execution

    def get_execution_by_id(self, execution_id: UUID) -> FlowExecution | None:
        """Get execution by ID."""
        return self.db.query(FlowExecution).filter(FlowExecution.id == execution_id).first()

    def get_execution_by_event(self, trigger_event_id: UUID) -> FlowExecution | None:
        """Get the execution started for a trigger event."""
        return (
            self.db.query(FlowExecution)
            .filter(FlowExecution.trigger_event_id == trigger_event_id)
            .first()
        )

    def get_executions(
        self,
        flow_id: UUID | None = None,
        tenant_id: UUID | None = None,
        status: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[FlowExecution]:
        """List executions with optional filters, newest first."""
        query = self.db.query(FlowExecution)
        if flow_id:
            query = query.filter(FlowExecution.flow_id == flow_id)
        if tenant_id:
            query = query.filter(FlowExecution.tenant_id == tenant_id)
        if status:
            query = query.filter(FlowExecution.status == status)
        if since:
            query = query.filter(FlowExecution.created_at >= since)
        return query.order_by(FlowExecution.created_at.desc()).limit(limit).all()

    def save(self, execution: FlowExecution) -> FlowExecution:
        """Commit pending changes to an execution and its new steps.

        Raises:
            StaleDataError: If another worker changed the execution concurrently
        """
        self.db.add(execution)
        self.db.commit()
        return execution

    # FlowStepExecution operations
    def add_step(self, step_data: dict) -> FlowStepExecution:
        """Stage a step record; it is persisted with the next save()."""
        step = FlowStepExecution(**step_data)
        self.db.add(step)
        return step

    def get_steps(self, execution_id: UUID) -> list[FlowStepExecution]:
        """Get steps of an execution in execution order."""
        return (
            self.db.query(FlowStepExecution)
            .filter(FlowStepExecution.execution_id == execution_id)
            .order_by(FlowStepExecution.started_at)
            .all()
        )

    def count_steps(self, execution_id: UUID, status: str | None = None) -> int:
        """Count steps of an execution."""
        query = self.db.query(func.count(FlowStepExecution.id)).filter(
            FlowStepExecution.execution_id == execution_id
        )
        if status:
            query = query.filter(FlowStepExecution.status == status)
        return query.scalar() or 0

    # Statistics
    def count_by_status(self, flow_id: UUID, since: datetime | None = None) -> dict[str, int]:
        """Count executions of a flow grouped by status."""
        query = self.db.query(FlowExecution.status, func.count(FlowExecution.id)).filter(
            FlowExecution.flow_id == flow_id
        )
        if since:
            query = query.filter(FlowExecution.created_at >= since)
        return {status: count for status, count in query.group_by(FlowExecution.status).all()}

    def average_duration(
        self, flow_id: UUID, status: str, since: datetime | None = None
    ) -> float | None:
        """Average duration in ms of executions with a given status."""
        query = self.db.query(func.avg(FlowExecution.duration_ms)).filter(
            FlowExecution.flow_id == flow_id, FlowExecution.status == status
        )
        if since:
            query = query.filter(FlowExecution.created_at >= since)
        return query.scalar()
