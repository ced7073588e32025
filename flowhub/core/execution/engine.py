"""Execution engine driving flow executions through their graph."""

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from flowhub.core.db.types import ensure_utc, utcnow
from flowhub.core.errors import (
    ExecutionNotFoundException,
    ExecutionNotResumableException,
    FlowNotActiveException,
    FlowNotFoundException,
    error_to_dict,
    is_retryable,
)
from flowhub.core.execution.nodes import NodeExecutor, NodeHandler, NodeResult
from flowhub.core.flows.conditions import ConditionEvaluator
from flowhub.core.flows.context import ExecutionContext
from flowhub.core.flows.graph import FlowGraph, NodeDefinition
from flowhub.core.flows.resolver import resolve_value
from flowhub.core.integrations.credentials import CredentialVault
from flowhub.core.integrations.hooks import EngineHooks, HookEvent
from flowhub.core.integrations.registry import ConnectorRegistry
from flowhub.core.jobs.payloads import ExecuteFlowJob, ResumeFlowJob
from flowhub.core.jobs.queue import JobQueue
from flowhub.core.logging import log_engine_event
from flowhub.models.execution import (
    TERMINAL_STATUSES,
    ExecutionStatus,
    FlowExecution,
    StepStatus,
)
from flowhub.models.flow import Flow, FlowStatus
from flowhub.models.trigger import TriggerEventStatus
from flowhub.repositories.execution_repository import ExecutionRepository
from flowhub.repositories.flow_repository import FlowRepository
from flowhub.repositories.trigger_repository import TriggerRepository

logger = logging.getLogger(__name__)

STATISTICS_PERIODS = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
}

RESUMABLE_STATUSES = frozenset({ExecutionStatus.WAITING.value, ExecutionStatus.PAUSED.value})


@dataclass
class TraversalState:
    """Persisted progress of the graph walk."""

    completed: list[str] = field(default_factory=list)
    dead: list[str] = field(default_factory=list)
    taken_edges: list[str] = field(default_factory=list)
    suspended_node: str | None = None
    attempts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "TraversalState":
        payload = payload or {}
        return cls(
            completed=list(payload.get("completed") or []),
            dead=list(payload.get("dead") or []),
            taken_edges=list(payload.get("taken_edges") or []),
            suspended_node=payload.get("suspended_node"),
            attempts=dict(payload.get("attempts") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": list(self.completed),
            "dead": list(self.dead),
            "taken_edges": list(self.taken_edges),
            "suspended_node": self.suspended_node,
            "attempts": dict(self.attempts),
        }

    @property
    def resolved_nodes(self) -> set[str]:
        return set(self.completed) | set(self.dead)


class ExecutionEngine:
    """Engine running flow executions node by node.

    Progress is committed after every node, so a job that dies mid-run can
    be re-delivered and continue from the last committed node. The execution
    row carries an optimistic revision counter: a worker whose commit loses a
    race (concurrent cancel or duplicate delivery) rolls back and stops.
    """

    def __init__(
        self,
        db: Session,
        registry: ConnectorRegistry,
        vault: CredentialVault,
        queue: JobQueue,
        hooks: EngineHooks | None = None,
    ):
        """Initialize execution engine.

        Args:
            db: Database session
            registry: Connector registry resolving actions
            vault: Credential vault for node connections
            queue: Job queue for async runs and scheduled resumes
            hooks: Lifecycle listeners
        """
        self.db = db
        self.repository = ExecutionRepository(db)
        self.flow_repository = FlowRepository(db)
        self.trigger_repository = TriggerRepository(db)
        self.queue = queue
        self.hooks = hooks or EngineHooks()
        self.node_executor = NodeExecutor(registry, vault)
        self.condition_evaluator = ConditionEvaluator()

    def register_node_handler(self, node_type: str, handler: NodeHandler) -> None:
        """Register a custom node type on the shared connector registry."""
        self.node_executor.registry.register_node_handler(node_type, handler)

    # Starting executions

    async def execute(
        self,
        flow_id: UUID,
        trigger_data: dict[str, Any] | None = None,
        trigger_event_id: UUID | None = None,
        run_async: bool = True,
    ) -> FlowExecution:
        """Start an execution of an active flow.

        Args:
            flow_id: Flow to run
            trigger_data: Data seeding the execution context
            trigger_event_id: Originating trigger event, if any
            run_async: Enqueue an ExecuteFlowJob instead of running inline

        Raises:
            FlowNotFoundException: If the flow does not exist
            FlowNotActiveException: If the flow is not active
        """
        flow = self._get_flow(flow_id)
        if flow.status != FlowStatus.ACTIVE.value:
            raise FlowNotActiveException(f"Flow {flow_id} is not active", {"status": flow.status})

        execution = self._create_execution(flow, trigger_data or {}, trigger_event_id)

        if run_async:
            await self.queue.push(
                ExecuteFlowJob(
                    flow_id=flow.id,
                    execution_id=execution.id,
                    trigger_event_id=trigger_event_id,
                    context=trigger_data or {},
                )
            )
            return execution

        await self.run_execution(execution, flow)
        return execution

    async def start_for_event(
        self,
        flow_id: UUID,
        trigger_event_id: UUID,
        trigger_data: dict[str, Any] | None = None,
        final_attempt: bool = True,
    ) -> FlowExecution | None:
        """Run the execution belonging to a trigger event, creating it once.

        A re-delivered job finds the existing execution: a terminal one is
        returned untouched, a running one continues from its saved progress.

        Raises:
            FlowNotActiveException: If the flow is no longer active (the event is ignored)
        """
        execution = self.repository.get_execution_by_event(trigger_event_id)
        if execution is not None:
            logger.info(
                f"Trigger event {trigger_event_id} already has execution {execution.id} "
                f"({execution.status})"
            )
            self._mark_event(trigger_event_id, TriggerEventStatus.DISPATCHED)
            if execution.status == ExecutionStatus.RUNNING.value:
                return await self.run_execution(execution, final_attempt=final_attempt)
            return execution

        flow = self._get_flow(flow_id)
        if flow.status != FlowStatus.ACTIVE.value:
            self._mark_event(trigger_event_id, TriggerEventStatus.IGNORED)
            raise FlowNotActiveException(f"Flow {flow_id} is not active", {"status": flow.status})

        try:
            execution = self._create_execution(flow, trigger_data or {}, trigger_event_id)
        except IntegrityError:
            # Another worker created it first
            execution = self.repository.get_execution_by_event(trigger_event_id)
            if execution is None:
                raise
            logger.info(f"Execution for trigger event {trigger_event_id} created concurrently")
            return execution

        self._mark_event(trigger_event_id, TriggerEventStatus.DISPATCHED)
        return await self.run_execution(execution, flow, final_attempt=final_attempt)

    async def retry(self, execution_id: UUID) -> FlowExecution:
        """Start a new execution with the trigger data of an earlier one."""
        original = self._get_execution(execution_id)
        log_engine_event("execution_retried", execution_id=original.id, flow_id=original.flow_id)
        return await self.execute(original.flow_id, original.trigger_data or {})

    # Running

    async def run_execution(
        self,
        execution: FlowExecution,
        flow: Flow | None = None,
        final_attempt: bool = True,
    ) -> FlowExecution | None:
        """Walk the graph of a running execution from its saved progress.

        Args:
            execution: Execution to run; ignored unless status is running
            flow: Owning flow (loaded when omitted)
            final_attempt: Whether a retryable node failure should fail the
                execution (True) or propagate so the job is retried (False)

        Returns:
            The execution, or None if a concurrent change aborted this run

        Raises:
            Exception: Errors outside node execution (e.g. a broken graph) are
                recorded on the execution when ``final_attempt`` is set, then re-raised
        """
        if execution.status != ExecutionStatus.RUNNING.value:
            logger.info(f"Execution {execution.id} is {execution.status}, nothing to run")
            return execution

        try:
            flow = flow or self._get_flow(execution.flow_id)
            graph = self._load_graph(execution, flow)
            state = TraversalState.from_dict(execution.state)
            if execution.context:
                context = ExecutionContext.from_dict(execution.context)
            else:
                context = ExecutionContext.seed(execution.trigger_data or {})

            if execution.started_at is None:
                execution.started_at = utcnow()

            return await self._walk(execution, graph, state, context, final_attempt)
        except StaleDataError:
            self.db.rollback()
            log_engine_event(
                "execution_conflict",
                level=logging.WARNING,
                execution_id=execution.id,
                flow_id=execution.flow_id,
            )
            return None
        except Exception as e:
            if final_attempt:
                logger.error(f"Execution {execution.id} aborted: {e}", exc_info=True)
                self.db.rollback()
                self.fail(execution.id, e)
            raise

    async def _walk(
        self,
        execution: FlowExecution,
        graph: FlowGraph,
        state: TraversalState,
        context: ExecutionContext,
        final_attempt: bool,
    ) -> FlowExecution:
        resolved = state.resolved_nodes
        taken_edges = set(state.taken_edges)
        root = graph.get_trigger_node()

        for node_id in graph.topological_order():
            if node_id in resolved:
                continue

            node = graph.get_node(node_id)
            if node.node_id != root.node_id:
                incoming = graph.incoming(node_id)
                if not all(edge.source_node in resolved for edge in incoming):
                    continue
                if not any(edge.id in taken_edges for edge in incoming):
                    # Dead branch: no step, outgoing edges resolve as not taken
                    state.dead.append(node_id)
                    resolved.add(node_id)
                    continue

            context.inputs = [
                context.nodes.get(source)
                for source in dict.fromkeys(
                    edge.source_node for edge in graph.incoming(node_id) if edge.id in taken_edges
                )
            ]
            result = await self._run_node(execution, node, context, state, final_attempt)
            if result is None:
                return execution

            if result.suspend is not None:
                await self._suspend(execution, node, result, context, state)
                return execution

            selected = self._select_edges(graph, node, result.branch, context)
            state.taken_edges.extend(selected)
            taken_edges.update(selected)
            state.completed.append(node_id)
            resolved.add(node_id)
            self._save_progress(execution, context, state)

            if result.stop:
                break

        self._complete(execution, context, state)
        return execution

    async def _run_node(
        self,
        execution: FlowExecution,
        node: NodeDefinition,
        context: ExecutionContext,
        state: TraversalState,
        final_attempt: bool,
    ) -> NodeResult | None:
        """Run one node and record its step.

        Returns:
            The node result, or None if the failure ended the execution
        """
        attempt = state.attempts.get(node.node_id, 0) + 1
        state.attempts[node.node_id] = attempt
        started_at = utcnow()
        started = time.perf_counter()

        if node.disabled:
            result = NodeResult(output=None)
            self._record_step(execution, node, None, result.output, StepStatus.SKIPPED, None, attempt, started_at, started)
            context.record_output(node.node_id, None)
            return result

        resolved_config = resolve_value(node.config, context.namespace())
        try:
            result = await self.node_executor.run(node, resolved_config, context)
        except Exception as e:
            error = error_to_dict(e)
            self._record_step(execution, node, resolved_config, None, StepStatus.FAILED, error, attempt, started_at, started)
            logger.warning(f"Node {node.node_id} of execution {execution.id} failed: {e}")

            if node.continue_on_error:
                result = NodeResult(output={"error": error})
                context.record_output(node.node_id, result.output)
                return result

            if is_retryable(e) and not final_attempt:
                self._save_progress(execution, context, state)
                raise

            self._fail(execution, error, context, state, failed_node=node.node_id)
            return None

        self._record_step(execution, node, resolved_config, result.output, StepStatus.SUCCESS, None, attempt, started_at, started)
        context.record_output(node.node_id, result.output)
        return result

    def _record_step(
        self,
        execution: FlowExecution,
        node: NodeDefinition,
        step_input: Any,
        output: Any,
        status: StepStatus,
        error: dict[str, Any] | None,
        attempt: int,
        started_at,
        started: float,
    ) -> None:
        self.repository.add_step(
            {
                "execution_id": execution.id,
                "node_id": node.node_id,
                "node_type": node.type,
                "node_name": node.name or node.node_id,
                "input": step_input,
                "output": output,
                "status": status.value,
                "error": error,
                "attempt": attempt,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                "started_at": started_at,
                "completed_at": utcnow(),
            }
        )
        execution.nodes_executed = (execution.nodes_executed or 0) + 1

    def _select_edges(
        self,
        graph: FlowGraph,
        node: NodeDefinition,
        branch: str | None,
        context: ExecutionContext,
    ) -> list[str]:
        """Get ids of outgoing edges to follow after a node."""
        namespace = context.namespace()
        selected = []
        for edge in graph.outgoing(node.node_id):
            if branch is not None and edge.source_handle != branch:
                continue
            if not self.condition_evaluator.evaluate(edge.condition, namespace):
                continue
            selected.append(edge.id)
        return selected

    async def _suspend(
        self,
        execution: FlowExecution,
        node: NodeDefinition,
        result: NodeResult,
        context: ExecutionContext,
        state: TraversalState,
    ) -> None:
        resume_at = ensure_utc(result.suspend.resume_at)
        state.suspended_node = node.node_id
        execution.status = ExecutionStatus.WAITING.value
        execution.resume_at = resume_at
        self._save_progress(execution, context, state)

        if resume_at is not None:
            delay = max((resume_at - utcnow()).total_seconds(), 0)
            await self.queue.later(
                delay, ResumeFlowJob(execution_id=execution.id, node_id=node.node_id)
            )

        log_engine_event(
            "execution_waiting",
            execution_id=execution.id,
            flow_id=execution.flow_id,
            node_id=node.node_id,
            resume_at=resume_at.isoformat() if resume_at else None,
        )
        self.hooks.emit(HookEvent.EXECUTION_WAITING, execution)

    def _save_progress(
        self, execution: FlowExecution, context: ExecutionContext, state: TraversalState
    ) -> None:
        execution.context = context.to_dict()
        execution.state = state.to_dict()
        self.repository.save(execution)

    def _finish(self, execution: FlowExecution, status: ExecutionStatus) -> None:
        now = utcnow()
        execution.status = status.value
        execution.completed_at = now
        execution.resume_at = None
        started_at = ensure_utc(execution.started_at) or now
        execution.duration_ms = round((now - started_at).total_seconds() * 1000, 3)

    def _complete(
        self, execution: FlowExecution, context: ExecutionContext, state: TraversalState
    ) -> None:
        self._finish(execution, ExecutionStatus.COMPLETED)
        execution.output = dict(context.data)
        self._save_progress(execution, context, state)
        log_engine_event(
            "execution_completed",
            execution_id=execution.id,
            flow_id=execution.flow_id,
            nodes_executed=execution.nodes_executed,
            duration_ms=execution.duration_ms,
        )
        self.hooks.emit(HookEvent.EXECUTION_COMPLETED, execution)

    def _fail(
        self,
        execution: FlowExecution,
        error: dict[str, Any],
        context: ExecutionContext,
        state: TraversalState,
        failed_node: str | None = None,
    ) -> None:
        self._finish(execution, ExecutionStatus.FAILED)
        execution.error = {**error, "node_id": failed_node} if failed_node else error
        self._save_progress(execution, context, state)
        log_engine_event(
            "execution_failed",
            level=logging.ERROR,
            execution_id=execution.id,
            flow_id=execution.flow_id,
            node_id=failed_node,
            error=error.get("message"),
        )
        self.hooks.emit(HookEvent.EXECUTION_FAILED, execution)

    # Lifecycle control

    async def resume(
        self,
        execution_id: UUID,
        data: dict[str, Any] | None = None,
        node_id: str | None = None,
        final_attempt: bool = True,
    ) -> FlowExecution | None:
        """Resume a waiting or paused execution.

        Args:
            execution_id: Execution to resume
            data: Payload merged into the context (``resume`` key and data view)
            node_id: If given, only resume while suspended at this node
            final_attempt: Passed through to run_execution

        Raises:
            ExecutionNotFoundException: If the execution does not exist
            ExecutionNotResumableException: If the execution is not waiting or paused
        """
        execution = self._get_execution(execution_id)
        state = TraversalState.from_dict(execution.state)
        if execution.status not in RESUMABLE_STATUSES:
            raise ExecutionNotResumableException(
                f"Execution {execution_id} is not waiting or paused", {"status": execution.status}
            )
        if node_id is not None and state.suspended_node != node_id:
            raise ExecutionNotResumableException(
                f"Execution {execution_id} is not waiting at node {node_id}",
                {"suspended_node": state.suspended_node},
            )

        flow = self._get_flow(execution.flow_id)
        graph = self._load_graph(execution, flow)
        context = ExecutionContext.from_dict(execution.context)
        context.merge_resume(data)

        suspended = graph.get_node(state.suspended_node) if state.suspended_node else None
        if suspended is not None:
            state.taken_edges.extend(self._select_edges(graph, suspended, None, context))
            state.completed.append(suspended.node_id)
        state.suspended_node = None

        execution.status = ExecutionStatus.RUNNING.value
        execution.resume_at = None
        try:
            self._save_progress(execution, context, state)
        except StaleDataError as e:
            self.db.rollback()
            raise ExecutionNotResumableException(
                f"Execution {execution_id} was resumed or cancelled concurrently"
            ) from e

        log_engine_event("execution_resumed", execution_id=execution.id, flow_id=execution.flow_id)
        return await self.run_execution(execution, flow, final_attempt=final_attempt)

    def pause(self, execution_id: UUID) -> bool:
        """Pause a running execution.

        A worker walking the execution stops at its next commit; resume()
        continues from the last committed node.

        Returns:
            True if the execution was paused by this call

        Raises:
            ExecutionNotFoundException: If the execution does not exist
        """
        execution = self._get_execution(execution_id)
        if execution.status != ExecutionStatus.RUNNING.value:
            return False

        execution.status = ExecutionStatus.PAUSED.value
        try:
            self.repository.save(execution)
        except StaleDataError:
            self.db.rollback()
            return False

        log_engine_event("execution_paused", execution_id=execution.id, flow_id=execution.flow_id)
        self.hooks.emit(HookEvent.EXECUTION_PAUSED, execution)
        return True

    def cancel(self, execution_id: UUID) -> bool:
        """Cancel a running, waiting or paused execution.

        Returns:
            True if the execution was cancelled by this call

        Raises:
            ExecutionNotFoundException: If the execution does not exist
        """
        for _ in range(2):
            execution = self._get_execution(execution_id)
            if execution.status in TERMINAL_STATUSES:
                return False
            self._finish(execution, ExecutionStatus.CANCELLED)
            try:
                self.repository.save(execution)
            except StaleDataError:
                self.db.rollback()
                self.db.expire_all()
                continue
            log_engine_event("execution_cancelled", execution_id=execution.id, flow_id=execution.flow_id)
            self.hooks.emit(HookEvent.EXECUTION_CANCELLED, execution)
            return True
        return False

    def fail(self, execution_id: UUID, error: BaseException | dict[str, Any]) -> bool:
        """Record a failure that happened outside node execution (e.g. a job timeout).

        Returns:
            True if the execution was moved to failed
        """
        execution = self.repository.get_execution_by_id(execution_id)
        if execution is None or execution.status in TERMINAL_STATUSES:
            return False

        error_data = error if isinstance(error, dict) else error_to_dict(error)
        self._finish(execution, ExecutionStatus.FAILED)
        execution.error = error_data
        try:
            self.repository.save(execution)
        except StaleDataError:
            self.db.rollback()
            return False

        log_engine_event(
            "execution_failed",
            level=logging.ERROR,
            execution_id=execution.id,
            flow_id=execution.flow_id,
            error=error_data.get("message"),
        )
        self.hooks.emit(HookEvent.EXECUTION_FAILED, execution)
        return True

    # Status & logging

    def get_status(self, execution_id: UUID) -> dict[str, Any]:
        """Get a summary of an execution's state."""
        execution = self._get_execution(execution_id)
        state = TraversalState.from_dict(execution.state)
        current_node = None
        if state.suspended_node:
            graph = self._load_graph(execution)
            node = graph.get_node(state.suspended_node)
            current_node = node.name if node else state.suspended_node

        return {
            "id": execution.id,
            "flow_id": execution.flow_id,
            "status": execution.status,
            "started_at": execution.started_at,
            "completed_at": execution.completed_at,
            "resume_at": execution.resume_at,
            "duration_ms": execution.duration_ms,
            "nodes_executed": execution.nodes_executed,
            "current_node": current_node,
            "progress": self._calculate_progress(execution),
            "error": execution.error,
        }

    def get_logs(self, execution_id: UUID) -> list[dict[str, Any]]:
        """Get the step records of an execution in order."""
        self._get_execution(execution_id)
        return [
            {
                "node_id": step.node_id,
                "node_name": step.node_name,
                "node_type": step.node_type,
                "status": step.status,
                "attempt": step.attempt,
                "started_at": step.started_at,
                "duration_ms": step.duration_ms,
                "input": step.input,
                "output": step.output,
                "error": step.error,
            }
            for step in self.repository.get_steps(execution_id)
        ]

    def get_debug_info(self, execution_id: UUID) -> dict[str, Any]:
        """Get execution details, steps, timeline and metrics."""
        execution = self._get_execution(execution_id)
        steps = self.repository.get_steps(execution_id)
        slowest = max(steps, key=lambda s: s.duration_ms or 0, default=None)

        return {
            "execution": {
                "id": execution.id,
                "flow_id": execution.flow_id,
                "flow_version": execution.flow_version,
                "status": execution.status,
                "trigger_data": execution.trigger_data,
                "context": execution.context,
                "state": execution.state,
                "output": execution.output,
                "error": execution.error,
            },
            "steps": self.get_logs(execution_id),
            "timeline": self._build_timeline(execution, steps),
            "metrics": {
                "total_duration_ms": execution.duration_ms,
                "nodes_executed": execution.nodes_executed,
                "slowest_node": slowest.node_name if slowest else None,
                "failed_nodes": sum(1 for s in steps if s.status == StepStatus.FAILED.value),
            },
        }

    def get_executions(
        self,
        flow_id: UUID | None = None,
        tenant_id: UUID | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[FlowExecution]:
        return self.repository.get_executions(
            flow_id=flow_id, tenant_id=tenant_id, status=status, limit=limit
        )

    def get_statistics(self, flow_id: UUID, period: str | None = None) -> dict[str, Any]:
        """Get execution counts and success rate for a flow.

        Args:
            flow_id: Flow ID
            period: Optional window: 'hour', 'day', 'week' or 'month'
        """
        since = None
        if period:
            since = utcnow() - STATISTICS_PERIODS.get(period, STATISTICS_PERIODS["day"])

        counts = self.repository.count_by_status(flow_id, since)
        total = sum(counts.values())
        completed = counts.get(ExecutionStatus.COMPLETED.value, 0)
        avg_duration = self.repository.average_duration(
            flow_id, ExecutionStatus.COMPLETED.value, since
        )

        return {
            "total_executions": total,
            "completed": completed,
            "failed": counts.get(ExecutionStatus.FAILED.value, 0),
            "cancelled": counts.get(ExecutionStatus.CANCELLED.value, 0),
            "running": counts.get(ExecutionStatus.RUNNING.value, 0),
            "waiting": counts.get(ExecutionStatus.WAITING.value, 0),
            "paused": counts.get(ExecutionStatus.PAUSED.value, 0),
            "success_rate": round(completed / total * 100, 2) if total else 0,
            "avg_duration_ms": round(avg_duration or 0, 2),
        }

    # Helpers

    def _get_flow(self, flow_id: UUID) -> Flow:
        flow = self.flow_repository.get_flow_by_id(flow_id)
        if flow is None:
            raise FlowNotFoundException(f"Flow not found: {flow_id}")
        return flow

    def _get_execution(self, execution_id: UUID) -> FlowExecution:
        execution = self.repository.get_execution_by_id(execution_id)
        if execution is None:
            raise ExecutionNotFoundException(f"Execution not found: {execution_id}")
        return execution

    def _create_execution(
        self, flow: Flow, trigger_data: dict[str, Any], trigger_event_id: UUID | None
    ) -> FlowExecution:
        # Pin the version validated at activation, not later drafts
        flow_version = flow.active_version or flow.version
        execution = self.repository.create_execution(
            {
                "flow_id": flow.id,
                "tenant_id": flow.tenant_id,
                "trigger_event_id": trigger_event_id,
                "flow_version": flow_version,
                "status": ExecutionStatus.RUNNING.value,
                "trigger_data": trigger_data,
                "context": ExecutionContext.seed(trigger_data).to_dict(),
                "state": TraversalState().to_dict(),
            }
        )
        log_engine_event(
            "execution_created",
            execution_id=execution.id,
            flow_id=flow.id,
            flow_version=flow_version,
            trigger_event_id=trigger_event_id,
        )
        return execution

    def _load_graph(self, execution: FlowExecution, flow: Flow | None = None) -> FlowGraph:
        """Load the graph pinned by the execution's flow version."""
        version = self.flow_repository.get_version(execution.flow_id, execution.flow_version)
        if version is not None:
            return FlowGraph.from_snapshot(version.definition)
        logger.warning(
            f"No snapshot for flow {execution.flow_id} v{execution.flow_version}, using live graph"
        )
        return FlowGraph.from_flow(flow or self._get_flow(execution.flow_id))

    def _mark_event(self, trigger_event_id: UUID, status: TriggerEventStatus) -> None:
        event = self.trigger_repository.get_event_by_id(trigger_event_id)
        if event is not None and event.status == TriggerEventStatus.PENDING.value:
            self.trigger_repository.update_event_status(event.id, status.value, utcnow())

    def _calculate_progress(self, execution: FlowExecution) -> int:
        if execution.status == ExecutionStatus.COMPLETED.value:
            return 100
        if execution.status in (ExecutionStatus.FAILED.value, ExecutionStatus.CANCELLED.value):
            return 0
        total_nodes = len(self._load_graph(execution).nodes)
        if total_nodes == 0:
            return 0
        return min(99, int(execution.nodes_executed / total_nodes * 100))

    def _build_timeline(self, execution: FlowExecution, steps: list) -> list[dict[str, Any]]:
        timeline: list[dict[str, Any]] = [
            {"event": "started", "timestamp": execution.started_at or execution.created_at}
        ]
        for step in steps:
            timeline.append({"event": "node_started", "node": step.node_name, "timestamp": step.started_at})
            if step.completed_at:
                timeline.append(
                    {
                        "event": f"node_{step.status}",
                        "node": step.node_name,
                        "timestamp": step.completed_at,
                        "duration_ms": step.duration_ms,
                    }
                )
        if execution.completed_at:
            timeline.append({"event": execution.status, "timestamp": execution.completed_at})
        return timeline
