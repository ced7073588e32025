"""Integration tests for ExecutionEngine graph traversal and lifecycle."""

import time
from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from flowhub.core.db.types import utcnow
from flowhub.core.errors import (
    ExecutionNotFoundException,
    ExecutionNotResumableException,
    ExecutionTimeoutException,
    FlowNotActiveException,
    FlowValidationException,
    IntegrationError,
    TemporaryException,
)
from flowhub.core.execution.engine import ExecutionEngine
from flowhub.core.integrations import HookEvent
from flowhub.core.jobs.payloads import ExecuteFlowJob, ResumeFlowJob
from flowhub.models.execution import ExecutionStatus, StepStatus
from tests.helpers import action_node, create_active_flow, edge, trigger_node

pytestmark = pytest.mark.integration


def step_node_ids(execution_engine, execution):
    return [log["node_id"] for log in execution_engine.get_logs(execution.id)]


@pytest.fixture
def approval_flow_nodes():
    nodes = [
        trigger_node(),
        {"node_id": "check", "type": "condition", "config": {"expression": "amount > 100"}},
        action_node("manual_review"),
        action_node("auto_approve"),
    ]
    edges = [
        edge("start", "check"),
        edge("check", "manual_review", handle="true"),
        edge("check", "auto_approve", handle="false"),
    ]
    return nodes, edges


@pytest.mark.asyncio
async def test_condition_routes_to_false_branch(flow_service, execution_engine, approval_flow_nodes, record_action):
    """Test that amount 50 against 'amount > 100' runs only the false branch."""
    nodes, edges = approval_flow_nodes
    flow = await create_active_flow(flow_service, "approvals", nodes, edges)

    execution = await execution_engine.execute(flow.id, {"amount": 50}, run_async=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert step_node_ids(execution_engine, execution) == ["start", "check", "auto_approve"]
    assert "manual_review" in execution.state["dead"]
    assert len(record_action.calls) == 1
    assert execution.context["nodes"]["check"] == {"result": False, "branch": "false"}
    assert execution.output["amount"] == 50


@pytest.mark.asyncio
async def test_condition_routes_to_true_branch(flow_service, execution_engine, approval_flow_nodes):
    nodes, edges = approval_flow_nodes
    flow = await create_active_flow(flow_service, "approvals", nodes, edges)

    execution = await execution_engine.execute(flow.id, {"amount": 500}, run_async=False)

    assert step_node_ids(execution_engine, execution) == ["start", "check", "manual_review"]


@pytest.mark.asyncio
async def test_join_runs_once_after_all_parents(flow_service, execution_engine, record_action):
    nodes = [trigger_node(), action_node("a"), action_node("b"), action_node("join")]
    edges = [edge("start", "a"), edge("start", "b"), edge("a", "join"), edge("b", "join")]
    flow = await create_active_flow(flow_service, "diamond", nodes, edges)

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    node_ids = step_node_ids(execution_engine, execution)
    assert node_ids.count("join") == 1
    assert node_ids[-1] == "join"
    assert len(record_action.calls) == 3


@pytest.mark.asyncio
async def test_join_after_branch_runs_with_one_dead_parent(flow_service, execution_engine, approval_flow_nodes):
    nodes, edges = approval_flow_nodes
    nodes = nodes + [action_node("notify")]
    edges = edges + [edge("manual_review", "notify"), edge("auto_approve", "notify")]
    flow = await create_active_flow(flow_service, "branch-join", nodes, edges)

    execution = await execution_engine.execute(flow.id, {"amount": 50}, run_async=False)

    assert step_node_ids(execution_engine, execution) == ["start", "check", "auto_approve", "notify"]


@pytest.mark.asyncio
async def test_edge_conditions_and_references(flow_service, execution_engine, record_action):
    """Test edge conditions and {{ }} references in action input."""
    nodes = [
        trigger_node(),
        action_node("vip", input={"customer": "{{ trigger.customer }}", "note": "VIP {{ customer }}"}),
        action_node("regular"),
    ]
    edges = [
        edge("start", "vip", condition="tier == 'gold'"),
        edge("start", "regular", condition={"field": "tier", "operator": "!=", "value": "gold"}),
    ]
    flow = await create_active_flow(flow_service, "tiers", nodes, edges)

    execution = await execution_engine.execute(flow.id, {"customer": "acme", "tier": "gold"}, run_async=False)

    assert step_node_ids(execution_engine, execution) == ["start", "vip"]
    assert record_action.calls[0]["input"] == {"customer": "acme", "note": "VIP acme"}


@pytest.mark.asyncio
async def test_disabled_node_is_skipped(flow_service, execution_engine, record_action):
    nodes = [trigger_node(), action_node("skip_me", disabled=True), action_node("after")]
    flow = await create_active_flow(
        flow_service, "disabled", nodes, [edge("start", "skip_me"), edge("skip_me", "after")]
    )

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    logs = execution_engine.get_logs(execution.id)
    assert [(log["node_id"], log["status"]) for log in logs] == [
        ("start", StepStatus.SUCCESS.value),
        ("skip_me", StepStatus.SKIPPED.value),
        ("after", StepStatus.SUCCESS.value),
    ]
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_execute_requires_active_flow(flow_service, execution_engine):
    flow = flow_service.create_flow(slug="draft", nodes=[trigger_node()])

    with pytest.raises(FlowNotActiveException):
        await execution_engine.execute(flow.id, {})


@pytest.mark.asyncio
async def test_execute_async_enqueues_job(flow_service, execution_engine, queue):
    flow = await create_active_flow(flow_service, "async", [trigger_node()], [])

    execution = await execution_engine.execute(flow.id, {"x": 1})

    assert execution.status == ExecutionStatus.RUNNING.value
    (queued,) = queue.pending()
    assert isinstance(queued.job, ExecuteFlowJob)
    assert queued.job.execution_id == execution.id


@pytest.mark.asyncio
async def test_delay_suspends_and_schedules_resume(flow_service, execution_engine, queue):
    """Test that a delay node parks the execution with a scheduled resume job."""
    flow = await create_active_flow(
        flow_service,
        "delayed",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"seconds": 60}}, action_node("notify")],
        [edge("start", "wait"), edge("wait", "notify")],
    )
    before = utcnow()

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    assert execution.status == ExecutionStatus.WAITING.value
    assert before + timedelta(seconds=59) <= execution.resume_at <= utcnow() + timedelta(seconds=61)
    assert execution.state["suspended_node"] == "wait"
    assert execution_engine.get_status(execution.id)["current_node"] == "Wait"

    assert await queue.pop_due() == []
    (queued,) = await queue.pop_due(now=time.time() + 61)
    assert isinstance(queued.job, ResumeFlowJob)
    assert queued.job.execution_id == execution.id
    assert queued.job.node_id == "wait"


@pytest.mark.asyncio
async def test_early_resume_completes_and_stale_job_is_rejected(flow_service, execution_engine, record_action):
    flow = await create_active_flow(
        flow_service,
        "delayed",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"seconds": 60}}, action_node("notify")],
        [edge("start", "wait"), edge("wait", "notify")],
    )
    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    resumed = await execution_engine.resume(execution.id)

    assert resumed.status == ExecutionStatus.COMPLETED.value
    assert resumed.resume_at is None
    assert step_node_ids(execution_engine, execution) == ["start", "wait", "notify"]
    assert len(record_action.calls) == 1

    with pytest.raises(ExecutionNotResumableException):
        await execution_engine.resume(execution.id, node_id="wait")
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_approval_waits_for_resume_data(flow_service, execution_engine, queue, record_action, hooks):
    waiting = MagicMock()
    hooks.subscribe(HookEvent.EXECUTION_WAITING, waiting)
    nodes = [
        trigger_node(),
        {"node_id": "approve", "type": "approval", "config": {"message": "Approve order?"}},
        action_node("ship", input={"approved": "{{ resume.approved }}", "by": "{{ approver }}"}),
    ]
    flow = await create_active_flow(flow_service, "approval", nodes, [edge("start", "approve"), edge("approve", "ship")])

    execution = await execution_engine.execute(flow.id, {"order": 1}, run_async=False)

    assert execution.status == ExecutionStatus.WAITING.value
    assert execution.resume_at is None
    assert await queue.size() == 0
    waiting.assert_called_once_with(execution)

    with pytest.raises(ExecutionNotResumableException):
        await execution_engine.resume(execution.id, node_id="other")

    execution = await execution_engine.resume(execution.id, {"approved": True, "approver": "ops"})

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert record_action.calls[0]["input"] == {"approved": True, "by": "ops"}


@pytest.mark.asyncio
async def test_redelivered_event_job_does_not_rerun(flow_service, execution_engine, record_action):
    """Test that a second job for the same trigger event leaves the execution alone."""
    flow = await create_active_flow(flow_service, "once", [trigger_node(), action_node("a")], [edge("start", "a")])
    event_id = uuid4()

    first = await execution_engine.start_for_event(flow.id, event_id, {"n": 1})
    second = await execution_engine.start_for_event(flow.id, event_id, {"n": 1})

    assert second.id == first.id
    assert second.status == ExecutionStatus.COMPLETED.value
    assert len(record_action.calls) == 1
    assert len(execution_engine.get_executions(flow_id=flow.id)) == 1


@pytest.mark.asyncio
async def test_retryable_failure_resumes_from_failed_node(flow_service, execution_engine, scripted_action, record_action):
    scripted_action.script = [TemporaryException("flaky"), {"ok": True}]
    nodes = [trigger_node(), action_node("first"), action_node("call", action="scripted")]
    flow = await create_active_flow(flow_service, "retry", nodes, [edge("start", "first"), edge("first", "call")])
    execution = await execution_engine.execute(flow.id, {})

    with pytest.raises(TemporaryException):
        await execution_engine.run_execution(execution, final_attempt=False)
    assert execution.status == ExecutionStatus.RUNNING.value

    await execution_engine.run_execution(execution, final_attempt=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    logs = execution_engine.get_logs(execution.id)
    assert [(log["node_id"], log["attempt"], log["status"]) for log in logs] == [
        ("start", 1, StepStatus.SUCCESS.value),
        ("first", 1, StepStatus.SUCCESS.value),
        ("call", 1, StepStatus.FAILED.value),
        ("call", 2, StepStatus.SUCCESS.value),
    ]
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_retryable_failure_on_final_attempt_fails_execution(
    flow_service, execution_engine, scripted_action, hooks
):
    failed = MagicMock()
    hooks.subscribe(HookEvent.EXECUTION_FAILED, failed)
    scripted_action.script = [TemporaryException("still down")]
    flow = await create_active_flow(
        flow_service, "final", [trigger_node(), action_node("call", action="scripted")], [edge("start", "call")]
    )

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    assert execution.status == ExecutionStatus.FAILED.value
    assert execution.error["node_id"] == "call"
    assert execution.error["type"] == "TemporaryException"
    assert execution.completed_at is not None
    failed.assert_called_once_with(execution)


@pytest.mark.asyncio
async def test_non_retryable_failure_fails_immediately(flow_service, execution_engine, scripted_action):
    scripted_action.script = [IntegrationError("bad request")]
    flow = await create_active_flow(
        flow_service, "fatal", [trigger_node(), action_node("call", action="scripted")], [edge("start", "call")]
    )
    execution = await execution_engine.execute(flow.id, {})

    await execution_engine.run_execution(execution, final_attempt=False)

    assert execution.status == ExecutionStatus.FAILED.value
    assert scripted_action.calls == 1


@pytest.mark.asyncio
async def test_continue_on_error(flow_service, execution_engine, scripted_action, record_action):
    scripted_action.script = [IntegrationError("bad request")]
    nodes = [trigger_node(), action_node("call", action="scripted", on_error="continue"), action_node("after")]
    flow = await create_active_flow(flow_service, "tolerant", nodes, [edge("start", "call"), edge("call", "after")])

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert execution.context["nodes"]["call"]["error"]["message"] == "bad request"
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_cancel_is_idempotent(flow_service, execution_engine, hooks):
    cancelled = MagicMock()
    hooks.subscribe(HookEvent.EXECUTION_CANCELLED, cancelled)
    flow = await create_active_flow(
        flow_service,
        "cancel",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"minutes": 5}}],
        [edge("start", "wait")],
    )
    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    assert execution_engine.cancel(execution.id) is True
    assert execution_engine.cancel(execution.id) is False

    assert execution.status == ExecutionStatus.CANCELLED.value
    assert execution.resume_at is None
    cancelled.assert_called_once()
    with pytest.raises(ExecutionNotResumableException):
        await execution_engine.resume(execution.id, node_id="wait")


def test_cancel_unknown_execution(execution_engine):
    with pytest.raises(ExecutionNotFoundException):
        execution_engine.cancel(uuid4())


@pytest.mark.asyncio
async def test_fail_records_external_error(flow_service, execution_engine):
    flow = await create_active_flow(flow_service, "timeout", [trigger_node()], [])
    execution = await execution_engine.execute(flow.id, {})

    assert execution_engine.fail(execution.id, ExecutionTimeoutException("Job timed out")) is True
    assert execution_engine.fail(execution.id, ExecutionTimeoutException("Job timed out")) is False
    assert execution_engine.fail(uuid4(), {"message": "gone"}) is False

    assert execution.status == ExecutionStatus.FAILED.value
    assert execution.error == {"message": "Job timed out", "type": "ExecutionTimeoutException"}


@pytest.mark.asyncio
async def test_retry_starts_new_execution(flow_service, execution_engine):
    flow = await create_active_flow(flow_service, "again", [trigger_node()], [])
    original = await execution_engine.execute(flow.id, {"n": 1}, run_async=False)

    retried = await execution_engine.retry(original.id)

    assert retried.id != original.id
    assert retried.trigger_data == {"n": 1}


@pytest.mark.asyncio
async def test_status_logs_debug_and_statistics(flow_service, execution_engine, scripted_action):
    """Test the read-side views of executions."""
    scripted_action.script = [{"ok": True}, IntegrationError("boom")]
    flow = await create_active_flow(
        flow_service, "stats", [trigger_node(), action_node("call", action="scripted")], [edge("start", "call")]
    )
    ok = await execution_engine.execute(flow.id, {"n": 1}, run_async=False)
    await execution_engine.execute(flow.id, {"n": 2}, run_async=False)

    status = execution_engine.get_status(ok.id)
    assert status["status"] == ExecutionStatus.COMPLETED.value
    assert status["progress"] == 100
    assert status["nodes_executed"] == 2

    logs = execution_engine.get_logs(ok.id)
    assert logs[1]["node_name"] == "Call"
    assert logs[1]["output"] == {"ok": True}

    debug = execution_engine.get_debug_info(ok.id)
    assert debug["execution"]["flow_version"] == flow.version
    assert debug["metrics"]["nodes_executed"] == 2
    assert debug["metrics"]["failed_nodes"] == 0
    assert debug["timeline"][0]["event"] == "started"
    assert debug["timeline"][-1]["event"] == ExecutionStatus.COMPLETED.value

    stats = execution_engine.get_statistics(flow.id)
    assert stats["total_executions"] == 2
    assert stats["completed"] == 1
    assert stats["failed"] == 1
    assert stats["success_rate"] == 50.0
    assert execution_engine.get_statistics(flow.id, period="hour")["total_executions"] == 2


@pytest.mark.asyncio
async def test_execution_pins_flow_version(flow_service, execution_engine, record_action):
    """Test that a running execution keeps the graph it started with."""
    flow = await create_active_flow(
        flow_service,
        "pinned",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"seconds": 30}}, action_node("a")],
        [edge("start", "wait"), edge("wait", "a")],
    )
    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    flow_service.add_node(flow.id, "b", "action", config={"connector": "test", "action": "record"})
    flow_service.add_edge(flow.id, "a", "b")
    await execution_engine.resume(execution.id)

    assert execution.flow_version == 1
    assert step_node_ids(execution_engine, execution) == ["start", "wait", "a"]


@pytest.mark.asyncio
async def test_edits_to_active_flow_wait_for_reactivation(flow_service, execution_engine, record_action):
    """Test that new executions keep the activated graph while edits are unvalidated."""
    flow = await create_active_flow(flow_service, "edited", [trigger_node(), action_node("a")], [edge("start", "a")])

    flow_service.add_node(flow.id, "second_start", "trigger")
    flow = flow_service.get_flow(flow.id)
    assert flow.version == 2
    assert flow.active_version == 1

    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert execution.flow_version == 1
    assert step_node_ids(execution_engine, execution) == ["start", "a"]

    with pytest.raises(FlowValidationException):
        await flow_service.activate(flow.id)
    assert flow_service.get_flow(flow.id).active_version == 1


@pytest.mark.asyncio
async def test_inline_run_against_broken_snapshot_fails_execution(flow_service, execution_engine, db_session):
    flow = await create_active_flow(flow_service, "broken", [trigger_node(), action_node("a")], [edge("start", "a")])
    (version,) = flow_service.get_versions(flow.id)
    definition = version.definition
    version.definition = {
        **definition,
        "nodes": [*definition["nodes"], {"node_id": "extra", "type": "trigger", "name": "Extra", "config": {}}],
    }
    db_session.commit()

    with pytest.raises(FlowValidationException):
        await execution_engine.execute(flow.id, {}, run_async=False)

    db_session.expire_all()
    (execution,) = execution_engine.get_executions(flow_id=flow.id)
    assert execution.status == ExecutionStatus.FAILED.value
    assert execution.error["type"] == "FlowValidationException"
    assert execution.completed_at is not None


@pytest.mark.asyncio
async def test_broken_snapshot_on_retryable_attempt_leaves_execution_running(
    flow_service, execution_engine, db_session
):
    flow = await create_active_flow(flow_service, "broken_retry", [trigger_node()], [])
    (version,) = flow_service.get_versions(flow.id)
    version.definition = {"nodes": [], "edges": []}
    db_session.commit()
    execution = await execution_engine.execute(flow.id, {})

    with pytest.raises(FlowValidationException):
        await execution_engine.run_execution(execution, final_attempt=False)

    db_session.expire_all()
    assert execution_engine.get_status(execution.id)["status"] == ExecutionStatus.RUNNING.value


@pytest.mark.asyncio
async def test_run_stops_when_cancelled_from_another_session(
    flow_service, execution_engine, session_factory, registry, vault, queue, hooks, db_session, record_action
):
    """Test that a worker holding a stale execution loses to a concurrent cancel."""
    flow = await create_active_flow(flow_service, "race_cancel", [trigger_node(), action_node("a")], [edge("start", "a")])
    execution = await execution_engine.execute(flow.id, {"n": 1})

    worker_session = session_factory()
    try:
        worker_engine = ExecutionEngine(worker_session, registry, vault, queue, hooks)
        (stale,) = worker_engine.get_executions(flow_id=flow.id)
        assert stale.status == ExecutionStatus.RUNNING.value

        assert execution_engine.cancel(execution.id) is True

        assert await worker_engine.run_execution(stale) is None
    finally:
        worker_session.close()

    db_session.expire_all()
    assert execution_engine.get_status(execution.id)["status"] == ExecutionStatus.CANCELLED.value
    assert execution_engine.get_logs(execution.id) == []
    assert record_action.calls == []


@pytest.mark.asyncio
async def test_duplicate_resume_from_another_session_is_rejected(
    flow_service, execution_engine, session_factory, registry, vault, queue, hooks, db_session, record_action
):
    flow = await create_active_flow(
        flow_service,
        "race_resume",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"seconds": 60}}, action_node("notify")],
        [edge("start", "wait"), edge("wait", "notify")],
    )
    execution = await execution_engine.execute(flow.id, {}, run_async=False)

    worker_session = session_factory()
    try:
        worker_engine = ExecutionEngine(worker_session, registry, vault, queue, hooks)
        (stale,) = worker_engine.get_executions(flow_id=flow.id)
        assert stale.status == ExecutionStatus.WAITING.value

        resumed = await execution_engine.resume(execution.id)
        assert resumed.status == ExecutionStatus.COMPLETED.value

        with pytest.raises(ExecutionNotResumableException):
            await worker_engine.resume(execution.id, node_id="wait")
    finally:
        worker_session.close()

    db_session.expire_all()
    assert step_node_ids(execution_engine, execution) == ["start", "wait", "notify"]
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_pause_and_resume_continue_from_saved_progress(flow_service, execution_engine, hooks, record_action):
    paused = MagicMock()
    hooks.subscribe(HookEvent.EXECUTION_PAUSED, paused)
    flow = await create_active_flow(flow_service, "pausable", [trigger_node(), action_node("a")], [edge("start", "a")])
    execution = await execution_engine.execute(flow.id, {"n": 1})

    assert execution_engine.pause(execution.id) is True
    assert execution_engine.pause(execution.id) is False
    paused.assert_called_once_with(execution)
    assert execution_engine.get_statistics(flow.id)["paused"] == 1

    # The queued start job finds nothing to run
    assert await execution_engine.run_execution(execution) is execution
    assert record_action.calls == []

    resumed = await execution_engine.resume(execution.id)

    assert resumed.status == ExecutionStatus.COMPLETED.value
    assert step_node_ids(execution_engine, execution) == ["start", "a"]
    assert len(record_action.calls) == 1


@pytest.mark.asyncio
async def test_pause_only_applies_to_running_executions(flow_service, execution_engine):
    flow = await create_active_flow(
        flow_service,
        "pause_waiting",
        [trigger_node(), {"node_id": "wait", "type": "delay", "config": {"seconds": 60}}],
        [edge("start", "wait")],
    )
    waiting = await execution_engine.execute(flow.id, {}, run_async=False)
    assert execution_engine.pause(waiting.id) is False

    running = await execution_engine.execute(flow.id, {})
    execution_engine.pause(running.id)
    assert execution_engine.cancel(running.id) is True
    with pytest.raises(ExecutionNotResumableException):
        await execution_engine.resume(running.id)


@pytest.mark.asyncio
async def test_merge_node_combines_taken_branches(flow_service, execution_engine):
    """Test that a merge after a condition only sees the branch that ran."""
    nodes = [
        trigger_node(),
        {"node_id": "check", "type": "condition", "config": {"expression": "amount > 100"}},
        {"node_id": "big", "type": "set", "config": {"values": {"tier": "big"}}},
        {"node_id": "small", "type": "set", "config": {"values": {"tier": "small"}}},
        {"node_id": "audit", "type": "set", "config": {"values": {"audited": True}}},
        {"node_id": "combine", "type": "merge", "config": {"mode": "merge"}},
    ]
    edges = [
        edge("start", "check"),
        edge("start", "audit"),
        edge("check", "big", handle="true"),
        edge("check", "small", handle="false"),
        edge("big", "combine"),
        edge("small", "combine"),
        edge("audit", "combine"),
    ]
    flow = await create_active_flow(flow_service, "merged", nodes, edges)

    execution = await execution_engine.execute(flow.id, {"amount": 50}, run_async=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert execution.context["nodes"]["combine"] == {"tier": "small", "audited": True}


@pytest.mark.asyncio
async def test_registered_node_handler_runs_in_flow(flow_service, execution_engine):
    async def lead_score(node, config, context):
        return {"score": context.data["amount"] * config["weight"]}

    execution_engine.register_node_handler("lead_score", lead_score)
    flow = await create_active_flow(
        flow_service,
        "scored",
        [trigger_node(), {"node_id": "score", "type": "lead_score", "config": {"weight": 2}}],
        [edge("start", "score")],
    )

    execution = await execution_engine.execute(flow.id, {"amount": 5}, run_async=False)

    assert execution.status == ExecutionStatus.COMPLETED.value
    assert execution.output["score"] == 10
    assert execution_engine.get_logs(execution.id)[1]["node_type"] == "lead_score"
