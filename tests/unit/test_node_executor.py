"""Unit tests for NodeExecutor built-in node handlers."""

from datetime import timedelta

import pytest

from flowhub.core.db.types import utcnow
from flowhub.core.errors import (
    ConnectorNotFoundException,
    CredentialNotFoundException,
    ValidationException,
)
from flowhub.core.execution.nodes import NodeExecutor, NodeResult
from flowhub.core.flows.context import ExecutionContext
from flowhub.core.flows.graph import NodeDefinition
from flowhub.core.integrations import ConnectorRegistry, StaticCredentialVault
from flowhub.core.integrations.contracts import Suspend
from tests.helpers import RecordingAction, ScriptedAction


@pytest.fixture
def record_action():
    return RecordingAction()


@pytest.fixture
def node_executor(record_action):
    """Create NodeExecutor with a recording action and one stored connection."""
    registry = ConnectorRegistry()
    registry.register_action("test", "record", record_action)
    return NodeExecutor(registry, StaticCredentialVault({"conn-1": {"token": "t"}}))


@pytest.fixture
def context():
    return ExecutionContext.seed({"amount": 150, "status": "open"})


def make_node(node_id, type, **config):
    return NodeDefinition(node_id=node_id, type=type, name=node_id, config=config)


@pytest.mark.asyncio
async def test_trigger_node_outputs_trigger_data(node_executor, context):
    result = await node_executor.run(make_node("start", "trigger"), {}, context)
    assert result.output == {"amount": 150, "status": "open"}
    assert result.branch is None


@pytest.mark.asyncio
async def test_action_node_passes_credentials_and_input(node_executor, record_action, context):
    """Test that actions get vault credentials and the resolved input."""
    config = {"connector": "test", "action": "record", "connection_id": "conn-1", "input": {"x": 1}}
    result = await node_executor.run(make_node("act", "action", **config), config, context)

    assert record_action.calls[0]["credentials"] == {"token": "t"}
    assert record_action.calls[0]["input"] == {"x": 1}
    assert result.output == {"echo": {"x": 1}}


@pytest.mark.asyncio
async def test_action_node_without_connection_gets_no_credentials(node_executor, record_action, context):
    config = {"connector": "test", "action": "record"}
    await node_executor.run(make_node("act", "action", **config), config, context)
    assert record_action.calls[0]["credentials"] == {}


@pytest.mark.asyncio
async def test_action_node_failures(node_executor, context):
    """Test unknown actions and missing credentials fail loudly."""
    missing_action = {"connector": "test", "action": "nope"}
    with pytest.raises(ConnectorNotFoundException):
        await node_executor.run(make_node("a", "action", **missing_action), missing_action, context)

    missing_connection = {"connector": "test", "action": "record", "connection_id": "conn-404"}
    with pytest.raises(CredentialNotFoundException):
        await node_executor.run(make_node("a", "action", **missing_connection), missing_connection, context)


@pytest.mark.asyncio
async def test_action_suspend_is_passed_through(context):
    resume_at = utcnow() + timedelta(minutes=5)
    registry = ConnectorRegistry()
    registry.register_action("test", "wait", ScriptedAction([Suspend(resume_at=resume_at, output={"job": 1})]))
    executor = NodeExecutor(registry, StaticCredentialVault())
    config = {"connector": "test", "action": "wait"}

    result = await executor.run(make_node("w", "action", **config), config, context)

    assert result.suspend.resume_at == resume_at
    assert result.output == {"job": 1}


@pytest.mark.asyncio
async def test_condition_node_selects_branch(node_executor, context):
    node = make_node("check", "condition", expression="amount > 100")
    result = await node_executor.run(node, node.config, context)
    assert result.branch == "true"
    assert result.output == {"result": True, "branch": "true"}

    node = make_node(
        "check",
        "condition",
        conditions=[{"field": "status", "operator": "==", "value": "closed"}],
    )
    result = await node_executor.run(node, node.config, context)
    assert result.branch == "false"


@pytest.mark.asyncio
async def test_switch_node_first_matching_case_wins(node_executor, context):
    node = make_node(
        "route",
        "switch",
        cases=[
            {"handle": "small", "condition": "amount < 100"},
            {"handle": "large", "condition": "amount >= 100"},
            {"handle": "any", "condition": True},
        ],
    )
    result = await node_executor.run(node, node.config, context)
    assert result.branch == "large"

    node = make_node("route", "switch", cases=[{"handle": "none", "condition": False}], default_handle="other")
    result = await node_executor.run(node, node.config, context)
    assert result.branch == "other"


@pytest.mark.asyncio
async def test_delay_node_suspends_until_now_plus_delay(node_executor, context):
    before = utcnow()
    node = make_node("wait", "delay", minutes=10)
    result = await node_executor.run(node, node.config, context)

    assert result.suspend is not None
    assert before + timedelta(minutes=10) <= result.suspend.resume_at <= utcnow() + timedelta(minutes=10)
    assert result.output["delay_seconds"] == 600


@pytest.mark.asyncio
async def test_approval_node_waits_for_explicit_resume(node_executor, context):
    node = make_node("approve", "approval", message="Please approve")
    result = await node_executor.run(node, node.config, context)
    assert result.suspend.resume_at is None
    assert result.output == {"awaiting_approval": True, "message": "Please approve"}

    node = make_node("approve", "approval", timeout_seconds=60)
    result = await node_executor.run(node, node.config, context)
    assert result.suspend.resume_at is not None


@pytest.mark.asyncio
async def test_set_transform_and_end_nodes(node_executor, context):
    set_node = make_node("set", "set", values={"priority": "high"})
    assert (await node_executor.run(set_node, set_node.config, context)).output == {"priority": "high"}

    transform = make_node("map", "transform", mapping={"total": "trigger.amount", "fixed": 1})
    assert (await node_executor.run(transform, transform.config, context)).output == {"total": 150, "fixed": 1}

    end = make_node("end", "end", output={"done": True})
    result = await node_executor.run(end, end.config, context)
    assert result.stop is True
    assert result.output == {"done": True}


@pytest.mark.asyncio
async def test_unknown_node_type(node_executor, context):
    with pytest.raises(ValidationException):
        await node_executor.run(make_node("x", "teleport"), {}, context)


@pytest.mark.parametrize(
    "mode, expected",
    [
        ("merge", {"a": 1, "b": 3, "c": 4}),
        ("concat", {"items": [{"a": 1, "b": 2}, {"b": 3, "c": 4}, 5]}),
        ("zip", {"items": [[{"a": 1, "b": 2}, {"b": 3, "c": 4}, 5]]}),
    ],
)
@pytest.mark.asyncio
async def test_merge_node_modes(node_executor, context, mode, expected):
    context.inputs = [{"a": 1, "b": 2}, None, {"b": 3, "c": 4}, 5]
    merge = make_node("m", "merge", mode=mode)

    result = await node_executor.run(merge, merge.config, context)

    assert result.output == expected


@pytest.mark.asyncio
async def test_merge_zip_pads_shorter_lists(node_executor, context):
    context.inputs = [[1, 2, 3], ["a"]]
    merge = make_node("m", "merge", mode="zip")

    result = await node_executor.run(merge, merge.config, context)

    assert result.output == {"items": [[1, "a"], [2, None], [3, None]]}


@pytest.mark.asyncio
async def test_filter_node_keeps_matching_items(node_executor):
    """Test that a filter keeps only the items every condition holds for."""
    context = ExecutionContext.seed(
        {"orders": [{"id": 1, "total": 50}, {"id": 2, "total": 500}, {"id": 3, "total": 900, "void": True}]}
    )
    filter_node = make_node(
        "big", "filter", array_path="orders", conditions=["total > 100", {"field": "void", "operator": "!=", "value": True}]
    )

    result = await node_executor.run(filter_node, filter_node.config, context)

    assert result.output == {"items": [{"id": 2, "total": 500}], "count": 1}


@pytest.mark.asyncio
async def test_filter_node_on_missing_array(node_executor, context):
    filter_node = make_node("f", "filter", array_path="nope", conditions=["value > 1"])
    assert (await node_executor.run(filter_node, filter_node.config, context)).output == {"items": [], "count": 0}


@pytest.mark.asyncio
async def test_registered_node_handler_wins_and_plain_output_is_wrapped(context):
    registry = ConnectorRegistry()
    executor = NodeExecutor(registry, StaticCredentialVault())

    async def double(node, config, ctx):
        return {"doubled": ctx.data["amount"] * config["factor"]}

    async def custom_set(node, config, ctx):
        return NodeResult(output={"custom": True}, stop=True)

    registry.register_node_handler("double", double)
    registry.register_node_handler("set", custom_set)

    result = await executor.run(make_node("d", "double", factor=2), {"factor": 2}, context)
    assert result == NodeResult(output={"doubled": 300})

    overridden = await executor.run(make_node("s", "set", values={}), {"values": {}}, context)
    assert overridden.output == {"custom": True}
    assert overridden.stop is True
    assert registry.list_node_types() == ["double", "set"]
