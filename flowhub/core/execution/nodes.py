"""Built-in node handlers."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from itertools import zip_longest
from typing import Any

from flowhub.core.db.types import utcnow
from flowhub.core.errors import ValidationException
from flowhub.core.flows.conditions import ConditionEvaluator, get_path
from flowhub.core.flows.context import ExecutionContext
from flowhub.core.flows.graph import NodeDefinition, get_delay_seconds
from flowhub.core.integrations.contracts import Suspend
from flowhub.core.integrations.credentials import CredentialVault
from flowhub.core.integrations.registry import ConnectorRegistry
from flowhub.models.flow import NodeType

logger = logging.getLogger(__name__)


@dataclass
class NodeResult:
    """Outcome of running one node."""

    output: Any = None
    branch: str | None = None  # Selected source handle for branching nodes
    suspend: Suspend | None = None
    stop: bool = False


NodeHandler = Callable[[NodeDefinition, dict[str, Any], ExecutionContext], Awaitable[NodeResult]]


class NodeExecutor:
    """Runs nodes by type.

    Handlers receive the node (raw config), the config with ``{{ }}``
    references resolved, and the execution context. Handlers registered on
    the connector registry take precedence over the built-in ones and may
    return a plain output instead of a NodeResult.
    """

    def __init__(self, registry: ConnectorRegistry, vault: CredentialVault):
        self.registry = registry
        self.vault = vault
        self.evaluator = ConditionEvaluator()
        self._handlers: dict[str, NodeHandler] = {
            NodeType.TRIGGER.value: self._run_trigger,
            NodeType.ACTION.value: self._run_action,
            NodeType.CONDITION.value: self._run_condition,
            NodeType.SWITCH.value: self._run_switch,
            NodeType.DELAY.value: self._run_delay,
            NodeType.APPROVAL.value: self._run_approval,
            NodeType.SET.value: self._run_set,
            NodeType.TRANSFORM.value: self._run_transform,
            NodeType.MERGE.value: self._run_merge,
            NodeType.FILTER.value: self._run_filter,
            NodeType.END.value: self._run_end,
        }

    async def run(
        self, node: NodeDefinition, resolved_config: dict[str, Any], context: ExecutionContext
    ) -> NodeResult:
        """Run a node.

        Raises:
            ValidationException: If the node type is unknown
        """
        custom = self.registry.get_node_handler(node.type)
        if custom is not None:
            result = await custom(node, resolved_config, context)
            return result if isinstance(result, NodeResult) else NodeResult(output=result)

        handler = self._handlers.get(node.type)
        if handler is None:
            raise ValidationException(f"Unknown node type: {node.type}", {"node_id": node.node_id})
        return await handler(node, resolved_config, context)

    async def _run_trigger(self, node, config, context) -> NodeResult:
        return NodeResult(output=dict(context.trigger))

    async def _run_action(self, node, config, context) -> NodeResult:
        action = self.registry.get_action(config.get("connector", ""), config.get("action", ""))
        connection_id = config.get("connection_id")
        credentials = self.vault.retrieve(connection_id) if connection_id else {}
        resolved_input = config.get("input") or {}

        result = await action.execute(credentials, config, resolved_input)

        if isinstance(result, Suspend):
            return NodeResult(output=result.output, suspend=result)
        if result is None:
            return NodeResult(output={})
        if not isinstance(result, dict):
            return NodeResult(output={"result": result})
        return NodeResult(output=result)

    async def _run_condition(self, node, config, context) -> NodeResult:
        raw = node.config
        namespace = context.namespace()
        if raw.get("expression"):
            result = self.evaluator.evaluate_expression(raw["expression"], namespace)
        else:
            result = self.evaluator.evaluate_conditions(
                raw.get("conditions") or [], namespace, raw.get("combine_with", "and")
            )
        branch = "true" if result else "false"
        return NodeResult(output={"result": result, "branch": branch}, branch=branch)

    async def _run_switch(self, node, config, context) -> NodeResult:
        namespace = context.namespace()
        for case in node.config.get("cases", []):
            if self.evaluator.evaluate(case.get("condition"), namespace):
                branch = case["handle"]
                break
        else:
            branch = node.config.get("default_handle", "default")
        return NodeResult(output={"branch": branch}, branch=branch)

    async def _run_delay(self, node, config, context) -> NodeResult:
        seconds = get_delay_seconds(config) or 0
        resume_at = utcnow() + timedelta(seconds=seconds)
        output = {"resume_at": resume_at.isoformat(), "delay_seconds": seconds}
        return NodeResult(output=output, suspend=Suspend(resume_at=resume_at, output=output))

    async def _run_approval(self, node, config, context) -> NodeResult:
        output = {"awaiting_approval": True, "message": config.get("message")}
        resume_at = None
        if config.get("timeout_seconds"):
            # Auto-resume after the timeout; an explicit resume before that wins
            resume_at = utcnow() + timedelta(seconds=float(config["timeout_seconds"]))
        return NodeResult(output=output, suspend=Suspend(resume_at=resume_at, output=output))

    async def _run_set(self, node, config, context) -> NodeResult:
        return NodeResult(output=dict(config.get("values") or {}))

    async def _run_transform(self, node, config, context) -> NodeResult:
        namespace = context.namespace()
        output = {
            target: get_path(namespace, source) if isinstance(source, str) else source
            for target, source in (node.config.get("mapping") or {}).items()
        }
        return NodeResult(output=output)

    async def _run_merge(self, node, config, context) -> NodeResult:
        inputs = [value for value in context.inputs if value is not None]
        mode = config.get("mode", "merge")
        if mode == "concat":
            items: list[Any] = []
            for value in inputs:
                items.extend(value if isinstance(value, list) else [value])
            return NodeResult(output={"items": items})
        if mode == "zip":
            lists = [value if isinstance(value, list) else [value] for value in inputs]
            return NodeResult(output={"items": [list(row) for row in zip_longest(*lists)]})

        merged: dict[str, Any] = {}
        for value in inputs:
            if isinstance(value, dict):
                merged.update(value)
        return NodeResult(output=merged)

    async def _run_filter(self, node, config, context) -> NodeResult:
        items = get_path(context.namespace(), node.config.get("array_path", ""))
        if not isinstance(items, list):
            logger.debug(f"Filter node {node.node_id}: {node.config.get('array_path')} is not a list")
            items = []

        conditions = node.config.get("conditions") or []
        combine = node.config.get("combine_with", "and")
        kept = [
            item
            for item in items
            if self.evaluator.evaluate_conditions(
                conditions, item if isinstance(item, dict) else {"value": item}, combine
            )
        ]
        return NodeResult(output={"items": kept, "count": len(kept)})

    async def _run_end(self, node, config, context) -> NodeResult:
        return NodeResult(output=config.get("output") or {}, stop=True)
