"""Flow graph model used for validation and traversal."""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from flowhub.core.errors import FlowValidationException, ValidationException
from flowhub.core.flows.conditions import ConditionEvaluator
from flowhub.models.flow import NodeType

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_HANDLE = "output"
DEFAULT_TARGET_HANDLE = "input"

# Ways a merge node combines the outputs of its parents
MERGE_MODES = ("merge", "concat", "zip")

# Units accepted by delay nodes using {"duration": N, "unit": ...}
DELAY_UNITS = {
    "ms": 0.001,
    "milliseconds": 0.001,
    "s": 1,
    "seconds": 1,
    "m": 60,
    "minutes": 60,
    "h": 3600,
    "hours": 3600,
    "d": 86400,
    "days": 86400,
}


def get_delay_seconds(config: dict[str, Any]) -> float | None:
    """Get the delay of a delay node in seconds.

    Accepts ``seconds``/``minutes``/``hours`` keys (summed) or ``duration``
    with an optional ``unit`` (milliseconds when omitted).

    Returns:
        Delay in seconds, or None if the config has no usable duration
    """
    try:
        if any(key in config for key in ("seconds", "minutes", "hours")):
            return (
                float(config.get("seconds") or 0)
                + float(config.get("minutes") or 0) * 60
                + float(config.get("hours") or 0) * 3600
            )
        if "duration" in config:
            unit = config.get("unit", "ms")
            if unit not in DELAY_UNITS:
                return None
            return float(config["duration"]) * DELAY_UNITS[unit]
    except (TypeError, ValueError):
        return None
    return None


@dataclass
class NodeDefinition:
    """Node as stored in a flow version snapshot."""

    node_id: str
    type: str
    name: str = ""
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def disabled(self) -> bool:
        return bool(self.config.get("disabled"))

    @property
    def continue_on_error(self) -> bool:
        return self.config.get("on_error") == "continue"

    def to_dict(self) -> dict[str, Any]:
        return {"node_id": self.node_id, "type": self.type, "name": self.name, "config": self.config}


@dataclass
class EdgeDefinition:
    """Edge as stored in a flow version snapshot."""

    id: str
    source_node: str
    target_node: str
    source_handle: str = DEFAULT_SOURCE_HANDLE
    target_handle: str = DEFAULT_TARGET_HANDLE
    condition: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_node": self.source_node,
            "source_handle": self.source_handle,
            "target_node": self.target_node,
            "target_handle": self.target_handle,
            "condition": self.condition,
        }


@dataclass
class ValidationResult:
    """Outcome of flow graph validation."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


class FlowGraph:
    """Directed graph of flow nodes and edges."""

    def __init__(self, nodes: list[NodeDefinition], edges: list[EdgeDefinition]):
        self.nodes = nodes
        self.edges = edges
        self._nodes_by_id = {node.node_id: node for node in nodes}
        self._outgoing: dict[str, list[EdgeDefinition]] = {}
        self._incoming: dict[str, list[EdgeDefinition]] = {}
        for edge in edges:
            self._outgoing.setdefault(edge.source_node, []).append(edge)
            self._incoming.setdefault(edge.target_node, []).append(edge)

    @classmethod
    def from_snapshot(cls, definition: dict[str, Any]) -> "FlowGraph":
        """Build a graph from a version snapshot or exported definition."""
        nodes = [
            NodeDefinition(
                node_id=str(node["node_id"]),
                type=node.get("type", ""),
                name=node.get("name") or str(node["node_id"]),
                config=node.get("config") or {},
            )
            for node in definition.get("nodes", [])
        ]
        edges = [
            EdgeDefinition(
                id=str(edge.get("id") or f"e{index}"),
                source_node=str(edge["source_node"]),
                target_node=str(edge["target_node"]),
                source_handle=edge.get("source_handle") or DEFAULT_SOURCE_HANDLE,
                target_handle=edge.get("target_handle") or DEFAULT_TARGET_HANDLE,
                condition=edge.get("condition"),
            )
            for index, edge in enumerate(definition.get("edges", []))
        ]
        return cls(nodes, edges)

    @classmethod
    def from_flow(cls, flow) -> "FlowGraph":
        """Build a graph from a flow's current nodes and edges."""
        return cls.from_snapshot(
            {
                "nodes": [node.to_definition() for node in flow.nodes],
                "edges": [edge.to_definition() for edge in flow.edges],
            }
        )

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    def get_node(self, node_id: str) -> NodeDefinition | None:
        return self._nodes_by_id.get(node_id)

    def outgoing(self, node_id: str) -> list[EdgeDefinition]:
        return self._outgoing.get(node_id, [])

    def incoming(self, node_id: str) -> list[EdgeDefinition]:
        return self._incoming.get(node_id, [])

    def trigger_nodes(self) -> list[NodeDefinition]:
        return [node for node in self.nodes if node.type == NodeType.TRIGGER.value]

    def get_trigger_node(self) -> NodeDefinition:
        """Get the single entry trigger node.

        Raises:
            FlowValidationException: If the flow does not have exactly one trigger node
        """
        triggers = self.trigger_nodes()
        if len(triggers) != 1:
            raise FlowValidationException(
                f"Flow must have exactly one trigger node, found {len(triggers)}",
                [f"Expected one trigger node, found {len(triggers)}"],
            )
        return triggers[0]

    def reachable_from(self, node_id: str) -> set[str]:
        """Get all node ids reachable from a node, including itself."""
        seen = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for edge in self.outgoing(current):
                if edge.target_node not in seen:
                    seen.add(edge.target_node)
                    queue.append(edge.target_node)
        return seen

    def topological_order(self) -> list[str]:
        """Get node ids in topological order (Kahn's algorithm).

        Raises:
            FlowValidationException: If the graph contains a cycle
        """
        in_degree = {node.node_id: 0 for node in self.nodes}
        for edge in self.edges:
            if edge.target_node in in_degree and edge.source_node in in_degree:
                in_degree[edge.target_node] += 1

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for edge in self.outgoing(current):
                if edge.target_node not in in_degree:
                    continue
                in_degree[edge.target_node] -= 1
                if in_degree[edge.target_node] == 0:
                    queue.append(edge.target_node)

        if len(order) != len(in_degree):
            cyclic = sorted(node_id for node_id, degree in in_degree.items() if degree > 0)
            raise FlowValidationException(
                "Flow contains a cycle", [f"Cycle detected involving nodes: {', '.join(cyclic)}"]
            )
        return order

    def validate(self, custom_node_types: Iterable[str] = ()) -> ValidationResult:
        """Validate structure and node configuration.

        Args:
            custom_node_types: Extra node types with registered handlers;
                their config is not checked

        Returns:
            ValidationResult with blocking errors and advisory warnings
        """
        result = ValidationResult()

        if not self.nodes:
            result.errors.append("Flow has no nodes")
            return result

        seen: set[str] = set()
        for node in self.nodes:
            if node.node_id in seen:
                result.errors.append(f"Duplicate node id: {node.node_id}")
            seen.add(node.node_id)

        for edge in self.edges:
            if edge.source_node not in self._nodes_by_id:
                result.errors.append(f"Edge {edge.id} references unknown source node: {edge.source_node}")
            if edge.target_node not in self._nodes_by_id:
                result.errors.append(f"Edge {edge.id} references unknown target node: {edge.target_node}")
            try:
                ConditionEvaluator().validate_condition(edge.condition)
            except ValidationException as e:
                result.errors.append(f"Edge {edge.id} has an invalid condition: {e.message}")

        triggers = self.trigger_nodes()
        if len(triggers) != 1:
            result.errors.append(f"Flow must have exactly one trigger node, found {len(triggers)}")
        else:
            trigger = triggers[0]
            if self.incoming(trigger.node_id):
                result.errors.append(f"Trigger node {trigger.node_id} must not have incoming edges")
            reachable = self.reachable_from(trigger.node_id)
            for node in self.nodes:
                if node.node_id not in reachable:
                    result.errors.append(f"Node {node.node_id} is not reachable from the trigger")

        try:
            self.topological_order()
        except FlowValidationException as e:
            result.errors.extend(e.errors)

        custom_node_types = set(custom_node_types)
        for node in self.nodes:
            if node.type not in custom_node_types:
                result.errors.extend(self._validate_node(node))
            if (
                not self.outgoing(node.node_id)
                and node.type not in (NodeType.END.value, NodeType.TRIGGER.value)
                and len(self.nodes) > 1
            ):
                result.warnings.append(f"Node {node.node_id} has no outgoing edges")
            if node.disabled:
                result.warnings.append(f"Node {node.node_id} is disabled and will be skipped")

        return result

    def _validate_node(self, node: NodeDefinition) -> list[str]:
        config = node.config
        errors: list[str] = []
        evaluator = ConditionEvaluator()

        if node.type not in {t.value for t in NodeType}:
            return [f"Node {node.node_id} has unknown type: {node.type}"]

        if node.type == NodeType.ACTION.value:
            if not config.get("connector") or not config.get("action"):
                errors.append(f"Action node {node.node_id} requires 'connector' and 'action'")

        elif node.type == NodeType.CONDITION.value:
            condition = config.get("expression") or config.get("conditions")
            if not condition:
                errors.append(f"Condition node {node.node_id} requires 'expression' or 'conditions'")
            else:
                try:
                    evaluator.validate_condition(condition)
                except ValidationException as e:
                    errors.append(f"Condition node {node.node_id}: {e.message}")

        elif node.type == NodeType.SWITCH.value:
            cases = config.get("cases")
            if not cases or not isinstance(cases, list):
                errors.append(f"Switch node {node.node_id} requires 'cases'")
            else:
                for index, case in enumerate(cases):
                    if not isinstance(case, dict) or not case.get("handle") or "condition" not in case:
                        errors.append(
                            f"Switch node {node.node_id} case {index} requires 'handle' and 'condition'"
                        )
                        continue
                    try:
                        evaluator.validate_condition(case["condition"])
                    except ValidationException as e:
                        errors.append(f"Switch node {node.node_id} case {index}: {e.message}")

        elif node.type == NodeType.DELAY.value:
            seconds = get_delay_seconds(config)
            if seconds is None or seconds <= 0:
                errors.append(f"Delay node {node.node_id} requires a positive duration")

        elif node.type == NodeType.SET.value:
            if not isinstance(config.get("values"), dict):
                errors.append(f"Set node {node.node_id} requires a 'values' mapping")

        elif node.type == NodeType.TRANSFORM.value:
            if not isinstance(config.get("mapping"), dict):
                errors.append(f"Transform node {node.node_id} requires a 'mapping'")

        elif node.type == NodeType.MERGE.value:
            if config.get("mode", "merge") not in MERGE_MODES:
                errors.append(f"Merge node {node.node_id} mode must be one of: {', '.join(MERGE_MODES)}")

        elif node.type == NodeType.FILTER.value:
            if not config.get("array_path") or not isinstance(config.get("array_path"), str):
                errors.append(f"Filter node {node.node_id} requires an 'array_path'")
            if not isinstance(config.get("conditions"), list):
                errors.append(f"Filter node {node.node_id} requires a 'conditions' list")
            else:
                try:
                    evaluator.validate_condition(config["conditions"])
                except ValidationException as e:
                    errors.append(f"Filter node {node.node_id}: {e.message}")

        return errors
