"""Execution context carried across nodes and persisted between jobs."""

import copy
from typing import Any


class ExecutionContext:
    """Mutable per-execution view of trigger data and node outputs.

    ``data`` is the merged view: trigger data first, then every node output
    and resume payload layered on top in execution order. Node outputs are
    also kept individually under ``nodes[node_id]``. ``inputs`` holds the
    outputs of the parents feeding the node being run and is not persisted.
    """

    def __init__(
        self,
        trigger: dict[str, Any] | None = None,
        nodes: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        resume: dict[str, Any] | None = None,
    ):
        self.trigger = trigger or {}
        self.nodes = nodes or {}
        self.data = data or {}
        self.resume = resume or {}
        self.inputs: list[Any] = []

    @classmethod
    def seed(cls, trigger_data: Any) -> "ExecutionContext":
        """Create a fresh context from trigger data."""
        trigger = copy.deepcopy(trigger_data) if isinstance(trigger_data, dict) else {"value": trigger_data}
        return cls(trigger=trigger, data=copy.deepcopy(trigger))

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "ExecutionContext":
        payload = payload or {}
        return cls(
            trigger=copy.deepcopy(payload.get("trigger") or {}),
            nodes=copy.deepcopy(payload.get("nodes") or {}),
            data=copy.deepcopy(payload.get("data") or {}),
            resume=copy.deepcopy(payload.get("resume") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(
            {
                "trigger": self.trigger,
                "nodes": self.nodes,
                "data": self.data,
                "resume": self.resume,
            }
        )

    def record_output(self, node_id: str, output: Any) -> None:
        """Store a node's output and merge mappings into the data view."""
        self.nodes[node_id] = output
        if isinstance(output, dict):
            self.data.update(output)

    def merge_resume(self, data: dict[str, Any] | None) -> None:
        """Merge resume payload into the context."""
        if not data:
            return
        self.resume.update(data)
        self.data.update(data)

    def namespace(self) -> dict[str, Any]:
        """Build the lookup namespace for conditions and templates.

        Reserved keys (trigger, nodes, resume, data) shadow same-named data fields.
        """
        return {
            **self.data,
            "trigger": self.trigger,
            "nodes": self.nodes,
            "resume": self.resume,
            "data": self.data,
        }
