"""Execution module: graph traversal, suspension and resumption."""

from flowhub.core.execution.engine import ExecutionEngine, TraversalState
from flowhub.core.execution.nodes import NodeExecutor, NodeResult

__all__ = ["ExecutionEngine", "NodeExecutor", "NodeResult", "TraversalState"]
