"""Flows module: graph model, conditions, context and flow management."""

from flowhub.core.flows.conditions import ConditionEvaluator, ConditionSyntaxError
from flowhub.core.flows.context import ExecutionContext
from flowhub.core.flows.graph import FlowGraph, ValidationResult
from flowhub.core.flows.resolver import resolve_value

__all__ = [
    "ConditionEvaluator",
    "ConditionSyntaxError",
    "ExecutionContext",
    "FlowGraph",
    "ValidationResult",
    "resolve_value",
]
