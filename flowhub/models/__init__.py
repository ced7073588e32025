from flowhub.core.db.session import Base
from flowhub.models.execution import (
    ExecutionStatus,
    FlowExecution,
    FlowStepExecution,
    StepStatus,
)
from flowhub.models.flow import Flow, FlowEdge, FlowNode, FlowStatus, FlowVersion, NodeType
from flowhub.models.trigger import (
    SubscriptionStatus,
    TriggerEvent,
    TriggerEventStatus,
    TriggerSubscription,
)

__all__ = [
    "Base",
    "ExecutionStatus",
    "Flow",
    "FlowEdge",
    "FlowExecution",
    "FlowNode",
    "FlowStatus",
    "FlowStepExecution",
    "FlowVersion",
    "NodeType",
    "StepStatus",
    "SubscriptionStatus",
    "TriggerEvent",
    "TriggerEventStatus",
    "TriggerSubscription",
]
