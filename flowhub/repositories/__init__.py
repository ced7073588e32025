from flowhub.repositories.execution_repository import ExecutionRepository
from flowhub.repositories.flow_repository import FlowRepository
from flowhub.repositories.trigger_repository import TriggerRepository

__all__ = ["ExecutionRepository", "FlowRepository", "TriggerRepository"]
