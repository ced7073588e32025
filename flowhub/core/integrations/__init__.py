"""Integrations module: connector contracts, registry, credentials and hooks."""

from flowhub.core.integrations.contracts import Action, PollResult, Suspend, Trigger, TriggerType
from flowhub.core.integrations.credentials import CredentialVault, StaticCredentialVault
from flowhub.core.integrations.hooks import EngineHooks, HookEvent
from flowhub.core.integrations.registry import ConnectorRegistry

__all__ = [
    "Action",
    "ConnectorRegistry",
    "CredentialVault",
    "EngineHooks",
    "HookEvent",
    "PollResult",
    "StaticCredentialVault",
    "Suspend",
    "Trigger",
    "TriggerType",
]
