"""Built-in connectors shipped with the engine."""

from flowhub.core.integrations.connectors.http import HttpRequestAction
from flowhub.core.integrations.connectors.webhook import GenericWebhookTrigger
from flowhub.core.integrations.registry import ConnectorRegistry

__all__ = ["GenericWebhookTrigger", "HttpRequestAction", "register_builtin_connectors"]


def register_builtin_connectors(registry: ConnectorRegistry) -> ConnectorRegistry:
    """Register the built-in webhook trigger and HTTP action."""
    registry.register_trigger("webhook", "incoming", GenericWebhookTrigger())
    registry.register_action("http", "request", HttpRequestAction())
    return registry
