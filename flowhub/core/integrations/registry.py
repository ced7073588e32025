"""Connector registry resolving trigger, action and node handlers by name."""

import logging
from collections.abc import Callable
from typing import Any

from flowhub.core.errors import ConnectorNotFoundException
from flowhub.core.integrations.contracts import Action, Trigger

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Registry mapping (connector, name) to trigger and action instances.

    Also holds handlers for custom node types, keyed by type name.
    """

    def __init__(self) -> None:
        self._triggers: dict[tuple[str, str], Trigger] = {}
        self._actions: dict[tuple[str, str], Action] = {}
        self._node_handlers: dict[str, Callable[..., Any]] = {}

    def register_trigger(self, connector: str, name: str, trigger: Trigger) -> None:
        """Register a trigger.

        Args:
            connector: Connector name (e.g., 'github')
            name: Trigger name (e.g., 'issue_opened')
            trigger: Trigger instance
        """
        trigger.connector = connector
        trigger.name = name
        self._triggers[(connector, name)] = trigger
        logger.info(f"Registered trigger: {connector}.{name}")

    def register_action(self, connector: str, name: str, action: Action) -> None:
        """Register an action.

        Args:
            connector: Connector name
            name: Action name
            action: Action instance
        """
        action.connector = connector
        action.name = name
        self._actions[(connector, name)] = action
        logger.info(f"Registered action: {connector}.{name}")

    def register_node_handler(self, node_type: str, handler: Callable[..., Any]) -> None:
        """Register a handler for a node type.

        Args:
            node_type: Type name used by flow nodes
            handler: Async callable taking (node, resolved_config, context) and
                returning a NodeResult; replaces the built-in handler of the same type
        """
        self._node_handlers[node_type] = handler
        logger.info(f"Registered node handler: {node_type}")

    def get_trigger(self, connector: str, name: str) -> Trigger:
        """Get a registered trigger.

        Raises:
            ConnectorNotFoundException: If the trigger is not registered
        """
        trigger = self._triggers.get((connector, name))
        if trigger is None:
            raise ConnectorNotFoundException(f"Trigger not found: {connector}.{name}")
        return trigger

    def get_action(self, connector: str, name: str) -> Action:
        """Get a registered action.

        Raises:
            ConnectorNotFoundException: If the action is not registered
        """
        action = self._actions.get((connector, name))
        if action is None:
            raise ConnectorNotFoundException(f"Action not found: {connector}.{name}")
        return action

    def has_trigger(self, connector: str, name: str) -> bool:
        return (connector, name) in self._triggers

    def get_node_handler(self, node_type: str) -> Callable[..., Any] | None:
        return self._node_handlers.get(node_type)

    def list_node_types(self) -> list[str]:
        return sorted(self._node_handlers)

    def list_triggers(self) -> list[str]:
        return sorted(f"{c}.{n}" for c, n in self._triggers)

    def list_actions(self) -> list[str]:
        return sorted(f"{c}.{n}" for c, n in self._actions)
