"""Observer hooks notified by the engines on lifecycle events."""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    """Lifecycle events emitted by the engines."""

    TRIGGER_EVENT_CREATED = "trigger_event_created"
    FLOW_ACTIVATED = "flow_activated"
    FLOW_DEACTIVATED = "flow_deactivated"
    EXECUTION_WAITING = "execution_waiting"
    EXECUTION_PAUSED = "execution_paused"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"


HookCallback = Callable[[Any], None]


class EngineHooks:
    """Explicit listener registry passed into engines at construction."""

    def __init__(self) -> None:
        self._listeners: dict[HookEvent, list[HookCallback]] = {}

    def subscribe(self, event: HookEvent, callback: HookCallback) -> None:
        """Register a callback for an event.

        Args:
            event: Lifecycle event
            callback: Called with the affected record
        """
        self._listeners.setdefault(event, []).append(callback)

    def unsubscribe(self, event: HookEvent, callback: HookCallback) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: HookEvent, subject: Any) -> None:
        """Notify listeners. A failing listener never breaks the engine."""
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(subject)
            except Exception as e:
                logger.error(f"Hook listener for {event.value} failed: {e}", exc_info=True)
