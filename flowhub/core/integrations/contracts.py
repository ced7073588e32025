"""Capability contracts implemented by connector triggers and actions."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from flowhub.core.flows.conditions import ConditionEvaluator

filter_evaluator = ConditionEvaluator()


class TriggerType(str, Enum):
    """How a trigger delivers events."""

    WEBHOOK = "webhook"
    POLLING = "polling"


@dataclass
class PollResult:
    """Items found by one poll and the cursor to store for the next one."""

    items: list[dict[str, Any]]
    state: dict[str, Any] = field(default_factory=dict)


@dataclass
class Suspend:
    """Returned by an action to pause the execution after its node.

    A ``resume_at`` of None means the execution waits for an explicit
    resume call (e.g. a human approval) instead of a scheduled job.
    """

    resume_at: datetime | None = None
    output: dict[str, Any] = field(default_factory=dict)


class Trigger(ABC):
    """Base class for connector triggers."""

    connector: str = ""
    name: str = ""
    polling_interval: int = 300

    @abstractmethod
    def get_type(self) -> TriggerType:
        """Get the delivery type of this trigger."""
        pass

    async def register_webhook(
        self, credentials: dict[str, Any], callback_url: str, config: dict[str, Any]
    ) -> dict[str, Any]:
        """Register a webhook with the external service.

        Returns:
            Dict with at least a 'webhook_id' key
        """
        raise NotImplementedError(f"{type(self).__name__} does not register webhooks")

    async def unregister_webhook(
        self, credentials: dict[str, Any], webhook_id: str
    ) -> None:
        """Remove a previously registered webhook."""
        return None

    def verify_webhook(
        self, raw_payload: str, headers: dict[str, str], credentials: dict[str, Any]
    ) -> bool:
        """Verify the signature of an incoming delivery.

        Webhook triggers must override this; deliveries are rejected otherwise.
        """
        return False

    def process_webhook(
        self, payload: dict[str, Any], headers: dict[str, str], config: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Normalize a delivery into an item, or None to ignore it."""
        return payload

    async def poll(
        self, credentials: dict[str, Any], config: dict[str, Any], state: dict[str, Any]
    ) -> PollResult:
        """Fetch new items since the stored cursor."""
        raise NotImplementedError(f"{type(self).__name__} does not support polling")

    def get_deduplication_key(self, item: dict[str, Any]) -> str | None:
        """Get a semantic key identifying the logical event, if the trigger has one."""
        return None

    def get_delivery_key(self, headers: dict[str, str]) -> str | None:
        """Get a key identifying a webhook delivery from its headers, if the sender sends one."""
        return None

    def apply_filters(self, item: dict[str, Any], filters: list[dict[str, Any]]) -> bool:
        """Check an item against subscription filters (all must match)."""
        if not filters:
            return True
        return filter_evaluator.evaluate_conditions(filters, item)

    def get_polling_interval(self) -> int:
        """Seconds until the next poll."""
        return self.polling_interval

    def can_test(self) -> bool:
        return True

    def get_sample_output(self) -> dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return f"<Trigger(connector={self.connector}, name={self.name})>"


class Action(ABC):
    """Base class for connector actions."""

    connector: str = ""
    name: str = ""

    @abstractmethod
    async def execute(
        self,
        credentials: dict[str, Any],
        config: dict[str, Any],
        resolved_input: dict[str, Any],
    ) -> dict[str, Any] | Suspend:
        """Perform the action.

        Args:
            credentials: Decrypted credentials for the node's connection
            config: Static node configuration
            resolved_input: Node input with context references substituted

        Returns:
            Output mapping merged into the execution context, or Suspend
        """
        pass

    def __repr__(self) -> str:
        return f"<Action(connector={self.connector}, name={self.name})>"
