"""Test doubles and flow builders shared by the test suite."""

import json
from typing import Any

from flowhub.core.integrations.connectors.webhook import generate_signature
from flowhub.core.integrations.contracts import Action, PollResult, Suspend, Trigger, TriggerType


class RecordingAction(Action):
    """Action that records its calls and echoes its input."""

    def __init__(self, output: dict[str, Any] | None = None):
        self.output = output
        self.calls: list[dict[str, Any]] = []

    async def execute(self, credentials, config, resolved_input):
        self.calls.append({"credentials": credentials, "config": config, "input": resolved_input})
        if self.output is not None:
            return dict(self.output)
        return {"echo": resolved_input}


class ScriptedAction(Action):
    """Action that plays back a script of results; exceptions are raised.

    The last entry repeats once the script runs out.
    """

    def __init__(self, script: list[Any] | None = None):
        self.script = list(script or [{"ok": True}])
        self.calls = 0

    async def execute(self, credentials, config, resolved_input):
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        result = self.script[index]
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, Suspend):
            return result
        return dict(result)


class FakePollingTrigger(Trigger):
    """Polling trigger returning scripted poll results; items are keyed by 'id'."""

    polling_interval = 60

    def __init__(self):
        self.results: list[PollResult | BaseException] = []
        self.received_states: list[dict[str, Any]] = []

    def get_type(self) -> TriggerType:
        return TriggerType.POLLING

    async def poll(self, credentials, config, state):
        self.received_states.append(dict(state))
        if not self.results:
            return PollResult(items=[], state=dict(state))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    def get_deduplication_key(self, item):
        if "id" in item:
            return str(item["id"])
        return None


class FailingWebhookTrigger(Trigger):
    """Webhook trigger whose provider registration always fails."""

    def get_type(self) -> TriggerType:
        return TriggerType.WEBHOOK

    async def register_webhook(self, credentials, callback_url, config):
        raise ConnectionError("provider unavailable")


class UnverifiedWebhookTrigger(Trigger):
    """Webhook trigger that does not implement signature verification."""

    def get_type(self) -> TriggerType:
        return TriggerType.WEBHOOK

    async def register_webhook(self, credentials, callback_url, config):
        return {"webhook_id": "hook-1"}


def action_node(node_id: str, connector: str = "test", action: str = "record", **config) -> dict:
    return {
        "node_id": node_id,
        "type": "action",
        "config": {"connector": connector, "action": action, **config},
    }


def trigger_node(node_id: str = "start") -> dict:
    return {"node_id": node_id, "type": "trigger", "config": {}}


def edge(source: str, target: str, handle: str = "output", condition: Any = None) -> dict:
    return {
        "source_node": source,
        "target_node": target,
        "source_handle": handle,
        "condition": condition,
    }


async def create_active_flow(flow_service, slug: str, nodes: list, edges: list, trigger_config=None):
    """Create a flow and activate it."""
    flow = flow_service.create_flow(
        slug=slug, nodes=nodes, edges=edges, trigger_config=trigger_config
    )
    return await flow_service.activate(flow.id)


def signed_request(payload: dict, secret: str) -> tuple[str, dict[str, str]]:
    """Serialize a payload and sign it the way a webhook sender would."""
    body = json.dumps(payload)
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Signature": f"sha256={generate_signature(body, secret)}",
    }
    return body, headers
