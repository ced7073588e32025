"""Generic inbound webhook trigger signed with HMAC-SHA256."""

import hashlib
import hmac
import logging
from typing import Any

from flowhub.core.integrations.contracts import Trigger, TriggerType

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-webhook-signature"
EVENT_HEADER = "x-webhook-event"
DELIVERY_HEADER = "x-webhook-delivery"


def generate_signature(payload: str, secret: str) -> str:
    """Generate HMAC signature for a webhook payload.

    Args:
        payload: Raw request body
        secret: Subscription webhook secret

    Returns:
        Hex digest
    """
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


class GenericWebhookTrigger(Trigger):
    """Accepts any JSON delivery signed with the subscription's webhook secret.

    The sender signs the raw body and sends ``X-Webhook-Signature: sha256=<hex>``.
    Deliveries whose ``X-Webhook-Event`` header is ``ping`` are acknowledged
    but never become events. An ``X-Webhook-Delivery`` id, when present,
    is used as the deduplication key.
    """

    def get_type(self) -> TriggerType:
        return TriggerType.WEBHOOK

    async def register_webhook(
        self, credentials: dict[str, Any], callback_url: str, config: dict[str, Any]
    ) -> dict[str, Any]:
        # Nothing to call: the sender is configured with the callback URL and secret
        return {"webhook_id": None, "url": callback_url}

    def verify_webhook(
        self, raw_payload: str, headers: dict[str, str], credentials: dict[str, Any]
    ) -> bool:
        secret = credentials.get("webhook_secret")
        if not secret:
            return False

        signature = headers.get(SIGNATURE_HEADER, "")
        if signature.startswith("sha256="):
            signature = signature[len("sha256="):]
        if not signature:
            return False

        expected = generate_signature(raw_payload, secret)
        return hmac.compare_digest(expected, signature)

    def process_webhook(
        self, payload: dict[str, Any], headers: dict[str, str], config: dict[str, Any]
    ) -> dict[str, Any] | None:
        if headers.get(EVENT_HEADER) == "ping":
            return None

        return dict(payload)

    def get_delivery_key(self, headers: dict[str, str]) -> str | None:
        return headers.get(DELIVERY_HEADER) or None

    def get_sample_output(self) -> dict[str, Any]:
        return {"event": "example", "data": {"id": 1}}
