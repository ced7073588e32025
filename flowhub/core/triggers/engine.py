"""Trigger engine managing subscriptions, webhook intake and polling."""

import hashlib
import json
import logging
import secrets
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from flowhub.core.config_file import Settings, get_settings
from flowhub.core.db.types import utcnow
from flowhub.core.errors import (
    RateLimitException,
    SubscriptionNotFoundException,
    WebhookVerificationException,
    is_retryable,
)
from flowhub.core.integrations.contracts import Trigger, TriggerType
from flowhub.core.integrations.credentials import CredentialVault
from flowhub.core.integrations.hooks import EngineHooks, HookEvent
from flowhub.core.integrations.registry import ConnectorRegistry
from flowhub.core.jobs.payloads import ExecuteFlowJob, PollTriggerJob
from flowhub.core.jobs.queue import JobQueue, JobQueueError
from flowhub.core.logging import log_engine_event
from flowhub.models.trigger import (
    SubscriptionStatus,
    TriggerEvent,
    TriggerEventStatus,
    TriggerSubscription,
)
from flowhub.repositories.trigger_repository import TriggerRepository

logger = logging.getLogger(__name__)


def compute_deduplication_key(item: Any) -> str:
    """Content hash of an item's canonical JSON form."""
    canonical = json.dumps(item, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(canonical.encode()).hexdigest()


class TriggerEngine:
    """Engine turning webhook deliveries and poll results into trigger events."""

    def __init__(
        self,
        db: Session,
        registry: ConnectorRegistry,
        vault: CredentialVault,
        queue: JobQueue,
        hooks: EngineHooks | None = None,
        settings: Settings | None = None,
    ):
        """Initialize trigger engine.

        Args:
            db: Database session
            registry: Connector registry resolving triggers
            vault: Credential vault for subscription connections
            queue: Job queue receiving execute and poll jobs
            hooks: Lifecycle listeners
            settings: Application settings
        """
        self.db = db
        self.repository = TriggerRepository(db)
        self.registry = registry
        self.vault = vault
        self.queue = queue
        self.hooks = hooks or EngineHooks()
        self.settings = settings or get_settings()

    # Subscription lifecycle

    async def subscribe(
        self,
        flow_id: UUID,
        connector: str,
        trigger_name: str,
        connection_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> TriggerSubscription:
        """Subscribe a flow to a trigger.

        Webhook triggers are registered with the provider before the
        subscription is committed; polling triggers get their first poll
        scheduled immediately.

        Raises:
            ConnectorNotFoundException: If the trigger is not registered
            Exception: Whatever webhook registration raised (nothing is persisted)
        """
        trigger = self.registry.get_trigger(connector, trigger_name)
        config = config or {}

        subscription = self.repository.create_subscription(
            {
                "flow_id": flow_id,
                "connector_name": connector,
                "trigger_name": trigger_name,
                "connection_id": str(connection_id) if connection_id else None,
                "config": config,
                "status": SubscriptionStatus.ACTIVE.value,
                "webhook_secret": secrets.token_hex(32),
            },
            commit=False,
        )

        try:
            if trigger.get_type() == TriggerType.WEBHOOK:
                credentials = self._webhook_credentials(subscription)
                result = await trigger.register_webhook(
                    credentials, self.get_webhook_url(subscription), config
                )
                webhook_id = (result or {}).get("webhook_id")
                subscription.webhook_id = str(webhook_id) if webhook_id else None
                subscription.webhook_registered_at = utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to subscribe flow {flow_id} to {connector}.{trigger_name}: {e}")
            raise

        self.db.refresh(subscription)
        log_engine_event(
            "subscription_created",
            subscription_id=subscription.id,
            flow_id=flow_id,
            trigger=f"{connector}.{trigger_name}",
        )

        if trigger.get_type() == TriggerType.POLLING:
            await self.queue.push(PollTriggerJob(subscription_id=subscription.id))

        return subscription

    async def unsubscribe(self, subscription_id: UUID) -> bool:
        """Remove a subscription, unregistering its webhook on a best-effort basis.

        Returns:
            True if the subscription existed and was deleted
        """
        subscription = self.repository.get_subscription(subscription_id)
        if subscription is None:
            return False

        if subscription.webhook_id:
            try:
                trigger = self.registry.get_trigger(
                    subscription.connector_name, subscription.trigger_name
                )
                await trigger.unregister_webhook(
                    self._webhook_credentials(subscription), subscription.webhook_id
                )
            except Exception as e:
                logger.warning(
                    f"Failed to unregister webhook {subscription.webhook_id} "
                    f"for subscription {subscription_id}: {e}"
                )

        self.repository.delete_subscription(subscription)
        log_engine_event("subscription_deleted", subscription_id=subscription_id)
        return True

    def pause_subscription(self, subscription_id: UUID) -> bool:
        """Pause an active subscription. Returns True if its status changed."""
        subscription = self.repository.get_subscription(subscription_id)
        if subscription is None or subscription.status == SubscriptionStatus.PAUSED.value:
            return False
        self.repository.update_subscription(subscription, {"status": SubscriptionStatus.PAUSED.value})
        log_engine_event("subscription_paused", subscription_id=subscription_id)
        return True

    async def resume_subscription(self, subscription_id: UUID) -> bool:
        """Resume a paused subscription. Returns True if its status changed."""
        subscription = self.repository.get_subscription(subscription_id)
        if subscription is None or subscription.status == SubscriptionStatus.ACTIVE.value:
            return False
        self.repository.update_subscription(subscription, {"status": SubscriptionStatus.ACTIVE.value})
        log_engine_event("subscription_resumed", subscription_id=subscription_id)

        trigger = self.registry.get_trigger(subscription.connector_name, subscription.trigger_name)
        if trigger.get_type() == TriggerType.POLLING:
            await self.queue.push(PollTriggerJob(subscription_id=subscription.id))
        return True

    def get_subscriptions(self, flow_id: UUID) -> list[TriggerSubscription]:
        return self.repository.get_subscriptions_by_flow(flow_id)

    def get_events(self, subscription_id: UUID, limit: int = 50) -> list[TriggerEvent]:
        return self.repository.get_events(subscription_id, limit)

    def get_webhook_url(self, subscription: TriggerSubscription) -> str:
        """Public callback URL providers deliver to."""
        base_url = self.settings.PUBLIC_BASE_URL.rstrip("/")
        return f"{base_url}/integration/webhook/{subscription.id}"

    # Webhook intake

    async def handle_webhook(
        self,
        subscription_id: UUID,
        payload: dict[str, Any],
        headers: dict[str, str],
        raw_body: str | bytes | None = None,
    ) -> TriggerEvent | None:
        """Verify, normalize, filter and deduplicate one webhook delivery.

        Args:
            subscription_id: Subscription the delivery is addressed to
            payload: Parsed JSON body
            headers: Request headers
            raw_body: Exact request body used for signature verification

        Returns:
            The created event, or None if the delivery was ignored or a duplicate

        Raises:
            SubscriptionNotFoundException: If the subscription does not exist
            WebhookVerificationException: If the signature does not verify
        """
        subscription = self.repository.get_subscription(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundException(f"Subscription not found: {subscription_id}")

        if subscription.status != SubscriptionStatus.ACTIVE.value:
            logger.info(f"Ignoring webhook for {subscription.status} subscription {subscription_id}")
            return None

        trigger = self.registry.get_trigger(subscription.connector_name, subscription.trigger_name)
        headers = {key.lower(): value for key, value in headers.items()}
        if raw_body is None:
            raw_body = json.dumps(payload, separators=(",", ":"))
        elif isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8")

        if not trigger.verify_webhook(raw_body, headers, self._webhook_credentials(subscription)):
            log_engine_event(
                "webhook_rejected", level=logging.WARNING, subscription_id=subscription_id
            )
            raise WebhookVerificationException("Webhook signature verification failed")

        config = subscription.config or {}
        item = trigger.process_webhook(payload, headers, config)
        if item is None:
            logger.debug(f"Trigger {trigger} ignored webhook delivery for {subscription_id}")
            return None

        if not trigger.apply_filters(item, config.get("filters") or []):
            logger.debug(f"Webhook delivery for {subscription_id} rejected by filters")
            return None

        key = trigger.get_delivery_key(headers) or self._deduplication_key(trigger, item)
        if self.repository.event_exists(subscription.id, key):
            logger.info(f"Duplicate webhook delivery for {subscription_id} (key {key})")
            return None

        return await self.create_trigger_event(subscription, item, key)

    # Polling

    async def poll(self, subscription_id: UUID, final_attempt: bool = True) -> list[TriggerEvent]:
        """Poll a subscription once and schedule the next poll.

        The trigger's returned cursor always replaces the stored one, even
        when no item becomes an event.

        Args:
            subscription_id: Subscription to poll
            final_attempt: When False a retryable poll failure propagates
                without scheduling, leaving the rescheduling to the retry

        Returns:
            Events created by this poll
        """
        subscription = self.repository.get_subscription(subscription_id)
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE.value:
            return []

        trigger = self.registry.get_trigger(subscription.connector_name, subscription.trigger_name)
        if trigger.get_type() != TriggerType.POLLING:
            return []

        interval = trigger.get_polling_interval() or self.settings.DEFAULT_POLLING_INTERVAL
        config = subscription.config or {}

        try:
            result = await trigger.poll(
                self._credentials(subscription.connection_id),
                config,
                dict(subscription.polling_state or {}),
            )
        except RateLimitException as e:
            delay = max(interval, e.retry_after or 0)
            logger.warning(f"Poll of {subscription_id} rate limited, next poll in {delay}s")
            await self._schedule_poll(subscription.id, delay)
            return []
        except Exception as e:
            if not is_retryable(e) or final_attempt:
                await self._schedule_poll(subscription.id, interval)
            raise

        subscription.polling_state = result.state
        subscription.last_polled_at = utcnow()
        self.db.commit()

        events: list[TriggerEvent] = []
        seen: set[str] = set()
        filters = config.get("filters") or []
        for item in result.items:
            key = self._deduplication_key(trigger, item)
            if key in seen or self.repository.event_exists(subscription.id, key):
                continue
            seen.add(key)
            if not trigger.apply_filters(item, filters):
                continue
            event = await self.create_trigger_event(subscription, item, key)
            if event is not None:
                events.append(event)

        log_engine_event(
            "subscription_polled",
            level=logging.DEBUG,
            subscription_id=subscription.id,
            items=len(result.items),
            events=len(events),
        )
        await self._schedule_poll(subscription.id, interval)
        return events

    async def _schedule_poll(self, subscription_id: UUID, delay: float) -> None:
        await self.queue.later(delay, PollTriggerJob(subscription_id=subscription_id))

    # Events

    async def create_trigger_event(
        self,
        subscription: TriggerSubscription,
        data: dict[str, Any],
        deduplication_key: str | None = None,
    ) -> TriggerEvent:
        """Persist an event and enqueue exactly one execution job for it.

        A unique-key race returns the existing event without enqueuing.
        """
        key = deduplication_key or compute_deduplication_key(data)
        event, created = self.repository.create_event(
            {
                "subscription_id": subscription.id,
                "flow_id": subscription.flow_id,
                "data": data,
                "deduplication_key": key,
                "status": TriggerEventStatus.PENDING.value,
            }
        )
        if not created:
            logger.info(f"Trigger event with key {key} already exists for {subscription.id}")
            return event

        await self._enqueue_execution(event)
        log_engine_event(
            "trigger_event_created",
            event_id=event.id,
            subscription_id=subscription.id,
            flow_id=subscription.flow_id,
        )
        self.hooks.emit(HookEvent.TRIGGER_EVENT_CREATED, event)
        return event

    async def requeue_pending_events(self, older_than_seconds: int | None = None) -> int:
        """Re-enqueue execution jobs for events stuck in pending.

        Returns:
            Number of events re-enqueued
        """
        window = older_than_seconds
        if window is None:
            window = self.settings.PENDING_EVENT_GRACE_SECONDS
        cutoff = utcnow() - timedelta(seconds=window)

        count = 0
        for event in self.repository.get_pending_events(cutoff):
            await self._enqueue_execution(event)
            count += 1

        if count:
            log_engine_event("pending_events_requeued", count=count)
        return count

    async def _enqueue_execution(self, event: TriggerEvent) -> None:
        try:
            await self.queue.push(
                ExecuteFlowJob(flow_id=event.flow_id, trigger_event_id=event.id, context=event.data)
            )
        except JobQueueError as e:
            # The event stays pending and is picked up by requeue_pending_events
            logger.error(f"Failed to enqueue execution for trigger event {event.id}: {e}")

    # Testing

    async def test(
        self,
        connector: str,
        trigger_name: str,
        connection_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Try a trigger without creating a subscription.

        Polling triggers run one poll with an empty cursor; webhook triggers
        return their static sample.
        """
        trigger = self.registry.get_trigger(connector, trigger_name)
        if not trigger.can_test():
            return {"success": False, "error": f"Trigger {connector}.{trigger_name} cannot be tested"}

        if trigger.get_type() != TriggerType.POLLING:
            return {"success": True, "items": [], "sample": trigger.get_sample_output()}

        try:
            result = await trigger.poll(self._credentials(connection_id), config or {}, {})
        except Exception as e:
            logger.warning(f"Test poll of {connector}.{trigger_name} failed: {e}")
            return {"success": False, "error": str(e)}

        items = result.items
        return {
            "success": True,
            "items": items,
            "sample": items[0] if items else trigger.get_sample_output(),
        }

    # Helpers

    def _credentials(self, connection_id: str | None) -> dict[str, Any]:
        if not connection_id:
            return {}
        return self.vault.retrieve(connection_id)

    def _webhook_credentials(self, subscription: TriggerSubscription) -> dict[str, Any]:
        return {
            **self._credentials(subscription.connection_id),
            "webhook_secret": subscription.webhook_secret,
        }

    def _deduplication_key(self, trigger: Trigger, item: dict[str, Any]) -> str:
        key = trigger.get_deduplication_key(item)
        if key:
            return str(key)
        return compute_deduplication_key(item)
