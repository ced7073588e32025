"""Trigger repository for subscription and event data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowhub.models.trigger import TriggerEvent, TriggerEventStatus, TriggerSubscription


class TriggerRepository:
    """Repository for trigger subscriptions and trigger events."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    # TriggerSubscription operations
    def create_subscription(self, subscription_data: dict, commit: bool = True) -> TriggerSubscription:
        """Create a new subscription.

        With commit=False the row is only flushed, so the caller can still
        roll it back if a later step (webhook registration) fails.
        """
        subscription = TriggerSubscription(**subscription_data)
        self.db.add(subscription)
        if commit:
            self.db.commit()
            self.db.refresh(subscription)
        else:
            self.db.flush()
        return subscription

    def get_subscription(self, subscription_id: UUID) -> TriggerSubscription | None:
        """Get subscription by ID."""
        return (
            self.db.query(TriggerSubscription)
            .filter(TriggerSubscription.id == subscription_id)
            .first()
        )

    def get_subscriptions_by_flow(self, flow_id: UUID) -> list[TriggerSubscription]:
        """Get all subscriptions for a flow."""
        return (
            self.db.query(TriggerSubscription)
            .filter(TriggerSubscription.flow_id == flow_id)
            .order_by(TriggerSubscription.created_at)
            .all()
        )

    def update_subscription(self, subscription: TriggerSubscription, data: dict) -> TriggerSubscription:
        """Update a subscription."""
        for key, value in data.items():
            setattr(subscription, key, value)
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def set_subscription_status(self, subscription_id: UUID, status: str) -> bool:
        """Set subscription status. Returns True if a row was updated."""
        updated = (
            self.db.query(TriggerSubscription)
            .filter(TriggerSubscription.id == subscription_id)
            .update({"status": status}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated > 0

    def delete_subscription(self, subscription: TriggerSubscription) -> None:
        """Delete a subscription and its events."""
        self.db.delete(subscription)
        self.db.commit()

    # TriggerEvent operations
    def event_exists(self, subscription_id: UUID, deduplication_key: str) -> bool:
        """Check whether an event with this key was already ingested."""
        return (
            self.db.query(TriggerEvent.id)
            .filter(
                TriggerEvent.subscription_id == subscription_id,
                TriggerEvent.deduplication_key == deduplication_key,
            )
            .first()
            is not None
        )

    def get_event_by_key(self, subscription_id: UUID, deduplication_key: str) -> TriggerEvent | None:
        """Get event by its deduplication key."""
        return (
            self.db.query(TriggerEvent)
            .filter(
                TriggerEvent.subscription_id == subscription_id,
                TriggerEvent.deduplication_key == deduplication_key,
            )
            .first()
        )

    def create_event(self, event_data: dict) -> tuple[TriggerEvent, bool]:
        """Create a trigger event unless its deduplication key already exists.

        Returns:
            Tuple of (event, created). On a unique-key race the existing
            event is returned with created=False.
        """
        event = TriggerEvent(**event_data)
        self.db.add(event)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_event_by_key(
                event_data["subscription_id"], event_data["deduplication_key"]
            )
            if existing is None:
                raise
            return existing, False
        self.db.refresh(event)
        return event, True

    def get_event_by_id(self, event_id: UUID) -> TriggerEvent | None:
        """Get event by ID."""
        return self.db.query(TriggerEvent).filter(TriggerEvent.id == event_id).first()

    def get_events(self, subscription_id: UUID, limit: int = 50) -> list[TriggerEvent]:
        """Get recent events for a subscription, newest first."""
        return (
            self.db.query(TriggerEvent)
            .filter(TriggerEvent.subscription_id == subscription_id)
            .order_by(TriggerEvent.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_pending_events(self, created_before: datetime, limit: int = 100) -> list[TriggerEvent]:
        """Get events still pending that were created before a cutoff."""
        return (
            self.db.query(TriggerEvent)
            .filter(
                TriggerEvent.status == TriggerEventStatus.PENDING.value,
                TriggerEvent.created_at < created_before,
            )
            .order_by(TriggerEvent.created_at)
            .limit(limit)
            .all()
        )

    def update_event_status(
        self, event_id: UUID, status: str, processed_at: datetime | None = None
    ) -> bool:
        """Update event status. Returns True if a row was updated."""
        updated = (
            self.db.query(TriggerEvent)
            .filter(TriggerEvent.id == event_id)
            .update({"status": status, "processed_at": processed_at}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated > 0
